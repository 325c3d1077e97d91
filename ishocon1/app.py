import logging

import click
import redis
from flask import Flask
from flask_session import Session

from . import fragments, kvs
from .config import load_config
from .models import db

logger = logging.getLogger(__name__)


def create_app(overrides=None):
    app = Flask(__name__, template_folder='templates')
    app.config.update(load_config())
    if overrides:
        app.config.update(overrides)

    logging.basicConfig(level=app.config['LOG_LEVEL'],
                        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    app.config['SESSION_TYPE'] = 'redis'
    if app.config.get('SESSION_REDIS') is None:
        app.config['SESSION_REDIS'] = redis.Redis.from_url(app.config['SESSION_REDIS_URL'])
    Session(app)

    db.init_app(app)
    kvs.init_app(app)
    fragments.init_app(app)

    from .views import bp
    app.register_blueprint(bp)

    @app.cli.command('initialize')
    def initialize_command():
        """Delete benchmark test data and rebuild the Redis projections."""
        from .reinit import initialize
        click.echo(initialize())

    with app.app_context():
        db.create_all()

    logger.info(f"Storefront ready (iteration {app.config['ITERATION']})")
    return app
