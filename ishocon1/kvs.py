"""
Redis access and key layout for the cached projections.

Redis only ever holds data derived from the relational store; everything in
here can be rebuilt by the reinitializer.
"""

import logging

import redis
from flask import current_app

logger = logging.getLogger(__name__)

USER_ID_KEY_PREFIX = 'user_id_'
USER_BOUGHT_PREFIX = 'user_bought_'
COMMENTS_COUNT_PREFIX = 'comments_count_'
PRODUCT_PREFIX = 'product_'
LATEST_COMMENT_NAME_PREFIX = 'latest_comment_name_'
LATEST_COMMENT_CONTENT_PREFIX = 'latest_comment_content_'
LATEST_COMMENT_SLOT_PREFIX = 'latest_comment_'

LATEST_COMMENTS_SIZE = 5
COMMENT_DISPLAY_LENGTH = 25
DESCRIPTION_DISPLAY_LENGTH = 70
ELLIPSIS = '…'


def user_key(user_id):
    return f"{USER_ID_KEY_PREFIX}{user_id}"

def bought_key(user_id):
    return f"{USER_BOUGHT_PREFIX}{user_id}"

def comments_count_key(product_id):
    return f"{COMMENTS_COUNT_PREFIX}{product_id}"

def product_key(product_id):
    return f"{PRODUCT_PREFIX}{product_id}"

def latest_name_key(product_id):
    return f"{LATEST_COMMENT_NAME_PREFIX}{product_id}"

def latest_content_key(product_id):
    return f"{LATEST_COMMENT_CONTENT_PREFIX}{product_id}"

def latest_slot_key(product_id, slot):
    return f"{LATEST_COMMENT_SLOT_PREFIX}{product_id}_{slot}"


def truncate(text, length):
    """Cut ``text`` to ``length`` characters, marking the cut with an ellipsis."""
    if text is None:
        return ''
    return text[:length] + ELLIPSIS if len(text) > length else text


def init_app(app):
    """Attach one Redis client (and its connection pool) to ``app``.

    Tests may pre-seed ``REDIS_CLIENT`` with any redis-py compatible client.
    """
    client = app.config.get('REDIS_CLIENT')
    if client is None:
        client = redis.Redis.from_url(app.config['REDIS_URL'], decode_responses=True)
    app.extensions['ishocon1_redis'] = client
    try:
        client.ping()
        logger.info(f"Connected to Redis at {app.config.get('REDIS_URL')}")
    except redis.exceptions.ConnectionError as e:
        logger.error(f"Could not connect to Redis: {e}")
    return client


def get_redis():
    return current_app.extensions['ishocon1_redis']
