"""
Reset the benchmark data set and rebuild every cached projection from the
relational store.

Nothing here is transactional across the store and Redis: a failure halfway
leaves the cache partially rebuilt until the next run.
"""

import logging
import time

from sqlalchemy import func

from .catalog import iteration, product_to_hash
from .feeds import feed_for
from .fragments import get_fragments
from .kvs import (
    COMMENT_DISPLAY_LENGTH,
    LATEST_COMMENTS_SIZE,
    bought_key,
    comments_count_key,
    get_redis,
    product_key,
    truncate,
    user_key,
)
from .models import db, User, Product, History, Comment

logger = logging.getLogger(__name__)

SEED_LIMITS = (
    (History, 500000),
    (Comment, 200000),
    (Product, 10000),
    (User, 5000),
)


def delete_test_data():
    for model, max_id in SEED_LIMITS:
        deleted = model.query.filter(model.id > max_id).delete(synchronize_session=False)
        logger.info(f"Deleted {deleted} rows from {model.__tablename__}")
    db.session.commit()


def rebuild_users(pipe):
    for user_id, email in db.session.query(User.id, User.email):
        pipe.set(user_key(user_id), email)


def rebuild_bought(pipe):
    rows = (
        db.session.query(History.user_id, History.product_id, func.count(History.id))
        .group_by(History.user_id, History.product_id)
        .all()
    )
    for user_id, product_id, count in rows:
        pipe.hset(bought_key(user_id), product_id, count)


def rebuild_comment_counts(pipe):
    rows = (
        db.session.query(Comment.product_id, func.count(Comment.id))
        .group_by(Comment.product_id)
        .all()
    )
    for product_id, count in rows:
        pipe.set(comments_count_key(product_id), count)


def rebuild_products(pipe):
    counts = (
        db.session.query(Comment.product_id, func.count(Comment.id).label('comments_count'))
        .group_by(Comment.product_id)
        .subquery()
    )
    rows = (
        db.session.query(Product, func.coalesce(counts.c.comments_count, 0))
        .outerjoin(counts, counts.c.product_id == Product.id)
        .all()
    )
    for product, count in rows:
        pipe.hset(product_key(product.id), mapping=product_to_hash(product, count))


def latest_comments():
    """The newest ``LATEST_COMMENTS_SIZE`` comments of each product, newest first."""
    ranked = (
        db.session.query(
            Comment.id.label('id'),
            func.row_number().over(
                partition_by=Comment.product_id,
                order_by=(Comment.created_at.desc(), Comment.id.desc()),
            ).label('row_num'),
        )
        .subquery()
    )
    rows = (
        db.session.query(Comment.product_id, User.name, Comment.content)
        .join(ranked, ranked.c.id == Comment.id)
        .join(User, Comment.user_id == User.id)
        .filter(ranked.c.row_num <= LATEST_COMMENTS_SIZE)
        .order_by(Comment.product_id, ranked.c.row_num)
        .all()
    )
    grouped = {}
    for product_id, name, content in rows:
        grouped.setdefault(product_id, []).append(
            {'name': name, 'content': truncate(content, COMMENT_DISPLAY_LENGTH)}
        )
    return grouped


def initialize():
    started = time.monotonic()
    delete_test_data()
    get_fragments().clear()

    r = get_redis()
    r.flushdb()

    pipe = r.pipeline(transaction=False)
    rebuild_users(pipe)
    rebuild_bought(pipe)
    if iteration() == 3:
        rebuild_products(pipe)
    else:
        rebuild_comment_counts(pipe)
    feed = feed_for(iteration(), r)
    for product_id, entries in latest_comments().items():
        feed.rebuild(pipe, product_id, entries)
    pipe.execute()

    logger.info(f"Initialized iteration {iteration()} in {time.monotonic() - started:.2f}s")
    return 'Finish'
