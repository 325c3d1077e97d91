"""Read and write paths for products, purchases and comments."""

import logging
from datetime import datetime

from flask import abort, current_app

from .feeds import feed_for
from .kvs import (
    COMMENT_DISPLAY_LENGTH,
    DESCRIPTION_DISPLAY_LENGTH,
    bought_key,
    comments_count_key,
    get_redis,
    product_key,
    truncate,
)
from .models import db, User, Product, History, Comment

logger = logging.getLogger(__name__)

PRD_MAX_ID = 10000
PAGE_SIZE = 50
HISTORY_DISPLAY_LIMIT = 30


def iteration():
    return current_app.config['ITERATION']


def page_product_ids(page):
    """Product ids shown on ``page``, highest first."""
    page = max(page, 0)
    top = PRD_MAX_ID - page * PAGE_SIZE
    bottom = max(PRD_MAX_ID - (page + 1) * PAGE_SIZE, 0)
    return list(range(top, bottom, -1))


def product_to_dict(product, comments_count=0):
    return {
        'id': product.id,
        'name': product.name,
        'description': product.description,
        'short_description': truncate(product.description, DESCRIPTION_DISPLAY_LENGTH),
        'image_path': product.image_path,
        'price': product.price,
        'created_at': product.created_at,
        'comments_count': comments_count,
    }


def product_to_hash(product, comments_count):
    data = product_to_dict(product, comments_count)
    data['created_at'] = product.created_at.isoformat() if product.created_at else ''
    return data


def hash_to_product(data):
    if not data or 'id' not in data:
        return None
    product = dict(data)
    product['id'] = int(product['id'])
    product['price'] = int(product['price'])
    product['comments_count'] = int(product.get('comments_count') or 0)
    if product.get('created_at'):
        product['created_at'] = datetime.fromisoformat(product['created_at'])
    return product


def list_products(page):
    """Products for one listing page with comment counts and latest comments."""
    r = get_redis()
    ids = page_product_ids(page)
    if iteration() == 3:
        pipe = r.pipeline(transaction=False)
        for product_id in ids:
            pipe.hgetall(product_key(product_id))
        products = [p for p in (hash_to_product(h) for h in pipe.execute()) if p]
    else:
        rows = Product.query.filter(Product.id.in_(ids)).order_by(Product.id.desc()).all()
        counts = r.mget([comments_count_key(p.id) for p in rows]) if rows else []
        products = [product_to_dict(p, int(c or 0)) for p, c in zip(rows, counts)]

    latest = feed_for(iteration(), r).latest_many([p['id'] for p in products])
    for p in products:
        p['comments'] = latest[p['id']]
    return products


def get_product(product_id):
    product = db.session.get(Product, product_id)
    if product is None:
        abort(404)
    return product


def live_comments(product_id, limit=5):
    rows = (
        db.session.query(Comment.content, Comment.created_at, User.name)
        .join(User, Comment.user_id == User.id)
        .filter(Comment.product_id == product_id)
        .order_by(Comment.created_at.desc(), Comment.id.desc())
        .limit(limit)
        .all()
    )
    return [{'name': row.name, 'content': row.content, 'created_at': row.created_at} for row in rows]


def user_history(user_id):
    """The user, their latest purchases and the total they have paid."""
    user = db.session.get(User, user_id)
    if user is None:
        abort(404)

    if iteration() == 3:
        r = get_redis()
        history = (
            db.session.query(History.product_id, History.created_at)
            .filter(History.user_id == user_id)
            .order_by(History.id.desc())
            .all()
        )
        pipe = r.pipeline(transaction=False)
        for h in history[:HISTORY_DISPLAY_LIMIT]:
            pipe.hgetall(product_key(h.product_id))
        products = []
        for h, data in zip(history, pipe.execute()):
            product = hash_to_product(data)
            if product is None:
                continue
            product['created_at'] = h.created_at
            products.append(product)

        pipe = r.pipeline(transaction=False)
        for h in history:
            pipe.hget(product_key(h.product_id), 'price')
        total_pay = sum(int(price or 0) for price in pipe.execute())
    else:
        rows = (
            db.session.query(Product, History.id, History.created_at)
            .join(History, History.product_id == Product.id)
            .filter(History.user_id == user_id)
            .order_by(History.id.desc())
            .all()
        )
        products = []
        for product, _, bought_at in rows[:HISTORY_DISPLAY_LIMIT]:
            item = product_to_dict(product)
            item['created_at'] = bought_at
            products.append(item)
        total_pay = sum(product.price for product, _, _ in rows)

    return user, products, total_pay


def buy_product(product_id, user_id):
    get_product(product_id)
    db.session.add(History(product_id=product_id, user_id=user_id, created_at=datetime.utcnow()))
    db.session.commit()
    get_redis().hincrby(bought_key(user_id), product_id, 1)
    logger.info(f"User {user_id} bought product {product_id}")


def already_bought(product_id, user_id):
    return bool(get_redis().hexists(bought_key(user_id), product_id))


def create_comment(product_id, user_id, user_name, content):
    get_product(product_id)
    db.session.add(Comment(product_id=product_id, user_id=user_id, content=content,
                           created_at=datetime.utcnow()))
    db.session.commit()

    r = get_redis()
    if iteration() == 3:
        r.hincrby(product_key(product_id), 'comments_count', 1)
    else:
        r.incr(comments_count_key(product_id))
    feed_for(iteration(), r).push(product_id, user_name, truncate(content, COMMENT_DISPLAY_LENGTH))
