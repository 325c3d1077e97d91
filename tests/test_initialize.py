from datetime import datetime

from sqlalchemy import text

from ishocon1.feeds import feed_for
from ishocon1.kvs import COMMENT_DISPLAY_LENGTH, bought_key, get_redis, truncate, user_key
from ishocon1.models import db, User, Product, History, Comment
from ishocon1.reinit import initialize

from .conftest import COMMENTED_PRODUCT_ID, USERS


def store_latest(product_id):
    rows = (
        db.session.query(Comment, User.name)
        .join(User, Comment.user_id == User.id)
        .filter(Comment.product_id == product_id)
        .order_by(Comment.created_at.desc(), Comment.id.desc())
        .limit(5)
        .all()
    )
    return [{'name': name, 'content': truncate(c.content, COMMENT_DISPLAY_LENGTH)} for c, name in rows]


def cached_count(app, product_id):
    r = get_redis()
    if app.config['ITERATION'] == 3:
        return int(r.hget(f'product_{product_id}', 'comments_count') or 0)
    return int(r.get(f'comments_count_{product_id}') or 0)


def test_initialize_route(client):
    r = client.get('/initialize')
    assert r.status_code == 200
    assert r.get_data(as_text=True) == 'Finish'


def test_initialize_deletes_non_seed_rows(app):
    with app.app_context():
        now = datetime.utcnow()
        db.session.add(User(id=5001, name='Temp', email='temp@example.com', password='x'))
        db.session.add(Product(id=10001, name='Temp', description='', image_path='', price=1))
        db.session.add(Comment(id=200001, product_id=9990, user_id=1, content='temp', created_at=now))
        db.session.add(History(id=500001, product_id=9990, user_id=1, created_at=now))
        db.session.commit()

        initialize()

        assert db.session.get(User, 5001) is None
        assert db.session.get(Product, 10001) is None
        assert db.session.get(Comment, 200001) is None
        assert db.session.get(History, 500001) is None
        assert db.session.get(User, 3) is not None
        assert not get_redis().exists(user_key(5001))


def test_rebuilds_user_flags_and_purchases(app):
    with app.app_context():
        r = get_redis()
        r.flushdb()
        initialize()
        for user_id, _, email, _ in USERS:
            assert r.get(user_key(user_id)) == email
        assert r.hget(bought_key(1), 9999) == '2'
        assert r.hget(bought_key(1), 9998) == '1'
        assert not r.exists(bought_key(2))


def test_rebuild_matches_store_after_new_comments(app, client, login):
    login()
    for i in range(3):
        client.post(f'/comments/{COMMENTED_PRODUCT_ID}', data={'content': f'late review number {i} with padding'})
    client.post('/comments/9990', data={'content': 'only one'})
    client.get('/initialize')

    with app.app_context():
        feed = feed_for(app.config['ITERATION'], get_redis())
        for product_id in (COMMENTED_PRODUCT_ID, 9999, 9990, 9980):
            assert feed.latest(product_id) == store_latest(product_id)
            assert cached_count(app, product_id) == Comment.query.filter_by(product_id=product_id).count()


def test_rebuild_orders_newest_first(app):
    with app.app_context():
        entries = feed_for(app.config['ITERATION'], get_redis()).latest(COMMENTED_PRODUCT_ID)
    assert [e['content'][:16] for e in entries] == [f'comment number {i}' for i in range(6, 1, -1)]
    assert entries[0]['content'].endswith('…')


def test_rebuild_caches_products_without_comments(app):
    if app.config['ITERATION'] != 3:
        return
    with app.app_context():
        data = get_redis().hgetall('product_9990')
    assert data['name'] == '商品9990'
    assert data['comments_count'] == '0'


def test_initialize_deletes_children_before_parents(app):
    with app.app_context():
        if db.engine.dialect.name == 'sqlite':
            db.session.execute(text('PRAGMA foreign_keys=ON'))
            db.session.commit()
        now = datetime.utcnow()
        db.session.add(User(id=5002, name='Temp', email='temp2@example.com', password='x'))
        db.session.add(Product(id=10002, name='Temp', description='', image_path='', price=1))
        db.session.flush()
        db.session.add(Comment(id=200002, product_id=10002, user_id=5002, content='temp', created_at=now))
        db.session.add(History(id=500002, product_id=10002, user_id=5002, created_at=now))
        db.session.commit()

        initialize()

        assert db.session.get(User, 5002) is None
        assert db.session.get(Product, 10002) is None
        assert Comment.query.filter_by(user_id=5002).count() == 0
        assert History.query.filter_by(user_id=5002).count() == 0
