"""
Fixtures: an app per iteration backed by in-memory SQLite and fakeredis,
seeded with a small slice of the benchmark data and already initialized.
"""

from datetime import datetime, timedelta

import fakeredis
import pytest

from ishocon1 import create_app
from ishocon1.models import db, User, Product, History, Comment
from ishocon1.reinit import initialize

BASE_TIME = datetime(2020, 1, 1, 12, 0, 0)

USERS = [
    (1, 'Alice', 'alice@example.com', 'alicepass'),
    (2, 'Bob', 'bob@example.com', 'bobpass'),
    (3, 'Carol', 'carol@example.com', 'carolpass'),
]

FIRST_PRODUCT_ID = 9901
LAST_PRODUCT_ID = 10000
COMMENTED_PRODUCT_ID = 10000


def price_of(product_id):
    return product_id % 1000 + 100


def seed():
    for user_id, name, email, password in USERS:
        db.session.add(User(id=user_id, name=name, email=email, password=password))
    for product_id in range(FIRST_PRODUCT_ID, LAST_PRODUCT_ID + 1):
        db.session.add(Product(
            id=product_id,
            name=f"商品{product_id}",
            description=f"これは商品{product_id}の説明です。" * 10,
            image_path=f"/images/image{product_id % 5}.jpg",
            price=price_of(product_id),
            created_at=BASE_TIME,
        ))
    # seven comments on one product, one minute apart, oldest first
    for i in range(7):
        db.session.add(Comment(
            id=i + 1,
            product_id=COMMENTED_PRODUCT_ID,
            user_id=USERS[i % 3][0],
            content=f"comment number {i} " + 'x' * (i * 5),
            created_at=BASE_TIME + timedelta(minutes=i),
        ))
    db.session.add(Comment(id=8, product_id=9999, user_id=2, content='short', created_at=BASE_TIME))
    db.session.add(History(id=1, product_id=9999, user_id=1, created_at=BASE_TIME))
    db.session.add(History(id=2, product_id=9999, user_id=1, created_at=BASE_TIME))
    db.session.add(History(id=3, product_id=9998, user_id=1, created_at=BASE_TIME))
    db.session.commit()


def build_app(iteration, tmp_path):
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_ENGINE_OPTIONS': {},
        'REDIS_CLIENT': fakeredis.FakeRedis(server=fakeredis.FakeServer(), decode_responses=True),
        'SESSION_REDIS': fakeredis.FakeRedis(server=fakeredis.FakeServer()),
        'ITERATION': iteration,
        'FRAGMENT_CACHE_DIR': str(tmp_path / 'fragments'),
        'SECRET_KEY': 'test',
    })
    with app.app_context():
        seed()
        initialize()
    return app


@pytest.fixture(params=[1, 2, 3], ids=['iteration1', 'iteration2', 'iteration3'])
def app(request, tmp_path):
    app = build_app(request.param, tmp_path)
    yield app
    with app.app_context():
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def login(client):
    def do_login(email='alice@example.com', password='alicepass'):
        return client.post('/login', data={'email': email, 'password': password})
    return do_login
