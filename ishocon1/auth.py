import logging
from datetime import datetime

from flask import current_app, session

from .kvs import get_redis, user_key
from .models import db, User

logger = logging.getLogger(__name__)


class AuthenticationError(Exception):
    """Email unknown or password mismatch."""


class PermissionDenied(Exception):
    """No logged-in user backed by the cache."""


def _stores_name():
    return current_app.config['ITERATION'] < 3


def authenticate(email, password):
    user = User.query.filter_by(email=email).first()
    if user is None or user.password != password:
        logger.info("Login failed: unknown email or wrong password")
        raise AuthenticationError()
    session['user_id'] = user.id
    if _stores_name():
        session['user_name'] = user.name
    user.last_login = datetime.utcnow()
    db.session.commit()
    return user


def current_user():
    """The session user as ``{'id', 'name'}``, or None.

    A session alone is not enough: the user must also have an existence flag
    in the cache.
    """
    user_id = session.get('user_id')
    if user_id is None or not get_redis().exists(user_key(user_id)):
        return None
    if _stores_name():
        return {'id': user_id, 'name': session.get('user_name')}
    user = db.session.get(User, user_id)
    return {'id': user_id, 'name': user.name} if user else None


def authenticated():
    user = current_user()
    if user is None:
        logger.info("Rejected request without a valid session")
        raise PermissionDenied()
    return user

