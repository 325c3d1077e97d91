from functools import wraps

from flask import Blueprint, render_template, request, redirect, url_for, session, make_response

from . import catalog
from .auth import (
    AuthenticationError,
    PermissionDenied,
    authenticate,
    authenticated,
    current_user,
)
from .reinit import initialize as reinitialize


bp = Blueprint('storefront', __name__)

LOGIN_MESSAGE = 'ECサイトで爆買いしよう！！！！'
LOGIN_FAILED_MESSAGE = 'ログインに失敗しました'
LOGIN_REQUIRED_MESSAGE = '先にログインをしてください'


def public_cache(f):
    @wraps(f)
    def wrapped(*args, **kwargs):
        response = make_response(f(*args, **kwargs))
        response.cache_control.public = True
        return response
    return wrapped


@bp.app_errorhandler(AuthenticationError)
def handle_authentication_error(e):
    session.pop('user_id', None)
    return render_template('login.html', message=LOGIN_FAILED_MESSAGE), 401


@bp.app_errorhandler(PermissionDenied)
def handle_permission_denied(e):
    return render_template('login.html', message=LOGIN_REQUIRED_MESSAGE), 403


@bp.app_context_processor
def inject_user():
    return {'current_user': current_user()}


@bp.route('/login', methods=['GET', 'POST'])
def login():
    if request.method == 'POST':
        authenticate(request.form.get('email', ''), request.form.get('password', ''))
        return redirect(url_for('storefront.index'))
    session.clear()
    return render_template('login.html', message=LOGIN_MESSAGE)


@bp.route('/logout')
def logout():
    session.clear()
    return redirect(url_for('storefront.login'))


@bp.route('/')
@public_cache
def index():
    page = request.args.get('page', 0, type=int)
    products = catalog.list_products(page)
    return render_template('index.html', products=products)


@bp.route('/users/<int:user_id>')
@public_cache
def mypage(user_id):
    user, products, total_pay = catalog.user_history(user_id)
    return render_template('mypage.html', user=user, products=products, total_pay=total_pay)


@bp.route('/products/<int:product_id>')
@public_cache
def product(product_id):
    p = catalog.get_product(product_id)
    comments = catalog.live_comments(product_id) if catalog.iteration() == 1 else None
    user = current_user()
    bought = bool(user) and catalog.already_bought(product_id, user['id'])
    return render_template('product.html', product=p, comments=comments, already_bought=bought)


@bp.route('/products/buy/<int:product_id>', methods=['POST'])
def buy(product_id):
    user = authenticated()
    catalog.buy_product(product_id, user['id'])
    return redirect(url_for('storefront.mypage', user_id=user['id']))


@bp.route('/comments/<int:product_id>', methods=['POST'])
def comment(product_id):
    user = authenticated()
    catalog.create_comment(product_id, user['id'], user['name'], request.form.get('content', ''))
    return redirect(url_for('storefront.mypage', user_id=user['id']))


@bp.route('/initialize')
def initialize():
    return reinitialize()
