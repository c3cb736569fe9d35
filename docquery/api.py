""" Products REST API

    GET     /                       Welcome message
    GET     /products               List products. Optional: ?query=<JSON Query Object>
    POST    /products               Create a product
    GET     /products/count         {totalProducts: n}
    GET     /products/sort          Sort by price. ?order=asc|desc
    GET     /products/select        Only titles and prices
    GET     /products/advanced      {total, products}: sorted by price, titles and prices only. ?order=asc|desc
    GET     /products/and           price > 100 AND title contains "phone"
    GET     /products/or            price > 500 OR title contains "laptop"
    GET     /products/not           NOT price > 500
    GET     /products/nor           NOR(price > 500, title contains "tablet")
    GET     /products/<id>          Get a product
    PUT     /products/<id>          Update a product (partially)
    DELETE  /products/<id>          Delete a product
"""

from datetime import datetime, timezone
from logging import getLogger

from flask import Flask, Blueprint, current_app, request, jsonify
from flask.json.provider import DefaultJSONProvider
from flask.views import MethodView
from werkzeug.exceptions import HTTPException

from . import exc
from .config import DefaultConfig, ENV_PREFIX
from .db import init_database, create_all
from .deadline import Deadline
from .translator import QueryTranslator

logger = getLogger(__name__)

products = Blueprint('products', __name__)


class ProductJSONProvider(DefaultJSONProvider):
    """ JSON provider: keeps the order of fields, and renders datetimes in ISO-8601 """
    sort_keys = False

    @staticmethod
    def default(o):
        if isinstance(o, datetime):
            # Naive datetimes come from stores that drop the timezone; they're always UTC
            if o.tzinfo is None:
                o = o.replace(tzinfo=timezone.utc)
            return o.isoformat()
        return DefaultJSONProvider.default(o)


def create_app(config=None, Session=None) -> Flask:
    """ Create the application

    :param config: Settings that override the defaults and the environment. See: DefaultConfig
    :param Session: Session factory to use. When not given, one is created from DATABASE_URL,
        and the tables are created.
    """
    app = Flask(__name__)
    app.config.from_object(DefaultConfig)
    app.config.from_prefixed_env(ENV_PREFIX)
    if config:
        app.config.update(config)

    app.json = ProductJSONProvider(app)

    # Store
    if Session is None:
        engine, Session = init_database(app.config['DATABASE_URL'])
        create_all(engine)
    app.extensions['docquery'] = QueryTranslator(Session, max_items=app.config['MAX_ITEMS'])

    # Routes
    app.register_blueprint(products)
    register_error_handlers(app)

    return app


def register_error_handlers(app: Flask):
    """ Convert errors into JSON responses """

    @app.errorhandler(exc.NotFound)
    def not_found(e):
        return jsonify(message=str(e)), 404

    def user_error(e):
        return jsonify(error=str(e)), 400

    for error_cls in exc.USER_ERRORS:
        app.register_error_handler(error_cls, user_error)

    @app.errorhandler(exc.StoreUnavailable)
    def store_unavailable(e):
        return jsonify(error=str(e)), 503

    @app.errorhandler(HTTPException)
    def http_error(e):
        return jsonify(error=e.description), e.code

    @app.errorhandler(Exception)
    def internal_error(e):
        logger.exception('Request failed: %s %s', request.method, request.path)
        return jsonify(error=str(e)), 500


# region Helpers

def _translator() -> QueryTranslator:
    return current_app.extensions['docquery']


def _deadline() -> Deadline:
    """ Deadline for the current request """
    return Deadline(timeout=current_app.config['REQUEST_TIMEOUT'])


def _get_entity_dict():
    """ Get the JSON body of the request """
    return request.get_json(force=True)


def _get_query_object():
    """ Get the Query Object from the `?query=` argument

    :rtype: dict | None
    """
    query = request.args.get('query')
    if not query:
        return None
    try:
        return current_app.json.loads(query)
    except ValueError as e:
        raise exc.InvalidQueryError('`query` is not valid JSON: {}'.format(e))


def _product_id(id: str):
    """ The id from the URL: an int, when it looks like one

    Anything else is passed on as is: it names no product, and the translator says so with a 404
    """
    try:
        return int(id)
    except ValueError:
        return id


def _price_order() -> str:
    """ Sort spec from the `?order=` argument """
    return 'price-' if request.args.get('order') == 'desc' else 'price+'

# endregion


@products.route('/')
def welcome():
    return 'Welcome to Product API'


class ProductListView(MethodView):
    """ /products """

    def get(self):
        return jsonify(_translator().find_many(_get_query_object(), deadline=_deadline()))

    def post(self):
        return jsonify(_translator().insert(_get_entity_dict(), deadline=_deadline())), 201


class ProductView(MethodView):
    """ /products/<id> """

    def get(self, id):
        return jsonify(_translator().find_by_id(_product_id(id), deadline=_deadline()))

    def put(self, id):
        return jsonify(_translator().update_by_id(_product_id(id), _get_entity_dict(), deadline=_deadline()))

    def delete(self, id):
        _translator().delete_by_id(_product_id(id), deadline=_deadline())
        return jsonify(message='Product deleted successfully')


products.add_url_rule('/products', view_func=ProductListView.as_view('product_list'))
products.add_url_rule('/products/<id>', view_func=ProductView.as_view('product'))


@products.route('/products/count')
def count():
    return jsonify(totalProducts=_translator().count(deadline=_deadline()))


@products.route('/products/sort')
def sort():
    return jsonify(_translator().find_all(sort=_price_order(), deadline=_deadline()))


@products.route('/products/select')
def select():
    return jsonify(_translator().find_all(project=['title', 'price'], deadline=_deadline()))


@products.route('/products/advanced')
def advanced():
    total, records = _translator().find_and_count(sort=_price_order(), project=['title', 'price'],
                                                  deadline=_deadline())
    return jsonify(total=total, products=records)


#: Canned filters, by route name
CANNED_FILTERS = {
    'and': {'$and': [
        {'price': {'$gt': 100}},
        {'title': {'$regex': 'phone', '$options': 'i'}},
    ]},
    'or': {'$or': [
        {'price': {'$gt': 500}},
        {'title': {'$regex': 'laptop', '$options': 'i'}},
    ]},
    'not': {'price': {'$not': {'$gt': 500}}},
    'nor': {'$nor': [
        {'price': {'$gt': 500}},
        {'title': {'$regex': 'tablet', '$options': 'i'}},
    ]},
}


def canned_filter(name):
    return jsonify(_translator().find_all(filter=CANNED_FILTERS[name], deadline=_deadline()))


# Static rules: they come before `/products/<id>`
for _name in CANNED_FILTERS:
    products.add_url_rule('/products/' + _name, 'canned_' + _name, canned_filter, defaults={'name': _name})
