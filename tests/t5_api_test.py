import json
import os
import unittest
from datetime import datetime
from unittest import mock

from docquery import db
from docquery.api import create_app

from . import models
from .util import titles


class ApiTest(unittest.TestCase):
    """ Test the Products API """

    maxDiff = None

    def setUp(self):
        # Every test gets its own database: they modify it
        self.engine, self.Session = models.get_working_db_for_tests()
        self.app = create_app(dict(TESTING=True), Session=self.Session)

    def tearDown(self):
        self.engine.dispose()

    def get_query(self, c, url, query_object):
        """ GET with a Query Object """
        return c.get(url, query_string={'query': json.dumps(query_object)})

    def test_welcome(self):
        with self.app.test_client() as c:
            rv = c.get('/')
            self.assertEqual(rv.status_code, 200)
            self.assertEqual(rv.get_data(as_text=True), 'Welcome to Product API')

    def test_list(self):
        """ Test GET /products """
        with self.app.test_client() as c:
            rv = c.get('/products')
            self.assertEqual(rv.status_code, 200)
            products = rv.get_json()
            self.assertEqual(titles(products), ['iPhone', 'Laptop Pro', 'Tablet X'])

            # Fields keep their order, dates are ISO-8601 in UTC
            self.assertEqual(list(products[0]), ['id', 'title', 'price', 'description', 'createdAt'])
            created_at = datetime.fromisoformat(products[0]['createdAt'])
            self.assertEqual(created_at.utcoffset().total_seconds(), 0)

        # Query Object
        with self.app.test_client() as c:
            rv = self.get_query(c, '/products', {
                'filter': {'price': {'$gte': 300}},
                'sort': ['price-'],
                'project': ['title', 'price'],
            })
            self.assertEqual(rv.status_code, 200)
            self.assertEqual(rv.get_json(), [
                {'title': 'Laptop Pro', 'price': 800.0},
                {'title': 'Tablet X', 'price': 300.0},
            ])

        # Pagination
        with self.app.test_client() as c:
            rv = self.get_query(c, '/products', {'sort': 'price', 'skip': 1, 'limit': 1})
            self.assertEqual(titles(rv.get_json()), ['Tablet X'])

        # Count
        with self.app.test_client() as c:
            rv = self.get_query(c, '/products', {'filter': {'price': {'$gt': 200}}, 'count': 1})
            self.assertEqual(rv.get_json(), 2)

        # Empty result
        with self.app.test_client() as c:
            rv = self.get_query(c, '/products', {'filter': {'title': 'NOPE'}})
            self.assertEqual(rv.status_code, 200)
            self.assertEqual(rv.get_json(), [])

    def test_list_invalid(self):
        """ Test GET /products with invalid Query Objects """
        with self.app.test_client() as c:
            # Not JSON
            rv = c.get('/products', query_string={'query': '{filter:'})
            self.assertEqual(rv.status_code, 400)
            self.assertIn('not valid JSON', rv.get_json()['error'])

            # Not an object
            rv = self.get_query(c, '/products', ['title'])
            self.assertEqual(rv.status_code, 400)

            # Unknown field
            rv = self.get_query(c, '/products', {'filter': {'color': 'red'}})
            self.assertEqual(rv.status_code, 400)
            self.assertIn('color', rv.get_json()['error'])

            # Unknown operator
            rv = self.get_query(c, '/products', {'filter': {'price': {'$where': 1}}})
            self.assertEqual(rv.status_code, 400)
            self.assertIn('$where', rv.get_json()['error'])

            # Wrong type
            rv = self.get_query(c, '/products', {'filter': {'price': {'$gt': 'cheap'}}})
            self.assertEqual(rv.status_code, 400)

            # Bad regex
            rv = self.get_query(c, '/products', {'filter': {'title': {'$regex': '('}}})
            self.assertEqual(rv.status_code, 400)

            # Unknown Query Object section
            rv = self.get_query(c, '/products', {'join': ['users']})
            self.assertEqual(rv.status_code, 400)

    def test_create(self):
        """ Test POST /products """
        with self.app.test_client() as c:
            rv = c.post('/products', json={'title': 'Phone 2', 'price': 99.5, 'id': 999})
            self.assertEqual(rv.status_code, 201)
            product = rv.get_json()
            self.assertEqual(product['id'], 4)  # read-only: ignored
            self.assertEqual(product['title'], 'Phone 2')
            self.assertEqual(product['price'], 99.5)
            self.assertIsNone(product['description'])
            self.assertIsInstance(datetime.fromisoformat(product['createdAt']), datetime)

            rv = c.get('/products/4')
            self.assertEqual(rv.status_code, 200)
            self.assertEqual(rv.get_json()['title'], 'Phone 2')

        with self.app.test_client() as c:
            # Missing field
            rv = c.post('/products', json={'title': 'Phone 3'})
            self.assertEqual(rv.status_code, 400)
            self.assertIn('price', rv.get_json()['error'])

            # Wrong type
            rv = c.post('/products', json={'title': 'Phone 3', 'price': 'cheap'})
            self.assertEqual(rv.status_code, 400)

            # Unknown field
            rv = c.post('/products', json={'title': 'Phone 3', 'price': 1, 'color': 'red'})
            self.assertEqual(rv.status_code, 400)

            # Not an object
            rv = c.post('/products', json=['Phone 3'])
            self.assertEqual(rv.status_code, 400)

            # Not JSON
            rv = c.post('/products', data='{title:', content_type='application/json')
            self.assertEqual(rv.status_code, 400)
            self.assertIn('error', rv.get_json())

            rv = c.get('/products/count')
            self.assertEqual(rv.get_json(), {'totalProducts': 4})

    def test_get(self):
        """ Test GET /products/<id> """
        with self.app.test_client() as c:
            rv = c.get('/products/1')
            self.assertEqual(rv.status_code, 200)
            product = rv.get_json()
            self.assertEqual(product['id'], 1)
            self.assertEqual(product['title'], 'iPhone')
            self.assertEqual(product['price'], 150)
            self.assertEqual(product['description'], 'A smartphone')

            rv = c.get('/products/100')
            self.assertEqual(rv.status_code, 404)
            self.assertEqual(rv.get_json(), {'message': 'Product not found'})

    def test_update(self):
        """ Test PUT /products/<id> """
        with self.app.test_client() as c:
            before = c.get('/products/3').get_json()

            rv = c.put('/products/3', json={'price': 350})
            self.assertEqual(rv.status_code, 200)
            self.assertEqual(rv.get_json()['price'], 350)

            after = c.get('/products/3').get_json()
            self.assertEqual(after, {**before, 'price': 350})

            rv = c.put('/products/100', json={'price': 1})
            self.assertEqual(rv.status_code, 404)
            self.assertEqual(rv.get_json(), {'message': 'Product not found'})

            rv = c.put('/products/3', json={'title': None})
            self.assertEqual(rv.status_code, 400)

    def test_delete(self):
        """ Test DELETE /products/<id> """
        with self.app.test_client() as c:
            rv = c.delete('/products/2')
            self.assertEqual(rv.status_code, 200)
            self.assertEqual(rv.get_json(), {'message': 'Product deleted successfully'})

            rv = c.get('/products/2')
            self.assertEqual(rv.status_code, 404)

            rv = c.delete('/products/2')
            self.assertEqual(rv.status_code, 404)

            self.assertEqual(titles(c.get('/products').get_json()), ['iPhone', 'Tablet X'])

    def test_canned_queries(self):
        """ Test /products/count, sort, select, advanced """
        with self.app.test_client() as c:
            self.assertEqual(c.get('/products/count').get_json(), {'totalProducts': 3})

            # Sort
            prices = lambda rv: [p['price'] for p in rv.get_json()]
            self.assertEqual(prices(c.get('/products/sort')), [150, 300, 800])
            self.assertEqual(prices(c.get('/products/sort?order=asc')), [150, 300, 800])
            self.assertEqual(prices(c.get('/products/sort?order=desc')), [800, 300, 150])

            # Select
            rv = c.get('/products/select')
            self.assertEqual(rv.get_json(), [
                {'title': 'iPhone', 'price': 150},
                {'title': 'Laptop Pro', 'price': 800},
                {'title': 'Tablet X', 'price': 300},
            ])

            # Advanced
            rv = c.get('/products/advanced?order=desc')
            self.assertEqual(rv.get_json(), {
                'total': 3,
                'products': [
                    {'title': 'Laptop Pro', 'price': 800},
                    {'title': 'Tablet X', 'price': 300},
                    {'title': 'iPhone', 'price': 150},
                ],
            })
            rv = c.get('/products/advanced')
            self.assertEqual(titles(rv.get_json()['products']), ['iPhone', 'Tablet X', 'Laptop Pro'])

    def test_boolean_filters(self):
        """ Test /products/and, or, not, nor """
        with self.app.test_client() as c:
            self.assertEqual(titles(c.get('/products/and').get_json()), ['iPhone'])
            self.assertEqual(titles(c.get('/products/or').get_json()), ['Laptop Pro'])
            self.assertEqual(titles(c.get('/products/not').get_json()), ['iPhone', 'Tablet X'])
            self.assertEqual(titles(c.get('/products/nor').get_json()), ['iPhone'])

    def test_http_errors(self):
        """ Test errors that aren't ours """
        with self.app.test_client() as c:
            rv = c.get('/nope')
            self.assertEqual(rv.status_code, 404)
            self.assertIn('error', rv.get_json())

            # Ids that are not integers name no product
            for url in ('/products/abc', '/products/1.5'):
                rv = c.get(url)
                self.assertEqual(rv.status_code, 404)
                self.assertEqual(rv.get_json(), {'message': 'Product not found'})
            rv = c.put('/products/abc', json={'price': 1})
            self.assertEqual(rv.get_json(), {'message': 'Product not found'})
            rv = c.delete('/products/abc')
            self.assertEqual(rv.get_json(), {'message': 'Product not found'})
            self.assertEqual(c.get('/products/count').get_json(), {'totalProducts': 3})

            rv = c.patch('/products/1', json={})
            self.assertEqual(rv.status_code, 405)
            self.assertIn('error', rv.get_json())

    def test_store_errors(self):
        """ Test 503 and 500 """
        # Can't connect
        engine, Session = db.init_database('sqlite:////nonexistent/dir/products.db')
        app = create_app(dict(TESTING=True), Session=Session)
        with app.test_client() as c:
            with self.assertLogs('docquery.translator', 'WARNING'):
                rv = c.get('/products')
            self.assertEqual(rv.status_code, 503)
            self.assertEqual(rv.get_json(), {'error': 'The store is unavailable'})

            # Validation still comes first
            rv = c.post('/products', json={})
            self.assertEqual(rv.status_code, 400)

        # Timeout
        app = create_app(dict(TESTING=True, REQUEST_TIMEOUT=0), Session=self.Session)
        with app.test_client() as c:
            with self.assertLogs('docquery.api', 'ERROR'):
                rv = c.get('/products')
            self.assertEqual(rv.status_code, 500)
            self.assertIn('deadline', rv.get_json()['error'])

    def test_config(self):
        """ Test configuration """
        # MAX_ITEMS
        app = create_app(dict(MAX_ITEMS=2), Session=self.Session)
        with app.test_client() as c:
            self.assertEqual(len(c.get('/products').get_json()), 2)
            self.assertEqual(c.get('/products/count').get_json(), {'totalProducts': 3})

        # Environment variables
        with mock.patch.dict(os.environ, {'DOCQUERY_MAX_ITEMS': '1'}):
            app = create_app(Session=self.Session)
            self.assertEqual(app.config['MAX_ITEMS'], 1)
            with app.test_client() as c:
                self.assertEqual(len(c.get('/products').get_json()), 1)

            # The mapping given to create_app() wins
            app = create_app(dict(MAX_ITEMS=None), Session=self.Session)
            self.assertIsNone(app.config['MAX_ITEMS'])

        # No Session: connects to DATABASE_URL, creates the tables
        app = create_app(dict(DATABASE_URL='sqlite://'))
        with app.test_client() as c:
            self.assertEqual(c.get('/products/count').get_json(), {'totalProducts': 0})
            rv = c.post('/products', json={'title': 'a', 'price': 1})
            self.assertEqual(rv.status_code, 201)
            self.assertEqual(c.get('/products/count').get_json(), {'totalProducts': 1})
