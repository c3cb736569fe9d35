import unittest
from datetime import datetime, timezone

from sqlalchemy import inspect
from sqlalchemy.orm import Query

from docquery import DocQuery, Reusable
from docquery.exc import DisabledError, InvalidQueryError, InvalidColumnError
from docquery.models import Product

from . import models
from .util import q2sql


ids = lambda instances: [p.id for p in instances]


class QueryTest(unittest.TestCase):
    """ Test DocQuery """

    @classmethod
    def setUpClass(cls):
        # Init db
        cls.engine, cls.Session = models.get_working_db_for_tests()
        cls.db = cls.Session()

    @classmethod
    def tearDownClass(cls):
        cls.db.close()

    def query(self, handler_settings=None, **query_object):
        """ Run a Query Object, get the instances """
        return DocQuery(Product, handler_settings).with_session(self.db).query(**query_object).end().all()

    def test_projection(self):
        """ Test project() """
        with self.Session() as ssn:
            # Test: load only 2 props. The primary key is always loaded
            product = DocQuery(Product).with_session(ssn).query(project=['title', 'price']).end().first()
            self.assertEqual(inspect(product).unloaded, {'description', 'createdAt'})
            ssn.expunge_all()

            # Test: load without 1 prop
            product = DocQuery(Product).with_session(ssn).query(project={'description': 0}).end().first()
            self.assertEqual(inspect(product).unloaded, {'description'})
            ssn.expunge_all()

            # Test: no projection: everything's loaded
            product = DocQuery(Product).with_session(ssn).query().end().first()
            self.assertEqual(inspect(product).unloaded, set())
            ssn.expunge_all()

        # Test: pluck_instance() only gives the requested fields
        dq = DocQuery(Product).with_session(self.db).query(project=['title', 'price'], sort='id')
        self.assertEqual([dq.pluck_instance(p) for p in dq.end().all()], [
            {'title': 'iPhone', 'price': 150.0},
            {'title': 'Laptop Pro', 'price': 800.0},
            {'title': 'Tablet X', 'price': 300.0},
        ])

        # Test: pluck_instance() of something else
        with self.assertRaises(ValueError):
            DocQuery(Product).query().pluck_instance(object())

    def test_sort(self):
        """ Test sort() """
        self.assertEqual(ids(self.query(sort=['price+'])), [1, 3, 2])
        self.assertEqual(ids(self.query(sort=['price-'])), [2, 3, 1])
        self.assertEqual(ids(self.query(sort=[['title', 'desc']])), [1, 3, 2])  # binary collation: 'i' > 'T'

        # No sort: primary key order
        self.assertEqual(ids(self.query()), [1, 2, 3])

    def test_filter(self):
        """ Test filter() """
        # Comparisons
        self.assertEqual(ids(self.query(filter={'price': 150})), [1])
        self.assertEqual(ids(self.query(filter={'price': {'$gt': 200}})), [2, 3])
        self.assertEqual(ids(self.query(filter={'price': {'$gte': 300, '$lt': 800}})), [3])
        self.assertEqual(ids(self.query(filter={'price': {'$in': [150, 300]}})), [1, 3])
        self.assertEqual(ids(self.query(filter={'price': {'$nin': [150, 300]}})), [2])

        # Text
        self.assertEqual(ids(self.query(filter={'title': {'$prefix': 'iP'}})), [1])
        self.assertEqual(ids(self.query(filter={'title': {'$prefix': 'ip'}})), [])  # case-sensitive
        self.assertEqual(ids(self.query(filter={'title': {'$regex': 'PHONE'}})), [])
        self.assertEqual(ids(self.query(filter={'title': {'$regex': 'PHONE', '$options': 'i'}})), [1])
        self.assertEqual(ids(self.query(filter={'title': {'$regex': '^(Laptop|Tablet)'}})), [2, 3])

        # Missing values
        self.assertEqual(ids(self.query(filter={'description': None})), [3])
        self.assertEqual(ids(self.query(filter={'description': {'$exists': True}})), [1, 2])
        self.assertEqual(ids(self.query(filter={'description': {'$exists': False}})), [3])
        self.assertEqual(ids(self.query(filter={'description': {'$ne': 'A smartphone'}})), [2, 3])
        self.assertEqual(ids(self.query(filter={'description': {'$nin': ['A smartphone']}})), [2, 3])
        self.assertEqual(ids(self.query(filter={'description': {'$in': ['A smartphone', None]}})), [1, 3])
        self.assertEqual(ids(self.query(filter={'description': {'$regex': 'laptop'}})), [2])
        self.assertEqual(ids(self.query(filter={'description': {'$not': {'$regex': 'laptop'}}})), [1, 3])
        self.assertEqual(ids(self.query(filter={'$not': {'description': 'A smartphone'}})), [2, 3])

        # Boolean operators
        self.assertEqual(ids(self.query(filter={'$and': [
            {'price': {'$gt': 100}},
            {'title': {'$regex': 'phone', '$options': 'i'}},
        ]})), [1])
        self.assertEqual(ids(self.query(filter={'$or': [
            {'price': {'$gt': 500}},
            {'title': {'$regex': 'laptop', '$options': 'i'}},
        ]})), [2])
        self.assertEqual(ids(self.query(filter={'$nor': [
            {'price': {'$gt': 500}},
            {'title': {'$regex': 'tablet', '$options': 'i'}},
        ]})), [1])
        self.assertEqual(ids(self.query(filter={'price': {'$not': {'$gt': 500}}})), [1, 3])
        self.assertEqual(ids(self.query(filter={'$or': []})), [1, 2, 3])

        # Dates
        self.assertEqual(ids(self.query(filter={'createdAt': {'$lte': '2999-01-01T00:00:00Z'}})), [1, 2, 3])
        self.assertEqual(ids(self.query(filter={'createdAt': {'$lt': datetime(2000, 1, 1, tzinfo=timezone.utc)}})), [])

        # Values never make it into the SQL: they're bound parameters
        dq = DocQuery(Product).query(filter={'title': "'; DROP TABLE products; --"})
        self.assertIn('products.title = :title_1', str(dq.end().statement))
        self.assertEqual(self.query(filter={'title': "'; DROP TABLE products; --"}), [])
        self.assertEqual(len(self.query()), 3)

    def test_limit(self):
        """ Test skip & limit """
        self.assertEqual(ids(self.query(limit=2)), [1, 2])
        self.assertEqual(ids(self.query(skip=1)), [2, 3])
        self.assertEqual(ids(self.query(skip=1, limit=1)), [2])
        self.assertEqual(ids(self.query(sort='price-', skip=2, limit=10)), [1])
        self.assertEqual(ids(self.query(skip=10)), [])

        # max_items
        self.assertEqual(ids(self.query(dict(max_items=2))), [1, 2])
        self.assertEqual(ids(self.query(dict(max_items=2), limit=10)), [1, 2])

    def test_count(self):
        """ Test count """
        count = lambda handler_settings=None, **query_object: \
            DocQuery(Product, handler_settings).with_session(self.db).query(count=True, **query_object).end().scalar()

        self.assertEqual(count(), 3)
        self.assertEqual(count(filter={'price': {'$gt': 200}}), 2)
        self.assertEqual(count(filter={'title': 'NOPE'}), 0)

        # sorting, projection, and pagination are ignored
        self.assertEqual(count(sort='price-', project=['title'], skip=1, limit=1), 3)
        # max_items is ignored
        self.assertEqual(count(dict(max_items=1)), 3)

        # SQL: no ORDER BY
        dq = DocQuery(Product).query(count=True, sort='price')
        self.assertTrue(dq.result_is_scalar())
        self.assertNotIn('ORDER BY', q2sql(dq.end()))

        self.assertFalse(DocQuery(Product).query(count=False).result_is_scalar())
        self.assertFalse(DocQuery(Product).query().result_is_scalar())

    def test_from_query(self):
        """ Test from_query() """
        q = Query([Product]).filter(Product.price < 500)
        dq = DocQuery(Product).from_query(q).with_session(self.db).query(sort='price-')
        self.assertEqual(ids(dq.end().all()), [3, 1])

    def test_invalid_input(self):
        """ Test errors """
        # Unknown Query Object keys
        with self.assertRaises(InvalidQueryError):
            DocQuery(Product).query(where={'price': 1})

        # Unknown columns
        with self.assertRaises(InvalidColumnError):
            DocQuery(Product).query(sort='NOPE')
        with self.assertRaises(InvalidColumnError):
            DocQuery(Product).query(project=['NOPE'])
        with self.assertRaises(InvalidColumnError):
            DocQuery(Product).query(filter={'NOPE': 1})

        # Invalid input
        with self.assertRaises(InvalidQueryError):
            DocQuery(Product).query(filter={'price': {'$gt': 'abc'}})
        with self.assertRaises(InvalidQueryError):
            DocQuery(Product).query(limit=-1)

    def test_settings(self):
        """ Test handler settings """
        # Invalid settings
        with self.assertRaises(KeyError):
            DocQuery(Product, dict(max_itemz=1))

        # Disabled handlers
        dq = DocQuery(Product, dict(count_enabled=False, sort_enabled=False))
        with self.assertRaises(DisabledError):
            Reusable(dq).query(count=1)
        with self.assertRaises(DisabledError):
            Reusable(dq).query(sort='price')

        # ... but no input is fine
        Reusable(dq).query(filter={'price': 1})

        # Settings are given to the handlers
        dq = DocQuery(Product, dict(max_items=10, stable_sort=False, default_projection=['title']))
        self.assertEqual(dq.handler_limit.max_items, 10)
        self.assertEqual(dq.handler_sort.stable_sort, False)
        self.assertEqual(dq.handler_project.default_projection, ['title'])

    def test_reusable(self):
        """ Test Reusable() """
        rdq = Reusable(DocQuery(Product, dict(max_items=2)))

        dq1 = rdq.query(filter={'price': {'$gt': 200}})
        dq2 = rdq.query(count=True)

        # Different objects
        self.assertIsNot(dq1, dq2)
        self.assertIsNot(dq1.handler_filter, dq2.handler_filter)

        self.assertEqual(ids(dq1.with_session(self.db).end().all()), [2, 3])
        self.assertEqual(dq2.with_session(self.db).end().scalar(), 3)

        # Counting has reset max_items on a copy only
        self.assertEqual(dq1.handler_limit.max_items, 2)
        self.assertIsNone(dq2.handler_limit.max_items)

        # Still reusable
        self.assertEqual(len(rdq.with_session(self.db).query().end().all()), 2)

        # Without Reusable(), input() can only be given once
        dq = DocQuery(Product).query(sort='price')
        with self.assertRaises(RuntimeError):
            dq.query(sort='price')

    def test_get_final_query_object(self):
        """ Test get_final_query_object() """
        dq = DocQuery(Product).query(
            project=['title', 'price'],
            sort='price-',
            filter={'price': {'$gt': 100}},
            limit=2,
        )
        self.assertEqual(dq.get_final_query_object(), {
            'project': {'title': 1, 'price': 1},
            'sort': ['price-'],
            'filter': {'price': {'$gt': 100}},
            'limit': {'skip': None, 'limit': 2},
        })
