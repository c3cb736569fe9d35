import unittest
from datetime import datetime

from docquery.bag import *
from docquery.models import Product


class BagsTest(unittest.TestCase):
    """ Test bags """

    maxDiff = None

    def test_product_bags(self):
        bags = ModelPropertyBags.for_model(Product)

        self.assertEqual(bags.model, Product)
        self.assertEqual(bags.model_name, 'Product')

        # Cached
        self.assertIs(ModelPropertyBags.for_model(Product), bags)

        #=== columns
        bag = bags.columns

        self.assertEqual(bag.names, {'id', 'title', 'price', 'description', 'createdAt'})
        self.assertEqual(len(bag), 5)

        self.assertTrue('id' in bag)
        self.assertTrue('createdAt' in bag)
        self.assertFalse('created_at' in bag)  # column name, not attribute name
        self.assertFalse('NOPE' in bag)

        self.assertIs(bag['id'], Product.id)
        self.assertIs(bag['createdAt'], Product.createdAt)
        self.assertRaises(KeyError, bag.__getitem__, 'NOPE')

        self.assertEqual(bag.get_invalid_names(['id', 'title', 'NOPE']), {'NOPE'})

        # Definition order
        self.assertEqual([name for name, column in bag],
                         ['id', 'title', 'price', 'description', 'createdAt'])

        #=== python types
        self.assertIs(bag.get_python_type('id'), int)
        self.assertIs(bag.get_python_type('title'), str)
        self.assertIs(bag.get_python_type('price'), float)
        self.assertIs(bag.get_python_type('description'), str)
        self.assertIs(bag.get_python_type('createdAt'), datetime)

        #=== primary key
        self.assertEqual(bags.pk.names, {'id'})
        self.assertEqual(bags.pk.name, 'id')
        self.assertIs(bags.pk.column, Product.id)

        #=== nullable
        self.assertEqual(bags.nullable.names, {'description'})

        #=== required: NOT NULL, no default
        self.assertEqual(bags.required.names, {'title', 'price'})

        #=== writable
        self.assertEqual(bags.writable.names, bags.columns.names)

        #=== all names
        self.assertEqual(bags.all_names, {'id', 'title', 'price', 'description', 'createdAt'})
