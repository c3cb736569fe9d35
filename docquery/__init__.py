"""
docquery is a Products REST API built on a JSON query engine that lets you query
[SqlAlchemy](http://www.sqlalchemy.org/) like a MongoDB database.

The API user sends a JSON Query Object along with the REST request,
which controls the way the result set is generated:

```javascript
$.get('/products?query=' + JSON.stringify({
    sort: ['price-'],  // sort by `price` DESC
    filter: { price: { $gte: 100 } },  // filter: price >= 100
    project: ['title', 'price'],  // only these fields
    limit: 10,  // limit to 10 rows
}))
```

Filters are validated before they reach the database: unknown fields, unknown operators
and values of a wrong type are rejected, and values are always sent as bound parameters.
"""

# Exceptions that are used here and there
from .exc import *

# docquery needs some information about the columns of your models.
# All this is handled by the following class:
from .bag import ModelPropertyBags

# The heart of docquery are the handlers:
# that's where your JSON objects are converted to actual SqlAlchemy queries!
from . import handlers

# DocQuery parses your Query Object and applies the handlers
from .query import DocQuery
from .reusable import Reusable

# CrudHelper validates entity dicts for creation and modification
from .crud import CrudHelper, StrictCrudHelper

# The translator runs queries: document-style operations on a collection of records
from .deadline import Deadline
from .translator import QueryTranslator

# The model
from .models import Base, Product
