"""
Query Object handlers

A Query Object is a JSON object that tells the API which rows to return and how;
the operators are borrowed from [MongoDB](https://docs.mongodb.com/manual/reference/operator/query/).
It usually comes in the URL:

```
GET /products?query={"filter":{"price":{"$gte":100}}}
```

Every key is taken care of by its own handler:

* `project`: DocProject, the fields to return
* `sort`: DocSort, the order of rows
* `filter`: DocFilter, the criteria
* `skip`, `limit`: DocLimit, one page of rows
* `count`: DocCount, the number of rows instead of the rows

All of them together:

```javascript
{
  project: ['title', 'price'],
  sort: ['price-'],
  filter: {
    price: { $gte: 100 },
    title: { $regex: 'phone', $options: 'i' },
  },
  skip: 10,
  limit: 100,
}
```
"""

from .base import DocQueryHandlerBase
from .project import DocProject
from .sort import DocSort
from .filter import DocFilter, \
    FilterExpressionBase, FilterBooleanExpression, FilterColumnExpression, FilterColumnNotExpression
from .limit import DocLimit
from .count import DocCount
