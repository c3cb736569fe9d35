"""
### Slice Operation
`skip` and `limit` become `OFFSET` and `LIMIT`: one page of the results.

```javascript
GET /products?query={"skip": 20, "limit": 10}   // page 3, 10 per page
```

Both are optional: a non-negative integer, or `null`.
`limit` never goes over the `max_items` setting.
"""

from .base import DocQueryHandlerBase
from ..exc import InvalidQueryError


class DocLimit(DocQueryHandlerBase):
    """ Pagination: `skip` and `limit`

        Both keys end up here as one `(skip, limit)` tuple.
    """

    query_object_section_name = 'limit'

    def __init__(self, model, bags, max_items=None):
        """ Set up the pagination

        :param model: The model
        :param bags: Its property bags
        :param max_items: The most rows one query may load. Applied to every query, with or without a `limit`.
        """
        super(DocLimit, self).__init__(model, bags)

        self.max_items = max_items
        assert self.max_items is None or self.max_items > 0

        self.skip = None
        self.limit = None

    def input_prepare_query_object(self, query_object):
        """ Put `skip` and `limit` together under the 'limit' key

        Also, `count` has to see every row: `max_items` is lifted on this copy.
        """
        if 'skip' in query_object or 'limit' in query_object:
            pair = (query_object.pop('skip', None), query_object.pop('limit', None))
            if pair != (None, None):
                query_object['limit'] = pair

        if query_object.get('count', False):
            self.max_items = None

        return query_object

    def input(self, skip=None, limit=None):
        # From DocQuery: a (skip, limit) tuple
        if isinstance(skip, tuple):
            skip, limit = skip

        super(DocLimit, self).input((skip, limit))

        for name, value in (('skip', skip), ('limit', limit)):
            if value is not None and (isinstance(value, bool) or not isinstance(value, int) or value < 0):
                raise InvalidQueryError('Limit: `{}` must be a non-negative integer, or null'.format(name))

        # 0 is the same as nothing
        skip = skip or None
        limit = limit or None

        if self.max_items:
            limit = min(self.max_items, limit or self.max_items)

        self.skip = skip
        self.limit = limit
        return self

    def _get_supported_bags(self):
        return None  # no field names here

    @property
    def has_limit(self):
        """ Is the result paginated? """
        return self.limit is not None or self.skip is not None

    def alter_query(self, query):
        if self.skip:
            query = query.offset(self.skip)
        if self.limit:
            query = query.limit(self.limit)
        return query

    def get_final_input_value(self):
        return dict(skip=self.skip, limit=self.limit)
