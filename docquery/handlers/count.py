"""
### Count Operation
`{"count": 1}` gives the number of matching rows instead of the rows: `SELECT COUNT(...)`.

`0`, `false` or `null` turn it off.
"""

from sqlalchemy import func

from .base import DocQueryHandlerBase
from ..exc import InvalidQueryError


class DocCount(DocQueryHandlerBase):
    """ Counting: `count=True` """

    query_object_section_name = 'count'

    def __init__(self, model, bags):
        super(DocCount, self).__init__(model, bags)

        self.count = None

    def input_prepare_query_object(self, query_object):
        # Ordering, projection and pagination do not change the count
        if query_object.get('count', False):
            for key in ('sort', 'project', 'skip', 'limit'):
                query_object.pop(key, None)
            # max_items is lifted by DocLimit.input_prepare_query_object()

        return query_object

    def input(self, count=None):
        super(DocCount, self).input(count)
        if count not in (None, True, False, 0, 1):
            raise InvalidQueryError('Count: expected true, false, 1 or 0; got {!r}'.format(count))

        self.count = bool(count)
        return self

    def _get_supported_bags(self):
        return None  # no field names here

    def alter_query(self, query):
        if self.count:
            # COUNT(pk) keeps the table in FROM even when there's no WHERE
            query = query.order_by(None).with_entities(func.count(self.bags.pk.column))
        return query
