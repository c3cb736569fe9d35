"""
### Sort Operation
The sort becomes the `ORDER BY` clause.

```javascript
GET /products?query={"sort": ["price-", "title+"]}   // most expensive first, then by title
```

#### Syntax

* Array syntax.

    Field names; a `-` at the end means `DESC`, a `+` or nothing means `ASC`.

    ```javascript
    { sort: [ 'a+', 'b-', 'c' ] }  // -> a ASC, b DESC, c ASC
    ```

* String syntax

    The same, separated by whitespace.

    ```javascript
    { sort: 'a+ b- c' }
    ```

* Pairs syntax

    List of `[column, direction]` pairs, where the direction is one of
    `1`, `-1`, `"asc"`, `"desc"`, `"ascending"`, `"descending"`.

    ```javascript
    { sort: [ ['price', 'desc'], ['title', 1] ] }
    ```

* Object syntax, with one column only: object keys do not have a stable order.

    ```javascript
    { sort: { price: -1 } }
    ```

Rows that compare equal are always ordered by the primary key, ascending:
this makes the ordering of the results deterministic.
"""

from collections import OrderedDict

from .base import DocQueryHandlerBase
from ..exc import InvalidQueryError


class DocSort(DocQueryHandlerBase):
    """ Sorting

        Input:

        * None: primary key order
        * 'a b-', or ['a+', 'b-']
        * [['a', 'asc'], ['b', -1]]
        * OrderedDict(a=+1, b=-1)
        * {'a': -1}: a plain dict, one key only
    """

    query_object_section_name = 'sort'

    #: Direction names, mapped to +1 or -1
    DIRECTIONS = {
        1: +1, -1: -1,
        'asc': +1, 'desc': -1,
        'ascending': +1, 'descending': -1,
    }

    def __init__(self, model, bags, stable_sort=True):
        """
        :param stable_sort: Add the primary key to every ORDER BY, unless already there
        """
        super(DocSort, self).__init__(model, bags)

        self.stable_sort = stable_sort

        #: OrderedDict: {name: +1|-1}
        self.sort_spec = None

    def _get_supported_bags(self):
        return self.bags.columns

    def _input(self, spec):
        if not spec:
            spec = []

        if isinstance(spec, str):
            spec = spec.split()

        if isinstance(spec, (list, tuple)):
            spec = OrderedDict(self._parse_list_item(v) for v in spec)

        if isinstance(spec, OrderedDict):
            pass
        elif isinstance(spec, dict):
            # JSON objects have no defined key order
            if len(spec) > 1:
                raise InvalidQueryError('{}: an object may only have one field; '
                                        'use an array to sort by several'
                                        .format(self.query_object_section_name))
            spec = OrderedDict((field, self._parse_direction(d)) for field, d in spec.items())
        else:
            raise InvalidQueryError('{}: expected an array, a string, or an object; got {}'
                                    .format(self.query_object_section_name, type(spec).__name__))

        self.validate_properties(spec.keys())
        return spec

    def _parse_list_item(self, v):
        """ 'a+', or ['a', 'desc'] -> (name, +1|-1) """
        if isinstance(v, str):
            if not v:
                raise InvalidQueryError('{}: empty column name'.format(self.query_object_section_name))
            if v[-1] in {'+', '-'}:
                return v[:-1], -1 if v[-1] == '-' else +1
            return v, +1

        # [column, direction]
        if isinstance(v, (list, tuple)) and len(v) == 2 and isinstance(v[0], str):
            return v[0], self._parse_direction(v[1])

        raise InvalidQueryError('{}: list items must be either strings or [column, direction] pairs; {!r} provided'
                                .format(self.query_object_section_name, v))

    def _parse_direction(self, d):
        # True == 1 in Python, but it's not a direction
        if isinstance(d, bool) or not isinstance(d, (int, str)):
            d = None
        elif isinstance(d, str):
            d = d.lower()

        try:
            return self.DIRECTIONS[d]
        except KeyError:
            raise InvalidQueryError('{} direction can be either +1 or -1, "asc" or "desc"'
                                    .format(self.query_object_section_name))

    def input(self, sort_spec):
        super(DocSort, self).input(sort_spec)
        self.sort_spec = self._input(sort_spec)
        return self

    def compile_columns(self):
        columns = [
            self.supported_bags[name].desc() if d == -1 else self.supported_bags[name].asc()
            for name, d in self.sort_spec.items()
        ]

        # Ties: by the primary key
        if self.stable_sort:
            columns.extend(column.asc()
                           for name, column in self.bags.pk
                           if name not in self.sort_spec)

        return columns

    def alter_query(self, query):
        return query.order_by(*self.compile_columns())

    def get_final_input_value(self):
        return ['{}{}'.format(name, '-' if d == -1 else '+')
                for name, d in self.sort_spec.items()]
