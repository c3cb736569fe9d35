"""
### Project Operation
The projection picks the fields to load: the column list of `SELECT`.

Either list the fields you want (*include mode*), or the fields you don't want (*exclude mode*):

```javascript
GET /products?query={"project": ["title", "price"]}
```

#### Syntax

* Array syntax: field names to be included. All the rest will be excluded.

    ```javascript
    { project: ['title', 'price'] }
    ```

* String syntax: field names separated by whitespace.
    A field prefixed with a `-` is excluded.

    ```javascript
    { project: 'title price' }
    { project: '-description' }
    ```

* Object syntax: field names mapped to either a `1` (include) or a `0` (exclude).

    ```javascript
    { project: { title: 1, price: 1 } }  // Include specific fields. All other fields are excluded
    { project: { description: 0 } }  // Exclude specific fields. All other fields are included
    ```

    You can't intermix the two: use all `1`s, or all `0`s.

#### The Primary Key

In *include mode*, the primary key is only returned when you ask for it:
`['title', 'price']` gives you `{title, price}`, and `['id', 'title']` gives you `{id, title}`.
It is fine to exclude it explicitly: `{ title: 1, id: 0 }`, or `'title -id'`.

In *exclude mode*, the primary key is returned unless it's excluded.

An empty projection, or no projection at all, returns every field.
"""

from sqlalchemy.orm import load_only

from .base import DocQueryHandlerBase
from ..exc import InvalidQueryError


class DocProject(DocQueryHandlerBase):
    """ Projection: which columns to load, and to return

        Input:

        * None: `default_projection`, or every column
        * ['a', 'b']: `a` and `b` only
        * 'a b -id': `a` and `b`; the primary key excluded
        * {'a': 1, 'b': 1}: `a` and `b` only
        * {'c': 0}: every column but `c`

        After input(), `'title' in p` tells whether a column is projected.
    """

    query_object_section_name = 'project'

    #: Include mode: only return the listed fields
    MODE_INCLUDE = +1
    #: Exclude mode: return every field except the listed ones
    MODE_EXCLUDE = -1

    def __init__(self, model, bags, default_projection=None):
        """
        :param default_projection: Used when the Query Object has no projection
        """
        super(DocProject, self).__init__(model, bags)

        self.default_projection = default_projection

        #: MODE_INCLUDE or MODE_EXCLUDE
        self.mode = None
        #: {name: 0|1}
        self._projection = None

    def _get_supported_bags(self):
        return self.bags.columns

    def input(self, projection):
        """ :type projection: None | Sequence | str | dict
            :raises InvalidQueryError
        """
        super(DocProject, self).input(projection)
        self.mode, self._projection = self._input_process(projection)
        return self

    def _input_process(self, projection):
        """ Normalize the input: (mode, {name: 0|1}) """
        if projection is None:
            projection = self.default_projection

        # Nothing: every column
        if not projection:
            return self.MODE_EXCLUDE, {}

        if isinstance(projection, str):
            projection = projection.split()

        # 'a', '+a', '-a'
        if isinstance(projection, (list, tuple)):
            if not all(isinstance(name, str) and name for name in projection):
                raise InvalidQueryError('Projection list must only contain field names')
            projection = dict(
                (name[1:], 0) if name.startswith('-') else
                (name[1:], 1) if name.startswith('+') else
                (name, 1)
                for name in projection
            )

        if not isinstance(projection, dict):
            raise InvalidQueryError('Projection must be null, a string, an array, or an object; got {}'
                                    .format(type(projection).__name__))

        # 0, 1, false, true
        if not all(v in (0, 1) and isinstance(v, (int, bool)) for v in projection.values()):
            raise InvalidQueryError('Projection values must be either 1 or 0')
        projection = {k: int(v) for k, v in projection.items()}

        self.validate_properties(projection.keys())

        pk_names = self.bags.pk.names
        values = set(projection.values())
        if values == {0}:
            return self.MODE_EXCLUDE, projection
        elif values == {1}:
            return self.MODE_INCLUDE, projection
        elif set(k for k, v in projection.items() if v == 0) <= pk_names:
            # { title: 1, id: 0 }: the primary key is left out of an inclusion anyway
            return self.MODE_INCLUDE, {k: v for k, v in projection.items() if v == 1}
        else:
            raise InvalidQueryError('Dict projection values shall be all 0s or all 1s; '
                                    'the only field that can be excluded from an inclusion projection '
                                    'is the primary key')

    def get_full_projection(self):
        """ {name: 0|1} for every column, in the order of the model

        :rtype: dict
        """
        return {name: int(name in self)
                for name in self._column_names()}

    def _column_names(self):
        return [name for name, column in self.bags.columns]

    def __contains__(self, name):
        """ Is the column projected? """
        if self.mode == self.MODE_INCLUDE:
            return name in self._projection
        else:
            return name not in self._projection

    @property
    def projection(self):
        """ A copy of the normalized input """
        return self._projection.copy()

    def compile_columns(self):
        """ The projected columns """
        return [column
                for name, column in self.bags.columns
                if name in self]

    def alter_query(self, query):
        # Everything: nothing to do
        if self.mode == self.MODE_EXCLUDE and not self._projection:
            return query

        # The ORM loads the primary key in any case
        columns = self.compile_columns() or [self.bags.pk.column]
        return query.options(load_only(*columns))

    def get_final_input_value(self):
        return self.projection

    def pluck_instance(self, instance):
        """ The projected fields of an instance, as a dict ready for JSON

            :rtype: dict
        """
        return {key: getattr(instance, key)
                for key, include in self.get_full_projection().items()
                if include}
