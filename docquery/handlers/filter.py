"""
### Filter Operation
The filter becomes the `WHERE` clause.

```javascript
GET /products?query={"filter": {
    "price": { "$gte": 100, "$lte": 500 },
    "title": { "$regex": "phone", "$options": "i" }
}}
```

Keys of one object must all hold: they're joined with `AND`.

#### Field Operators

* `{ a: 1 }`, `{ a: { $eq: 1 } }`: `a` equals 1
* `{ a: null }`: `a` is missing (`IS NULL`)
* `{ a: { $ne: 1 } }`: `a` is not 1, or is missing
* `{ a: { $lt: 1 } }`, `$lte`, `$gt`, `$gte`: `<`, `<=`, `>`, `>=`
* `{ a: { $in: [1, 2] } }`: one of the values
* `{ a: { $nin: [1, 2] } }`: none of the values, or missing
* `{ a: { $exists: true } }`: `a` has a value. `false`: it doesn't
* `{ a: { $prefix: 'ab' } }`: `a` starts with 'ab'; case matters
* `{ a: { $regex: 'ab', $options: 'i' } }`: `a` matches the regular expression.
    `$options` flags: `i` ignore case, `m` multiline, `s` `.` matches a newline, `x` verbose
* `{ a: { $not: { $gt: 1 } } }`: the nested operators do not hold

#### Boolean Operators

* `{ $and: [ {...}, {...} ] }`: every one holds
* `{ $or: [ {...}, {...} ] }`: at least one holds
* `{ $nor: [ {...}, {...} ] }`: none of them holds
* `{ $not: {...} }`: it does not hold

A missing value fails every comparison, and therefore passes a negated one, like in MongoDB:

```javascript
{ $not: { price: { $gt: 500 } } }  // products without a price are in
```
"""

import re

from sqlalchemy.sql.expression import and_, or_, not_, true
from sqlalchemy.sql.functions import func

from .base import DocQueryHandlerBase
from ..coerce import coerce_value
from ..exc import InvalidQueryError, InvalidColumnError


# region Parsed filter

def _is_array(value):
    return isinstance(value, (list, tuple, set, frozenset))


def _all_of(clauses):
    """ AND the clauses; `true()` when there are none """
    if not clauses:
        return true()
    cc = and_(*clauses)
    return cc.self_group() if len(clauses) > 1 else cc


class FilterExpressionBase:
    """ A node of a parsed filter: compile_expression() turns it into SQL """

    __slots__ = ('operator_str', 'value')

    def __init__(self, operator_str, value):
        self.operator_str = operator_str
        self.value = value

    def compile_expression(self):
        raise NotImplementedError()


class FilterBooleanExpression(FilterExpressionBase):
    """ `$and`, `$or`, `$nor` over a list of sub-filters; `$not` over one

        `value`: a list of sub-filters for `$and/$or/$nor`, where every sub-filter is a list of nodes;
        for `$not`, a single list of nodes.
    """

    def __repr__(self):
        return '({}: {})'.format(self.operator_str, self.value)

    def compile_expression(self):
        op = self.operator_str
        if op == '$not':
            return not_(_all_of([node.compile_expression() for node in self.value]))

        subfilters = [_all_of([node.compile_expression() for node in nodes])
                      for nodes in self.value]
        if op == '$and':
            combined = and_(*subfilters)
        elif op in ('$or', '$nor'):
            combined = or_(*subfilters)
        else:
            raise NotImplementedError('Unknown operator: {}'.format(op))

        if len(subfilters) > 1:
            combined = combined.self_group()
        return not_(combined) if op == '$nor' else combined


class FilterColumnExpression(FilterExpressionBase):
    """ One operator applied to one column: `price $gt 100` """

    __slots__ = ('column_name', 'column', 'operator_lambda')

    def __init__(self, column_name, column, operator_str, operator_lambda, value):
        """
        :param column_name: The field name from the filter
        :param column: The column attribute
        :param operator_str: e.g. '$gt'
        :param operator_lambda: (column, value) -> SQL expression
        :param value: The argument, validated and coerced
        """
        super(FilterColumnExpression, self).__init__(operator_str, value)
        self.column_name = column_name
        self.column = column
        self.operator_lambda = operator_lambda

    def __repr__(self):
        return '{} {} {!r}'.format(self.column_name, self.operator_str, self.value)

    def compile_expression(self):
        return self.operator_lambda(self.column, self.value)


class FilterColumnNotExpression(FilterExpressionBase):
    """ `{ price: { $not: { $gt: 500 } } }`: `value` holds the nodes for the nested operators """

    __slots__ = ('column_name',)

    def __init__(self, column_name, value):
        super(FilterColumnNotExpression, self).__init__('$not', value)
        self.column_name = column_name

    def __repr__(self):
        return '{} $not {}'.format(self.column_name, self.value)

    def compile_expression(self):
        return not_(_all_of([node.compile_expression() for node in self.value]))


class LiteralExpression(FilterExpressionBase):
    """ A ready SQL expression: what a callable `force_filter` gives """
    __slots__ = ('expression',)

    def __init__(self, expression):
        self.expression = expression

    def __repr__(self):
        return '{}({!r})'.format(self.__class__.__name__, str(self.expression))

    def compile_expression(self):
        return self.expression

# endregion


# region Operators

def _not_null(col, expression):
    """ A comparison that is false, never NULL, for a missing value

        So `NOT (price > 500)` keeps the rows that have no price.
    """
    return and_(col.isnot(None), expression)


def _op_eq(col, val):
    return col.is_(None) if val is None else _not_null(col, col == val)


def _op_ne(col, val):
    # IS DISTINCT FROM: true for NULL, where `!=` gives NULL
    return col.isnot(None) if val is None else col.is_distinct_from(val)


def _op_in(col, val):
    values = [v for v in val if v is not None]
    cc = _not_null(col, col.in_(values))
    if len(values) != len(val):
        return or_(col.is_(None), cc)
    return cc


def _op_nin(col, val):
    values = [v for v in val if v is not None]
    if len(values) != len(val):
        return and_(col.isnot(None), col.notin_(values))
    return or_(col.is_(None), col.notin_(values))


def _op_prefix(col, val):
    # not LIKE: it ignores case on some databases
    return _not_null(col, func.substr(col, 1, len(val)) == val)


def _op_regex(col, val):
    pattern, options = val
    if options:
        pattern = '(?{}){}'.format(options, pattern)
    return _not_null(col, col.regexp_match(pattern))

# endregion


class DocFilter(DocQueryHandlerBase):
    """ Filter: MongoDB-style criteria, validated and compiled to a WHERE clause """

    query_object_section_name = 'filter'

    def __init__(self, model, bags, force_filter=None):
        """
        :param model: The model
        :param bags: Its property bags
        :param force_filter: A condition added to every query. Either:
            * criteria, in the same syntax as the filter; or
            * `lambda model: [expressions]`, for SqlAlchemy expressions.
        """
        super(DocFilter, self).__init__(model, bags)

        #: Parsed input: a list of FilterExpressionBase, ANDed together
        self.expressions = None

        if isinstance(force_filter, dict):
            # Fail early on bad criteria
            self._parse_criteria(force_filter)
        elif not (force_filter is None or callable(force_filter)):
            raise ValueError(force_filter)
        self.force_filter = force_filter

    def _get_supported_bags(self):
        return self.bags.columns

    #: Column operators: name -> (column, value) -> SQL
    _operators = {
        '$eq': _op_eq,
        '$ne': _op_ne,
        '$lt': lambda col, val: _not_null(col, col < val),
        '$lte': lambda col, val: _not_null(col, col <= val),
        '$gt': lambda col, val: _not_null(col, col > val),
        '$gte': lambda col, val: _not_null(col, col >= val),
        '$in': _op_in,
        '$nin': _op_nin,
        '$exists': lambda col, val: col.isnot(None) if val else col.is_(None),
        '$prefix': _op_prefix,
        '$regex': _op_regex,
    }

    #: Take an array
    _operators_require_array_value = frozenset(('$in', '$nin'))
    #: Compare by order: a null makes no sense
    _operators_ordering = frozenset(('$lt', '$lte', '$gt', '$gte'))
    #: Text columns only
    _operators_string = frozenset(('$prefix', '$regex'))
    #: Combine other criteria
    _boolean_operators = frozenset(('$and', '$or', '$nor', '$not'))

    #: Flags for $options
    _regex_options = frozenset('imsx')

    def input(self, criteria):
        super(DocFilter, self).input(criteria)
        self.expressions = self._parse_criteria(criteria)

        if isinstance(self.force_filter, dict):
            self.expressions.extend(self._parse_criteria(self.force_filter))
        elif callable(self.force_filter):
            self.expressions.extend(LiteralExpression(e) for e in self.force_filter(self.model))

        return self

    def _parse_criteria(self, criteria):
        """ Validate criteria and turn them into a list of nodes

        Nothing is compiled here: a bad filter is refused before a query is made.

        :type criteria: dict | None
        :rtype: list[FilterExpressionBase]
        """
        if not criteria:
            return []
        if not isinstance(criteria, dict):
            raise InvalidQueryError('Filter must be an object or null, not {}'.format(type(criteria).__name__))
        self._validate_keys(criteria)

        nodes = []
        for key, arg in criteria.items():
            if key in self._boolean_operators:
                node = self._parse_boolean_operator(key, arg)
                if node is not None:
                    nodes.append(node)
            elif key.startswith('$'):
                raise InvalidQueryError('Unsupported operator "{}" found in filter'.format(key))
            elif key not in self.supported_bags:
                raise InvalidColumnError(self.bags.model_name, key, self.query_object_section_name)
            else:
                nodes.extend(self._parse_column_criteria(key, arg))
        return nodes

    def _parse_column_criteria(self, column_name, criteria):
        """ Criteria for one column: `{ $gt: 18, $lt: 25 }`, or a plain value

        :rtype: list[FilterExpressionBase]
        """
        column = self.supported_bags[column_name]

        if isinstance(criteria, dict):
            self._validate_keys(criteria)

        # A plain value means $eq
        if not isinstance(criteria, dict) or not any(k.startswith('$') for k in criteria):
            criteria = {'$eq': criteria}

        # $options goes with $regex
        criteria = dict(criteria)
        regex_options = criteria.pop('$options', None)
        if regex_options is not None and '$regex' not in criteria:
            raise InvalidQueryError('Filter: $options requires $regex for column `{}`'.format(column_name))

        nodes = []
        for operator, value in criteria.items():
            if operator == '$not':
                if not isinstance(value, dict) or not value:
                    raise InvalidQueryError('Filter: $not argument must be a non-empty object for column `{}`'
                                            .format(column_name))
                nodes.append(FilterColumnNotExpression(column_name, self._parse_column_criteria(column_name, value)))
                continue

            operator_lambda = self._operators.get(operator)
            if operator_lambda is None:
                raise InvalidQueryError('Unsupported operator "{}" found in filter for column `{}`'
                                        .format(operator, column_name))

            if operator in self._operators_string:
                self._validate_text_column(column_name, operator)
            if operator == '$regex':
                value = (self._validate_regex(column_name, value), self._validate_regex_options(regex_options))
            else:
                value = self._validate_operator_value(column_name, operator, value)

            nodes.append(FilterColumnExpression(column_name, column, operator, operator_lambda, value))
        return nodes

    def _parse_boolean_operator(self, op, arg):
        """ `$not: {...}`, or `$and/$or/$nor: [{...}, ...]`

            :return: A node, or None for an empty list
        """
        section = self.query_object_section_name

        if op == '$not':
            if not isinstance(arg, dict) or not arg:
                raise InvalidQueryError('{}: $not argument must be a non-empty object'.format(section))
            return FilterBooleanExpression(op, self._parse_criteria(arg))

        if not isinstance(arg, (list, tuple)):
            raise InvalidQueryError('{}: {} argument must be a list'.format(section, op))
        if not all(isinstance(item, dict) for item in arg):
            raise InvalidQueryError('{}: {} items must be objects'.format(section, op))
        if not arg:
            return None

        return FilterBooleanExpression(op, [self._parse_criteria(item) for item in arg])

    @staticmethod
    def _validate_keys(criteria):
        if not all(isinstance(key, str) for key in criteria):
            raise InvalidQueryError('Filter keys must be strings')

    def _validate_operator_value(self, column_name, operator, value):
        """ Check the argument of an operator, and coerce it to the column type

        :raises InvalidQueryError
        """
        if operator == '$exists':
            if not isinstance(value, bool):
                raise InvalidQueryError('Filter: $exists argument must be a boolean for column `{}`'
                                        .format(column_name))
            return value

        if operator in self._operators_require_array_value:
            if not _is_array(value):
                raise InvalidQueryError('Filter: {} argument must be an array for column `{}`'
                                        .format(operator, column_name))
            return [self._coerce_value(column_name, operator, v) for v in value]

        if value is None and (operator in self._operators_ordering or operator in self._operators_string):
            raise InvalidQueryError('Filter: {} argument cannot be null for column `{}`'
                                    .format(operator, column_name))

        return self._coerce_value(column_name, operator, value)

    def _validate_text_column(self, column_name, operator):
        if not issubclass(self.supported_bags.get_python_type(column_name), str):
            raise InvalidQueryError('Filter: {} can only be used with text columns; `{}` is not one'
                                    .format(operator, column_name))

    def _coerce_value(self, column_name, operator, value):
        try:
            return coerce_value(self.supported_bags.get_python_type(column_name), value)
        except ValueError as e:
            raise InvalidQueryError('Filter: {} argument for column `{}` {}'
                                    .format(operator, column_name, e))

    @staticmethod
    def _validate_regex(column_name, pattern):
        if not isinstance(pattern, str):
            raise InvalidQueryError('Filter: $regex argument must be a string for column `{}`'.format(column_name))
        try:
            re.compile(pattern)
        except re.error as e:
            raise InvalidQueryError('Filter: invalid $regex for column `{}`: {}'.format(column_name, e))
        return pattern

    def _validate_regex_options(self, options):
        """ Flags, deduplicated and sorted: 'ii' -> 'i' """
        if options is None:
            return ''
        if not isinstance(options, str) or not set(options) <= self._regex_options:
            raise InvalidQueryError('Filter: $options may only contain the following flags: {}'
                                    .format(''.join(sorted(self._regex_options))))
        return ''.join(sorted(set(options)))

    def compile_statement(self):
        """ The WHERE condition

        :rtype: sqlalchemy.sql.elements.ColumnElement
        """
        return _all_of([node.compile_expression() for node in self.expressions])

    def alter_query(self, query):
        # No criteria: no WHERE at all, not `WHERE true`
        if self.expressions:
            query = query.filter(self.compile_statement())
        return query
