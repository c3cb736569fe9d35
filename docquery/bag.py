from typing import Mapping, Iterable, Tuple, FrozenSet, Set

from sqlalchemy import inspect, Column, TypeDecorator
from sqlalchemy.orm import ColumnProperty
from sqlalchemy.orm.attributes import InstrumentedAttribute
from sqlalchemy.sql.type_api import TypeEngine


class ModelPropertyBags:
    """ What we know about the columns of a model

    The columns are sorted into bags:

    - `columns`: all of them
    - `pk`: the primary key
    - `nullable`: may hold NULL
    - `required`: NOT NULL, and nobody fills them in on insert but the client
    - `writable`: may be given by the client

    Handlers check field names of a Query Object against the bags;
    CrudHelper checks entity dicts against them.
    """
    __bags_per_model_cache = {}

    @classmethod
    def for_model(cls, model) -> 'ModelPropertyBags':
        """ Bags for a model: made once, then cached """
        try:
            return cls.__bags_per_model_cache[model]
        except KeyError:
            cls.__bags_per_model_cache[model] = bags = cls(model)
            return bags

    def __init__(self, model):
        """
        :type model: sqlalchemy.orm.DeclarativeMeta
        """
        insp = inspect(model)

        self.model = model
        self.model_name = model.__name__

        self.columns = self._init_columns(model, insp)
        self.pk = self._init_primary_key(model, insp)
        self.nullable = self._init_nullable_columns(model, insp)
        self.required = self._init_required_columns(model, insp)
        self.writable = self.columns

    # region: Bags

    def _init_columns(self, model, insp):
        return ColumnsBag(_get_model_columns(model, insp))

    def _init_primary_key(self, model, insp):
        return PrimaryKeyBag({name: column
                              for name, column in self.columns
                              if column.primary_key})

    def _init_nullable_columns(self, model, insp):
        return ColumnsBag({name: c
                           for name, c in self.columns
                           if c.nullable})

    def _init_required_columns(self, model, insp):
        """ NOT NULL columns without a default of any kind """
        return ColumnsBag({name: c
                           for name, c in self.columns
                           if not c.nullable
                           and not c.primary_key
                           and c.property.columns[0].default is None
                           and c.property.columns[0].server_default is None})

    # endregion

    @property
    def all_names(self) -> Set[str]:
        """ Every property name the model has """
        return set(self.columns.names)


class ColumnsBag:
    """ A named collection of model columns

    Iterate it for (name, column) pairs, or get a column with bag[name].
    """

    def __init__(self, columns: Mapping[str, InstrumentedAttribute]):
        self._columns = columns
        self._column_names = frozenset(self._columns.keys())

    @property
    def names(self) -> FrozenSet[str]:
        return self._column_names

    def __iter__(self) -> Iterable[Tuple[str, InstrumentedAttribute]]:
        return iter(self._columns.items())

    def __contains__(self, name: str) -> bool:
        return name in self._column_names

    def __getitem__(self, column_name: str) -> InstrumentedAttribute:
        return self._columns[column_name]

    def __len__(self):
        return len(self._columns)

    def get_invalid_names(self, names: Iterable[str]) -> Set[str]:
        """ The names that are not in the bag """
        return set(names) - self.names

    def get_python_type(self, name: str) -> type:
        """ What a column holds in Python: `str` for String(), `float` for Float(), and so on

        `object` for types that don't say
        """
        try:
            return _get_column_type(self._columns[name]).python_type
        except NotImplementedError:
            return object


class PrimaryKeyBag(ColumnsBag):
    """ The primary key of a model. A single column only """

    @property
    def name(self) -> str:
        assert len(self) == 1, 'Composite primary keys are not supported'
        return next(iter(self.names))

    @property
    def column(self) -> InstrumentedAttribute:
        return self[self.name]


def _get_model_columns(model, ins):
    """ {attribute name: column attribute} for the plain columns of a model """
    return {name: getattr(model, name)
            for name, c in ins.column_attrs.items()
            # column_property() expressions are not columns
            if isinstance(c, ColumnProperty) and isinstance(c.expression, Column)
            }


def _get_column_type(col: InstrumentedAttribute) -> TypeEngine:
    # A TypeDecorator wraps the real type
    if isinstance(col.type, TypeDecorator):
        return col.type.impl
    else:
        return col.type
