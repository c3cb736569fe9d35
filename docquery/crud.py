"""
CrudHelper sits between an API endpoint and a model:
it turns the entity dicts sent by the client into validated instances,
and turns Query Objects into queries.
"""

from typing import Union, Mapping, Iterable, Set, MutableMapping

from sqlalchemy.orm import Query

from . import exc
from .bag import ModelPropertyBags
from .coerce import coerce_value
from .query import DocQuery
from .reusable import Reusable


class CrudHelper:
    """ Validation and querying for the CRUD operations of one model

        * Create: an instance from an entity dict
        * Read: a DocQuery from a Query Object
        * Update: an instance, from the fields of an entity dict

        Make one per model, and keep it: DocQuery settings are parsed when it's made.

        Values are checked against the column types; NOT NULL columns won't take a `null`.
    """

    _MODEL_PROPERTY_BAGS_CLS = ModelPropertyBags
    _DOCQUERY_CLS = DocQuery

    def __init__(self, model, **handler_settings):
        """
        :param model: The model
        :param handler_settings: DocQuery settings, see DocQuery.__init__()
        """
        self.model = model
        self.handler_settings = handler_settings
        self.bags = self._MODEL_PROPERTY_BAGS_CLS.for_model(model)
        self.reusable_docquery = Reusable(self._DOCQUERY_CLS(self.model, handler_settings))  # type: DocQuery

    def query_model(self, query_obj: Union[Mapping, None] = None, from_query: Union[Query, None] = None) -> DocQuery:
        """ A DocQuery for a Query Object sent by the client

            :param query_obj: The Query Object, or None
            :param from_query: The Query to start from
            :raises exc.InvalidColumnError: an unknown field
            :raises exc.InvalidQueryError: a malformed Query Object
            :raises exc.DisabledError: a section that handler_settings have switched off
        """
        if not isinstance(query_obj, (Mapping, NoneType)):
            raise exc.InvalidQueryError('Query Object must be either an object, or null')
        if query_obj and not all(isinstance(k, str) for k in query_obj):
            raise exc.InvalidQueryError('Query Object keys must be strings')

        return self._query_model(dict(query_obj or {}), from_query)

    def _query_model(self, query_obj: Mapping, from_query: Union[Query, None] = None) -> DocQuery:
        return self.reusable_docquery.from_query(from_query).query(**query_obj)

    def _validate_columns(self, column_names: Iterable[str], where: str) -> Set[str]:
        """ :raises exc.InvalidColumnError: not a column of the model """
        column_names = set(column_names)
        unknown = self.bags.columns.get_invalid_names(column_names)
        if unknown:
            raise exc.InvalidColumnError(self.bags.model_name, sorted(unknown)[0], where)
        return column_names

    def _validate_writable_attributes(self, attr_names: Iterable[str], where: str) -> Set[str]:
        """ :raises exc.InvalidColumnError: not a writable column """
        attr_names = set(attr_names)
        unknown = attr_names - self.bags.writable.names
        if unknown:
            raise exc.InvalidColumnError(self.bags.model_name, sorted(unknown)[0], where)
        return attr_names

    def validate_incoming_entity_dict_fields(self, entity_dict: Mapping, action: str) -> dict:
        """ Check an entity dict sent by the client

            :param action: 'create' or 'update'
            :return: A new dict: read-only fields dropped, values coerced to the column types
            :raises exc.ValidationError: not an object, or a bad value
            :raises exc.InvalidColumnError: an unknown field
        """
        if not isinstance(entity_dict, Mapping):
            raise exc.ValidationError(self.bags.model_name, action,
                                      'the value has to be an object, not {}'.format(type(entity_dict).__name__))
        entity_dict = dict(entity_dict)

        if action == 'create':
            self._remove_entity_dict_fields(entity_dict, self._fields_to_remove_on_create)
        elif action == 'update':
            self._remove_entity_dict_fields(entity_dict, self._fields_to_remove_on_update)
        else:
            raise ValueError(action)

        self._validate_writable_attributes(entity_dict.keys(), action)

        for name, value in entity_dict.items():
            entity_dict[name] = self._validate_value(name, value)

        # An update may leave them out; create may not
        if action == 'create':
            for name in sorted(self.bags.required.names):
                if entity_dict.get(name) is None:
                    raise exc.ValidationError(self.bags.model_name, name, 'the field is required')

        return entity_dict

    def _validate_value(self, name: str, value):
        if value is None:
            if name not in self.bags.nullable:
                raise exc.ValidationError(self.bags.model_name, name, 'the field can not be null')
            return None

        try:
            return coerce_value(self.bags.columns.get_python_type(name), value)
        except ValueError as e:
            raise exc.ValidationError(self.bags.model_name, name, str(e))

    @property
    def _fields_to_remove_on_create(self) -> Set[str]:
        """ Fields quietly dropped from an entity dict on create """
        return frozenset()

    @property
    def _fields_to_remove_on_update(self) -> Set[str]:
        """ Fields quietly dropped from an entity dict on update """
        return frozenset()

    def _remove_entity_dict_fields(self, entity_dict: MutableMapping, rm_fields: Set[str]):
        for k in set(entity_dict.keys()) & rm_fields:
            entity_dict.pop(k)

    def create_model(self, entity_dict: Mapping) -> object:
        """ A new instance, from an entity dict

            :raises ValidationError
            :raises InvalidColumnError
        """
        entity_dict = self.validate_incoming_entity_dict_fields(entity_dict, 'create')
        return self._create_model(entity_dict)

    def _create_model(self, entity_dict: Mapping) -> object:
        # `entity_dict` is already validated
        return self.model(**entity_dict)

    def update_model(self, entity_dict: Mapping, instance: object) -> object:
        """ Copy the fields of an entity dict onto an instance

            A partial update: the fields that aren't in the dict stay as they are.
            A `null` clears a field.

            :return: `instance`
            :raises ValidationError
            :raises InvalidColumnError
        """
        entity_dict = self.validate_incoming_entity_dict_fields(entity_dict, 'update')
        return self._update_model(entity_dict, instance)

    def _update_model(self, entity_dict: Mapping, instance: object) -> object:
        # `entity_dict` is already validated
        for name, val in entity_dict.items():
            setattr(instance, name, val)
        return instance


class StrictCrudHelper(CrudHelper):
    """ A CrudHelper with read-only fields

        Values the client gives for read-only fields are dropped, on create and on update.

        Give either:
        * `ro_fields`: these are read-only, the rest are writable; or
        * `rw_fields`: these are writable, the rest are read-only.
        Nothing given: everything is writable.
    """

    def __init__(self, model,
                 ro_fields: Union[Iterable[str], None] = None,
                 rw_fields: Union[Iterable[str], None] = None,
                 **handler_settings):
        """
            Example:

                crudhelper = StrictCrudHelper(
                    Product,
                    ro_fields=('id', 'createdAt'),
                    max_items=100,
                )
        """
        super().__init__(model, **handler_settings)
        self.ro_fields, self.rw_fields = self._init_ro_rw_fields(ro_fields, rw_fields)

    def _init_ro_rw_fields(self, ro_fields, rw_fields):
        """ :rtype: (frozenset[str], frozenset[str]) """
        if ro_fields is not None and rw_fields is not None:
            raise ValueError('Use either `ro_fields` or `rw_fields`, but not both')

        ro_fields = self._validate_columns(ro_fields or (), 'ro_fields')
        if rw_fields is not None:
            rw_fields = self._validate_writable_attributes(rw_fields, 'rw_fields')
            ro_fields = set(self.bags.all_names - rw_fields)

        rw_fields = self.bags.writable.names - ro_fields
        return frozenset(ro_fields), frozenset(rw_fields)

    @property
    def _fields_to_remove_on_create(self):
        return super()._fields_to_remove_on_create | self.ro_fields

    @property
    def _fields_to_remove_on_update(self):
        return super()._fields_to_remove_on_update | self.ro_fields


NoneType = type(None)
