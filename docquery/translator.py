""" Query Translator: document-style operations on a collection of records

QueryTranslator turns Query Objects and entity dicts into SqlAlchemy queries,
runs them, and returns plain dicts ready for JSON encoding.

Example:

    engine, Session = init_database('sqlite:///products.db')
    products = QueryTranslator(Session)

    products.insert({'title': 'iPhone', 'price': 150})
    products.find_all(filter={'price': {'$gt': 100}}, sort='price-', project=['title', 'price'])
    products.count({'title': {'$regex': 'phone', '$options': 'i'}})
"""

import logging
from contextlib import contextmanager
from typing import Mapping, Optional, Union, List, Tuple

from sqlalchemy import exc as sa_exc

from . import exc
from .coerce import coerce_value
from .crud import StrictCrudHelper
from .deadline import Deadline
from .models import Product

logger = logging.getLogger(__name__)


#: SqlAlchemy errors that mean that the store can't be reached
CONNECTIVITY_ERRORS = (
    sa_exc.OperationalError,
    sa_exc.InterfaceError,
    sa_exc.DisconnectionError,
    sa_exc.TimeoutError,
)


class QueryTranslator:
    """ Document-style CRUD on top of an SqlAlchemy model

        The translator keeps no state between calls: every operation uses its own Session,
        so one object can be shared between threads.

        Every operation accepts an optional `deadline` (see: Deadline),
        which is checked before and after the store is called.

        Failures:

        * InvalidQueryError, InvalidColumnError: malformed Query Object
        * ValidationError: invalid entity dict
        * NotFound: no record has the given id
        * StoreUnavailable: the store can't be reached
        * QueryTimeout, Cancelled: the deadline has expired, or the call was cancelled
        * InternalError: any other failure of the store
    """

    # The class to use for validating entity dicts and making queries
    _CRUDHELPER_CLS = StrictCrudHelper

    def __init__(self, Session, model=Product, **handler_settings):
        """ Init the translator

        :param Session: Session factory (a sessionmaker)
        :param model: The model to work with
        :param handler_settings: Settings for DocQuery, e.g. `max_items`
        """
        self.Session = Session
        self.model = model
        self.crudhelper = self._CRUDHELPER_CLS(model,
                                               ro_fields=getattr(model, 'ro_fields', None),
                                               **handler_settings)
        self.model_name = self.crudhelper.bags.model_name
        self.pk_name = self.crudhelper.bags.pk.name

    # region Write

    def insert(self, entity_dict: Mapping, deadline: Optional[Deadline] = None) -> dict:
        """ Create a record

        :param entity_dict: The fields of the new record. Read-only fields are ignored.
        :return: The stored record, with its `id` and `createdAt`
        :raises ValidationError: a required field is missing, or a value has the wrong type
        :raises InvalidColumnError: unknown field
        """
        instance = self.crudhelper.create_model(entity_dict)

        with self._store_call('insert', deadline, write=True) as ssn:
            with ssn.begin():
                ssn.add(instance)
                ssn.flush()
                record = self._pluck(instance)
                _check(deadline, 'insert')

        logger.debug('Inserted %s %s=%r', self.model_name, self.pk_name, record[self.pk_name])
        return record

    def update_by_id(self, id, entity_dict: Mapping, deadline: Optional[Deadline] = None) -> dict:
        """ Partially update a record: only the given fields are changed

        :return: The updated record
        :raises NotFound: no such record
        :raises ValidationError: invalid value
        :raises InvalidColumnError: unknown field
        """
        id = self._validate_id(id)
        entity_dict = self.crudhelper.validate_incoming_entity_dict_fields(entity_dict, 'update')

        with self._store_call('update_by_id', deadline, write=True) as ssn:
            with ssn.begin():
                instance = self._get_instance(ssn, id)
                self.crudhelper._update_model(entity_dict, instance)
                ssn.flush()
                record = self._pluck(instance)
                _check(deadline, 'update_by_id')

        logger.debug('Updated %s %s=%r: %s', self.model_name, self.pk_name, id, sorted(entity_dict))
        return record

    def delete_by_id(self, id, deadline: Optional[Deadline] = None) -> None:
        """ Delete a record

        :raises NotFound: no such record
        """
        id = self._validate_id(id)

        with self._store_call('delete_by_id', deadline, write=True) as ssn:
            with ssn.begin():
                ssn.delete(self._get_instance(ssn, id))
                ssn.flush()
                _check(deadline, 'delete_by_id')

        logger.debug('Deleted %s %s=%r', self.model_name, self.pk_name, id)

    # endregion

    # region Read

    def find_many(self, query_object: Optional[Mapping] = None,
                  deadline: Optional[Deadline] = None) -> Union[List[dict], int]:
        """ Run a Query Object

        :param query_object: { filter, sort, project, skip, limit, count }
        :return: The list of records; or, with `count`, the number of matching records
        :raises InvalidQueryError: malformed Query Object
        :raises InvalidColumnError: unknown field
        """
        dq = self.crudhelper.query_model(query_object)

        logger.debug('find_many %s: %r', self.model_name, query_object)
        with self._store_call('find_many', deadline) as ssn:
            q = dq.with_session(ssn).end()
            if dq.result_is_scalar():
                return q.scalar()
            return [dq.pluck_instance(instance) for instance in q.all()]

    def find_all(self, filter: Optional[Mapping] = None, sort=None, project=None,
                 skip: Optional[int] = None, limit: Optional[int] = None,
                 deadline: Optional[Deadline] = None) -> List[dict]:
        """ Find records

        An empty result is not an error: it's an empty list.

        :param filter: Filter expression
        :param sort: Sort spec
        :param project: Projection spec
        :param skip: Skip this many records
        :param limit: Return at most this many records
        """
        return self.find_many(_query_object(filter=filter, sort=sort, project=project, skip=skip, limit=limit),
                              deadline=deadline)

    def find_by_id(self, id, project=None, deadline: Optional[Deadline] = None) -> dict:
        """ Get one record

        :param project: Projection spec
        :raises NotFound: no such record
        """
        id = self._validate_id(id)
        dq = self.crudhelper.query_model(_query_object(filter={self.pk_name: id}, project=project))

        logger.debug('find_by_id %s %s=%r', self.model_name, self.pk_name, id)

        with self._store_call('find_by_id', deadline) as ssn:
            instance = dq.with_session(ssn).end().one_or_none()
            if instance is None:
                raise exc.NotFound(self.model_name, id)
            return dq.pluck_instance(instance)

    def count(self, filter: Optional[Mapping] = None, deadline: Optional[Deadline] = None) -> int:
        """ Count the records that match a filter """
        return self.find_many(_query_object(filter=filter, count=True), deadline=deadline)

    def find_and_count(self, filter: Optional[Mapping] = None, sort=None, project=None,
                       deadline: Optional[Deadline] = None) -> Tuple[int, List[dict]]:
        """ Find records, and count them

        :return: (total, records)
        """
        count_dq = self.crudhelper.query_model(_query_object(filter=filter, count=True))
        find_dq = self.crudhelper.query_model(_query_object(filter=filter, sort=sort, project=project))

        logger.debug('find_and_count %s: %r', self.model_name, filter)

        with self._store_call('find_and_count', deadline) as ssn:
            total = count_dq.with_session(ssn).end().scalar()
            records = [find_dq.pluck_instance(instance)
                       for instance in find_dq.with_session(ssn).end().all()]
        return total, records

    # endregion

    def _validate_id(self, id):
        """ An id of the wrong type can't name a record

        :raises NotFound: `id` does not fit the primary key
        """
        try:
            if id is None:
                raise ValueError(id)
            return coerce_value(self.crudhelper.bags.columns.get_python_type(self.pk_name), id)
        except ValueError:
            raise exc.NotFound(self.model_name, id)

    def _get_instance(self, ssn, id):
        """ Load an instance by its primary key

        :raises NotFound: no such record
        """
        instance = ssn.get(self.model, id)
        if instance is None:
            raise exc.NotFound(self.model_name, id)
        return instance

    def _pluck(self, instance) -> dict:
        """ Make a complete record out of an instance """
        return self.crudhelper.query_model(None).pluck_instance(instance)

    @contextmanager
    def _store_call(self, operation: str, deadline: Optional[Deadline] = None, write: bool = False):
        """ Open a Session for one operation, and convert the errors of the store

        Writes check the deadline themselves, before the commit: see _check()

        :raises StoreUnavailable: connectivity failure
        :raises InternalError: any other failure of the store
        :raises QueryTimeout, Cancelled: see Deadline.check()
        """
        _check(deadline, operation)

        try:
            with self.Session() as ssn:
                yield ssn
        except CONNECTIVITY_ERRORS as e:
            logger.warning('%s %s: store unavailable: %s', self.model_name, operation, e)
            raise exc.StoreUnavailable('The store is unavailable') from e
        except sa_exc.SQLAlchemyError as e:
            logger.warning('%s %s failed: %s', self.model_name, operation, e)
            raise exc.InternalError('{} {} failed'.format(self.model_name, operation)) from e

        if not write:
            _check(deadline, operation)

    def __repr__(self):
        return '{}({})'.format(self.__class__.__name__, self.model_name)


def _check(deadline: Optional[Deadline], operation: str):
    """ Stop the operation if its deadline has expired, or it was cancelled

    Within `ssn.begin()`, the error rolls the transaction back.
    """
    if deadline is not None:
        deadline.check(operation)


def _query_object(**query_object) -> dict:
    """ Make a Query Object, leaving out the sections that weren't given """
    return {k: v for k, v in query_object.items() if v is not None}
