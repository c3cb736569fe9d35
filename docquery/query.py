from copy import copy

from sqlalchemy import inspect
from sqlalchemy.orm import Query

from .bag import ModelPropertyBags
from . import handlers
from .exc import InvalidQueryError
from .settings import DocQuerySettingsHandler


class DocQuery(object):
    """ Document-style queries for an SqlAlchemy model

        Usage:

            DocQuery(Product).with_session(ssn).query(
                filter={'price': {'$gt': 100}},
                sort=['price-'],
            ).end().all()
    """

    #: Bags class: override to analyze models differently
    _MODEL_PROPERTY_BAGS_CLS = ModelPropertyBags

    def __init__(self, model, handler_settings=None):
        """ Prepare a query for `model`

        :param model: The SqlAlchemy model to query
        :type model: sqlalchemy.orm.DeclarativeMeta
        :param handler_settings: A flat dict of settings for all handlers.
            Every key is an argument of some handler's __init__(),
            and `DocQuerySettingsHandler` figures out which handler takes it.

            A handler is switched off with `<name>_enabled=False`, e.g. `count_enabled=False`:
            giving it any input then raises DisabledError.

            Available settings:
                # project
                    default_projection=None
                # filter
                    force_filter=None
                # sort
                    stable_sort=True
                # limit
                    max_items=None
                # switches
                    project_enabled, filter_enabled, sort_enabled, limit_enabled, count_enabled
        :type handler_settings: dict | None
        """
        if inspect(model).is_aliased_class:
            raise AssertionError('DocQuery does not accept aliases')

        self._model = model
        self._bags = self._MODEL_PROPERTY_BAGS_CLS.for_model(self._model)
        self._handler_settings = DocQuerySettingsHandler(handler_settings or {})

        #: The query to start from. See: from_query()
        self._query = None  # type: Query | None

        self._init_query_object_handlers()

        # __copy__() has to deal with every attribute that is modified by query()

    def __copy__(self):
        """ Copy the query, and its handlers: Reusable() relies on it

            Settings are parsed once, and every copy gets fresh handlers that haven't seen any input yet.
        """
        cls = self.__class__
        result = cls.__new__(cls)
        result.__dict__.update(self.__dict__)

        # Handlers hold the input: each copy gets its own
        for name in self.HANDLER_ATTR_NAMES:
            setattr(result, name, copy(getattr(result, name)))

        # A copy starts with no query
        result._query = None

        return result

    def from_query(self, query):
        """ Start from an existing query instead of a blank one

        Use it to apply conditions of your own before the Query Object's.

        :param query: The query to start from, or None for the default one
        :type query: sqlalchemy.orm.Query | None
        """
        self._query = query
        return self

    def with_session(self, ssn):
        """ Bind the query to a Session """
        self._query = self._from_query().with_session(ssn)
        return self

    def query(self, **query_object):
        """ Give the Query Object to the handlers

        :param project: Projection
        :param sort: Sorting
        :param filter: Filter criteria
        :param skip: Number of rows to skip
        :param limit: Max number of rows
        :param count: Return the number of rows instead
        :raises InvalidQueryError: a section is unknown, or malformed
        :raises InvalidColumnError: a field name is unknown
        :raises DisabledError: input for a handler that's switched off
        :rtype: DocQuery
        """
        # Handlers may rewrite the Query Object before anybody sees it
        for handler_name, handler in self._handlers():
            query_object = handler.input_prepare_query_object(query_object)

        unknown_keys = set(query_object.keys()) - self.HANDLER_NAMES
        if unknown_keys:
            raise InvalidQueryError('Unknown Query Object operations: {}'.format(', '.join(sorted(unknown_keys))))

        # Every handler gets an input, even an empty one: it may have defaults to apply
        for handler_name, handler in self._handlers():
            handler.with_docquery(self)
            section = query_object.get(handler_name, None)

            if section is not None:
                self._handler_settings.raise_if_not_handler_enabled(self._bags.model_name, handler_name)

            handler.input(section)

        return self

    def end(self):
        """ Build the SqlAlchemy query

        :rtype: sqlalchemy.orm.Query
        """
        q = self._from_query()
        for handler_name, handler in self._handlers():
            q = handler.alter_query(q)
        return q

    def result_is_scalar(self):
        """ Does the query give a single value instead of rows?

            That's the case with `count`:

                n = DocQuery(...).end().scalar()

            :rtype: bool
        """
        return not self.handler_count.is_input_empty()

    def get_final_query_object(self):
        """ The Query Object the way the handlers have understood it: for logging and debugging

            :rtype: dict
        """
        return {name: handler.get_final_input_value()
                for name, handler in self._handlers()
                if handler.input_received and not handler.is_input_empty()}

    def pluck_instance(self, instance):
        """ Make a dict of an instance, with only the fields that the projection asks for

            Fields that your code has loaded for its own purposes do not leak into the output.

            :param instance: An instance of the model
            :rtype: dict
            :raises ValueError: an instance of some other class
        """
        if not isinstance(instance, self._bags.model):
            raise ValueError('{!r}.pluck_instance() expects {}, got {}'
                             .format(self, self._bags.model_name, type(instance).__name__))
        return self.handler_project.pluck_instance(instance)

    def __repr__(self):
        return 'DocQuery({})'.format(self._bags.model_name)

    # region Handlers

    # Every handler class is an attribute, so a subclass can replace one

    _QO_HANDLER_PROJECT = handlers.DocProject
    _QO_HANDLER_SORT = handlers.DocSort
    _QO_HANDLER_FILTER = handlers.DocFilter
    _QO_HANDLER_LIMIT = handlers.DocLimit
    _QO_HANDLER_COUNT = handlers.DocCount

    HANDLER_NAMES = frozenset(('project', 'sort', 'filter', 'limit', 'count'))
    HANDLER_ATTR_NAMES = frozenset('handler_' + name for name in HANDLER_NAMES)

    def _handlers(self):
        """ (name, handler) pairs, in the order they alter the query """
        return (
            ('project', self.handler_project),
            ('sort', self.handler_sort),
            ('filter', self.handler_filter),
            # after sort and filter
            ('limit', self.handler_limit),
            # last: replaces the SELECT list, drops ORDER BY
            ('count', self.handler_count),
        )

    handler_project = None  # type: handlers.DocProject
    handler_sort = None  # type: handlers.DocSort
    handler_filter = None  # type: handlers.DocFilter
    handler_limit = None  # type: handlers.DocLimit
    handler_count = None  # type: handlers.DocCount

    def _init_query_object_handlers(self):
        for name in self.HANDLER_NAMES:
            handler_cls = getattr(self, '_QO_HANDLER_' + name.upper())
            setattr(self, 'handler_' + name, self._init_handler(name, handler_cls))

        # Typos in setting names
        self._handler_settings.raise_if_invalid_handler_settings(self)

    def _init_handler(self, handler_name, handler_cls):
        settings = self._handler_settings.get_settings(handler_name, handler_cls)
        return handler_cls(self._model, self._bags, **settings)

    # endregion

    def _from_query(self):
        """ The query to start with """
        return self._query or Query([self._model])
