from ..bag import ModelPropertyBags
from ..exc import InvalidColumnError


class DocQueryHandlerBase:
    """ Base for the handlers of DocQuery

        One subclass takes care of one section of the Query Object
    """

    #: The Query Object key this handler takes care of
    query_object_section_name = None

    def __init__(self, model, bags: ModelPropertyBags):
        """ Set the handler up for a model

        No input yet: a handler is configured once, copied, and only then given a section of a Query Object.

        :param model: The model this handler works with
        :type model: sqlalchemy.orm.DeclarativeMeta
        :param bags: Property bags of the model.
            DocQuery passes them in, so that a subclass can analyze models in its own way.

        Keyword arguments with defaults in a subclass are its settings: see DocQuerySettingsHandler
        """
        self.model = model
        self.bags = bags
        #: Field names in the input are checked against this bag
        self.supported_bags = self._get_supported_bags()

        #: Set by input()
        self.input_received = False
        self.input_value = None

        #: The DocQuery this handler belongs to, if any
        self.docquery = None

    def with_docquery(self, docquery):
        """ Remember the DocQuery this handler works for

            :type docquery: docquery.query.DocQuery
            """
        self.docquery = docquery
        return self

    def __copy__(self):
        """ A shallow copy: enough for a handler that hasn't got its input yet """
        cls = self.__class__
        result = cls.__new__(cls)
        result.__dict__.update(self.__dict__)
        return result

    def _get_supported_bags(self):
        """ The bag of properties this handler accepts

        :rtype: docquery.bag.ColumnsBag
        """
        raise NotImplementedError()

    def validate_properties(self, prop_names, bag=None, where=None):
        """ Make sure every name is in the bag

        :param prop_names: Property names from the input
        :param bag: The bag to check against. Default: `self.supported_bags`
        :param where: Where the name was found, for the error message
        :raises InvalidColumnError
        """
        if bag is None:
            bag = self.supported_bags

        invalid = bag.get_invalid_names(prop_names)
        if invalid:
            raise InvalidColumnError(self.bags.model_name,
                                     sorted(invalid)[0],
                                     where or self.query_object_section_name)

    def input_prepare_query_object(self, query_object):
        """ A hook to rewrite the whole Query Object

        DocQuery calls it on every handler before any input() takes place.

        :param query_object: dict
        :rtype: dict
        """
        return query_object

    def input(self, qo_value):
        """ Take the handler's section of the Query Object

        Subclasses validate and parse the value here, and keep the result in public attributes.

        :param qo_value: The section value; None when it's not given
        :rtype: DocQueryHandlerBase
        :raises InvalidColumnError
        :raises InvalidQueryError
        """
        self.input_value = qo_value  # not copied: don't modify
        self.input_received = True

        # Only once per copy
        self.input = self.__input_called_twice

        return self

    def is_input_empty(self):
        """ Is there nothing to do? """
        return not self.input_value

    def __input_called_twice(self, *args, **kwargs):
        raise RuntimeError('{}.input() has already been called. '
                           'Use a copy() of the handler for every Query Object'
                           .format(self.__class__.__name__))

    def alter_query(self, query):
        """ Apply the section to a query

        :type query: sqlalchemy.orm.Query
        :rtype: sqlalchemy.orm.Query
        """
        raise NotImplementedError()

    def get_final_input_value(self):
        """ The input, the way the handler understands it """
        return self.input_value
