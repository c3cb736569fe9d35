class BaseDocQueryException(Exception):
    """ Base for every error raised by docquery """


class InvalidQueryError(BaseDocQueryException):
    """ The Query Object is malformed """

    def __init__(self, err: str):
        super(InvalidQueryError, self).__init__('Query object error: {err}'.format(err=err))


class DisabledError(InvalidQueryError):
    """ The Query Object uses a section that settings have switched off """


class InvalidColumnError(BaseDocQueryException):
    """ A Query Object or an entity dict names a field the model does not have """

    def __init__(self, model: str, column_name: str, where: str):
        self.model = model
        self.column_name = column_name
        self.where = where

        super(InvalidColumnError, self).__init__(
            '{}: unknown field "{}" in {}'.format(model, column_name, where)
        )


class ValidationError(BaseDocQueryException):
    """ Invalid entity dict: a required field is missing, or a value has the wrong type """

    def __init__(self, model: str, field: str, err: str):
        self.model = model
        self.field = field

        super(ValidationError, self).__init__(
            '{model} validation failed: {field}: {err}'.format(model=model, field=field, err=err)
        )


class NotFound(BaseDocQueryException):
    """ No record matches the given identifier """

    def __init__(self, model: str, id):
        self.model = model
        self.id = id
        super(NotFound, self).__init__('{} not found'.format(model))


class StoreError(BaseDocQueryException):
    """ The store did not complete the call """


class StoreUnavailable(StoreError):
    """ Connectivity failure: the store can't be reached """


class QueryTimeout(StoreError):
    """ The deadline of the call has expired """


class Cancelled(StoreError):
    """ The call was cancelled by the caller """


class InternalError(BaseDocQueryException):
    """ The store has failed in some other way. The cause is chained: `raise ... from e` """


#: Errors made by the API user. Reported as "400 Bad Request"
USER_ERRORS = (InvalidQueryError, InvalidColumnError, ValidationError)
