""" Coercion of JSON values to the Python types that columns hold """

from datetime import datetime, timezone
from numbers import Number


def coerce_value(python_type: type, value):
    """ Make sure that `value` fits into a column holding `python_type`, and convert it when possible

        * numeric columns take numbers, but not booleans
        * text columns take strings
        * datetime columns take datetime objects and ISO-8601 strings (converted to UTC)
        * columns of unknown types take anything

        `None` is returned as is: whether it's acceptable is up to the caller.

        :raises ValueError: the value does not fit
    """
    if value is None:
        return None

    if python_type is datetime:
        return _coerce_datetime(value)

    if python_type is bool:
        ok = isinstance(value, bool)
    elif python_type is int:
        ok = isinstance(value, int) and not isinstance(value, bool)
    elif issubclass(python_type, Number):
        ok = isinstance(value, (int, float)) and not isinstance(value, bool)
    elif python_type is str:
        ok = isinstance(value, str)
    else:
        ok = True

    if not ok:
        raise ValueError('must be {}; {!r} provided'.format(_type_name(python_type), value))
    return value


def _coerce_datetime(value):
    if isinstance(value, str):
        try:
            # fromisoformat() does not understand the "Z" suffix before Python 3.11
            value = datetime.fromisoformat(value[:-1] + '+00:00' if value.endswith('Z') else value)
        except ValueError:
            raise ValueError('is not an ISO-8601 date: {!r}'.format(value))
    if not isinstance(value, datetime):
        raise ValueError('must be a date; {!r} provided'.format(value))

    # Stored values are UTC
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value


def _type_name(python_type):
    if python_type is str:
        return 'a string'
    if python_type is bool:
        return 'a boolean'
    if python_type is int:
        return 'an integer'
    if issubclass(python_type, Number):
        return 'a number'
    return python_type.__name__
