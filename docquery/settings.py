import inspect
from functools import lru_cache
from typing import Callable, Mapping

from .exc import DisabledError


class DocQuerySettingsHandler:
    """ Hands out DocQuery settings to the handlers

        DocQuery takes one flat dict of settings. Each key is a keyword argument
        of some handler's __init__(); the names do not clash.
        This class gives every handler the keys its __init__() asks for.

        A `<handler-name>_enabled` key switches a handler on or off:

            DocQuery(Product, dict(max_items=100, count_enabled=False))
    """

    def __init__(self, settings: dict):
        """
            :param settings: Keyword arguments for all handlers
        """
        assert isinstance(settings, dict)

        self._settings = settings  # read-only: not copied

        #: Names of the handlers seen by get_settings()
        self._handler_names = set()
        #: Every keyword argument some handler accepts
        self._known_kwargs = set()
        #: Handlers switched off with `<name>_enabled=False`
        self._disabled_handlers = set()

    def get_settings(self, handler_name: str, handler_cls: type) -> dict:
        """ The kwargs for a handler class

            Every argument of `handler_cls.__init__()` that has a default is a setting:
            its value comes from the settings dict, or the default is used.
        """
        if not self._settings.get('{}_enabled'.format(handler_name), True):
            self._disabled_handlers.add(handler_name)

        kwargs = pluck_kwargs_from(self._settings, for_func=handler_cls.__init__)

        self._handler_names.add(handler_name)
        self._known_kwargs.update(kwargs.keys())

        return kwargs

    def is_handler_enabled(self, handler_name: str) -> bool:
        return handler_name not in self._disabled_handlers

    def raise_if_not_handler_enabled(self, model_name: str, handler_name: str):
        """ Refuse input for a handler that's switched off

            :raises DisabledError
        """
        if not self.is_handler_enabled(handler_name):
            raise DisabledError('Query Object section `{}` is not available for {}'
                                .format(handler_name, model_name))

    def raise_if_invalid_handler_settings(self, docquery):
        """ Complain about settings that no handler has asked for: typos, most likely

            Call it after get_settings() has seen every handler.

            :raises KeyError
        """
        known = {'{}_enabled'.format(name) for name in self._handler_names} | self._known_kwargs

        unknown = set(self._settings.keys()) - known
        if unknown:
            raise KeyError('Unknown settings for {!r}: {}'
                           .format(docquery, ', '.join(sorted(unknown))))

    def __repr__(self):
        return '{}({!r})'.format(self.__class__.__name__, self._settings)


@lru_cache(100)
def get_function_defaults(for_func: Callable) -> dict:
    """ {argument name: default} for the arguments of a function that have defaults """
    return {name: param.default
            for name, param in inspect.signature(for_func).parameters.items()
            if param.default is not inspect.Parameter.empty}


def pluck_kwargs_from(dct: Mapping, for_func: Callable) -> dict:
    """ Take from `dct` the arguments that `for_func` accepts, falling back to their defaults """
    return {name: dct.get(name, default)
            for name, default in get_function_defaults(for_func).items()}
