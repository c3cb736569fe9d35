from copy import copy


class Reusable:
    """ Make a reusable handler or query

        When a handler object is initialized, it's a pity to waste it!
        This class wrapper makes a copy every time an attribute is accessed on its wrapped object.

        Example:

            sort = Reusable(DocSort(Product, ModelPropertyBags.for_model(Product)))

        It also works for DocQuery:

            query = Reusable(DocQuery(Product, dict(max_items=100)))
    """
    __slots__ = ('__obj',)

    def __init__(self, obj):
        self.__obj = obj

    # copy-on-access
    def __getattr__(self, attr):
        return getattr(copy(self.__obj), attr)

    def __repr__(self):
        return 'Reusable({!r})'.format(self.__obj)
