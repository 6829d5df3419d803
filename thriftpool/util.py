"""
Utilities used internally by thriftpool.

"""

__all__ = ['as_interface']


def as_interface(obj, methods):
    """
    Returns `obj` if it has at least one of the named `methods`.

    A ``dict`` mapping some of `methods` to callables is turned into a
    class with those callables as static methods. Anything else raises
    :exc:`TypeError`.
    """
    if not isinstance(obj, dict):
        if any(hasattr(obj, method) for method in methods):
            return obj
        raise TypeError("%r does not implement any of: %s"
                        % (obj, ', '.join(sorted(methods))))

    unknown = set(obj) - set(methods)
    if unknown:
        raise TypeError("%s: unknown in this interface"
                        % ', '.join(sorted(unknown)))
    if not obj:
        raise TypeError("an empty dict implements none of: %s"
                        % ', '.join(sorted(methods)))

    attrs = {}
    for method, impl in obj.items():
        if not callable(impl):
            raise TypeError("%r=%r is not callable" % (method, impl))
        attrs[method] = staticmethod(impl)
    return type('AnonymousListener', (object,), attrs)
