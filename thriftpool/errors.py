""" Exceptions raised by thriftpool and classification of RPC failures. """

import enum
import socket

from thrift.Thrift import TApplicationException
from thrift.transport.TTransport import TTransportException

__all__ = ['ThriftPoolError', 'NoServerAvailable', 'NoConnectionAvailable',
           'MaxRetriesException', 'InvalidRequestError', 'ErrorKind',
           'ErrorClassifier']


class ThriftPoolError(Exception):
    """ Base class for all thriftpool errors. """


class NoServerAvailable(ThriftPoolError):
    """
    Raised when none of the servers given to a pool can be connected to.

    The last connection failure is available as `last_error`.
    """

    def __init__(self, message, last_error=None):
        super(NoServerAvailable, self).__init__(message)
        self.last_error = last_error


class NoConnectionAvailable(ThriftPoolError):
    """Raised when there are no connections left in a pool."""


class MaxRetriesException(ThriftPoolError):
    """
    Raised when an operation has been attempted the maximum allowed
    number of times. The last retryable failure is available as
    `last_error`.
    """

    def __init__(self, message, last_error=None, attempts=0):
        super(MaxRetriesException, self).__init__(message)
        self.last_error = last_error
        self.attempts = attempts


class InvalidRequestError(ThriftPoolError):
    """
    thriftpool was asked to do something it can't do.

    This error generally corresponds to configuration or runtime state errors.
    """


class ErrorKind(enum.Enum):
    """ The kinds of failure an RPC invocation can end with. """

    REMOTE_TIMEOUT = 'remote_timeout'
    REMOTE_UNAVAILABLE = 'remote_unavailable'
    TRANSPORT = 'transport'
    OTHER = 'other'

    @property
    def retryable(self):
        return self is not ErrorKind.OTHER


# Without the generated ttypes module, Cassandra's exception types are
# recognized by class name.
_REMOTE_NAMES = {'TimedOutException': ErrorKind.REMOTE_TIMEOUT,
                 'UnavailableException': ErrorKind.REMOTE_UNAVAILABLE}

_TRANSPORT_TYPES = (TTransportException, socket.error, EOFError)


class ErrorClassifier(object):
    """
    Maps exceptions raised by an invocation to an :class:`ErrorKind`.

    Types registered with :meth:`register()` take precedence and are
    matched along the exception's MRO, so registering a base class
    covers its subclasses.

    If `ttypes`, the service's generated types module, is given, its
    ``TimedOutException`` and ``UnavailableException`` are registered by
    type. Otherwise any exception with one of those class names anywhere
    in its MRO is treated as a remote timeout or unavailable error, which
    also matches unrelated types that happen to share the name.

    Example Usage::

        >>> from cassandra import ttypes
        >>> from myservice.ttypes import Overloaded
        >>> classifier = ErrorClassifier(ttypes=ttypes)
        >>> classifier.register(Overloaded, ErrorKind.REMOTE_UNAVAILABLE)
        >>> pool = ConnectionPool('Keyspace1', error_classifier=classifier)

    """

    def __init__(self, registrations=None, ttypes=None):
        self._kinds = {}
        self._match_names = ttypes is None
        if ttypes is not None:
            for name, kind in _REMOTE_NAMES.items():
                exc_type = getattr(ttypes, name, None)
                if exc_type is not None:
                    self.register(exc_type, kind)
        for exc_type, kind in (registrations or {}).items():
            self.register(exc_type, kind)

    def register(self, exc_type, kind):
        """ Classify `exc_type` and its subclasses as `kind`. """
        if not isinstance(kind, ErrorKind):
            kind = ErrorKind(kind)
        self._kinds[exc_type] = kind

    def classify(self, exc):
        for klass in type(exc).__mro__:
            if klass in self._kinds:
                return self._kinds[klass]

        if isinstance(exc, TApplicationException):
            return ErrorKind.OTHER

        if self._match_names:
            for klass in type(exc).__mro__:
                if klass.__name__ in _REMOTE_NAMES:
                    return _REMOTE_NAMES[klass.__name__]

        if isinstance(exc, _TRANSPORT_TYPES):
            return ErrorKind.TRANSPORT
        return ErrorKind.OTHER

    def is_retryable(self, exc):
        return self.classify(exc).retryable
