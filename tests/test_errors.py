import socket
import types
import unittest

from thrift.Thrift import TApplicationException, TException
from thrift.transport.TTransport import TTransportException

from thriftpool import ErrorClassifier, ErrorKind


class TimedOutException(TException):
    pass


class UnavailableException(TException):
    pass


class NotFoundException(TException):
    pass


class Overloaded(Exception):
    pass


class SlowOverloaded(Overloaded):
    pass


class ErrorClassifierCase(unittest.TestCase):

    def setUp(self):
        self.classifier = ErrorClassifier()

    def test_remote_errors(self):
        self.assertEqual(self.classifier.classify(TimedOutException()),
                         ErrorKind.REMOTE_TIMEOUT)
        self.assertEqual(self.classifier.classify(UnavailableException()),
                         ErrorKind.REMOTE_UNAVAILABLE)

    def test_transport_errors(self):
        for exc in (TTransportException(), socket.error(), socket.timeout(),
                    EOFError(), IOError()):
            self.assertEqual(self.classifier.classify(exc), ErrorKind.TRANSPORT)

    def test_other_errors(self):
        for exc in (NotFoundException(), TException(), ValueError(),
                    TApplicationException(TApplicationException.INTERNAL_ERROR)):
            self.assertEqual(self.classifier.classify(exc), ErrorKind.OTHER)
            self.assertFalse(self.classifier.is_retryable(exc))

    def test_retryable_kinds(self):
        retryable = set(kind for kind in ErrorKind if kind.retryable)
        self.assertEqual(retryable, set([ErrorKind.REMOTE_TIMEOUT,
                                         ErrorKind.REMOTE_UNAVAILABLE,
                                         ErrorKind.TRANSPORT]))

    def test_register(self):
        self.classifier.register(Overloaded, ErrorKind.REMOTE_UNAVAILABLE)
        self.assertEqual(self.classifier.classify(SlowOverloaded()),
                         ErrorKind.REMOTE_UNAVAILABLE)

    def test_register_overrides_defaults(self):
        classifier = ErrorClassifier({socket.timeout: 'other'})
        self.assertEqual(classifier.classify(socket.timeout()), ErrorKind.OTHER)
        self.assertEqual(classifier.classify(socket.error()), ErrorKind.TRANSPORT)

    def test_generated_types(self):
        ttypes = types.SimpleNamespace(TimedOutException=TimedOutException,
                                       UnavailableException=UnavailableException)
        classifier = ErrorClassifier(ttypes=ttypes)
        self.assertEqual(classifier.classify(TimedOutException()),
                         ErrorKind.REMOTE_TIMEOUT)
        self.assertEqual(classifier.classify(UnavailableException()),
                         ErrorKind.REMOTE_UNAVAILABLE)

        # a same-named type from another library is not a remote timeout
        other = type('TimedOutException', (Exception,), {})
        self.assertEqual(classifier.classify(other()), ErrorKind.OTHER)
        self.assertEqual(self.classifier.classify(other()),
                         ErrorKind.REMOTE_TIMEOUT)
