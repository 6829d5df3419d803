from thrift.transport import TSocket, TTransport
from thrift.protocol import TBinaryProtocol

from thriftpool.errors import InvalidRequestError

__all__ = ['Connection', 'TimeoutSocket', 'DEFAULT_SERVER', 'DEFAULT_PORT',
           'default_socket_factory', 'framed_transport_factory',
           'buffered_transport_factory']

DEFAULT_SERVER = 'localhost:9160'
DEFAULT_PORT = 9160

_UNSET = object()


class TimeoutSocket(TSocket.TSocket):
    """
    A :class:`TSocket` with separate timeouts for sending and receiving.

    Timeouts are given in milliseconds. The send timeout also applies
    while the socket is being connected. ``None`` blocks forever.
    """

    def __init__(self, host, port, send_timeout=None, recv_timeout=None):
        TSocket.TSocket.__init__(self, host, port)
        self._active_timeout = _UNSET
        self.setTimeouts(send_timeout, recv_timeout)

    def setTimeouts(self, send_timeout, recv_timeout):
        self.send_timeout = send_timeout
        self.recv_timeout = recv_timeout

    def _use_timeout(self, ms):
        if ms != self._active_timeout or self.handle is None:
            self.setTimeout(ms)
            self._active_timeout = ms

    def open(self):
        self._use_timeout(self.send_timeout)
        TSocket.TSocket.open(self)

    def write(self, buff):
        self._use_timeout(self.send_timeout)
        TSocket.TSocket.write(self, buff)

    def read(self, sz):
        self._use_timeout(self.recv_timeout)
        return TSocket.TSocket.read(self, sz)


def default_socket_factory(host, port):
    """
    Returns a :class:`TimeoutSocket` instance.
    """
    return TimeoutSocket(host, port)


def framed_transport_factory(tsocket, host, port):
    """
    Returns a :class:`TFramedTransport` instance wrapping `tsocket`.
    """
    return TTransport.TFramedTransport(tsocket)


def buffered_transport_factory(tsocket, host, port):
    """
    Returns a :class:`TBufferedTransport` instance wrapping `tsocket`.
    """
    return TTransport.TBufferedTransport(tsocket)


def split_server(server):
    """ Splits ``'host:port'`` into ``(host, port)``. """
    parts = server.split(':')
    if len(parts) <= 1:
        return parts[0], DEFAULT_PORT
    return parts[0], int(parts[1])


class Connection(object):
    """
    Encapsulation of a client session with a single server.

    `client_factory` is called with the Thrift protocol and must return the
    generated client stub for the service, for example
    ``Cassandra.Client``. Operations are dispatched to the stub by name
    through :meth:`invoke()`.

    If `credentials` are given they are passed unchanged to the stub's
    ``login()`` once the transport is open, and the stub's
    ``set_keyspace()`` is then called with `keyspace`.

    `send_timeout` and `recv_timeout` are in milliseconds.

    """

    def __init__(self, keyspace, server, framed_transport=True,
                 send_timeout=5000, recv_timeout=5000, credentials=None,
                 client_factory=None,
                 socket_factory=default_socket_factory,
                 transport_factory=None):
        if client_factory is None:
            raise InvalidRequestError("A client_factory is required to open "
                    "a connection to %s" % server)
        self.keyspace = None
        self.server = server
        self.operation_count = 0
        self.closed = False

        host, port = split_server(server)
        socket = socket_factory(host, port)
        if hasattr(socket, 'setTimeouts'):
            socket.setTimeouts(send_timeout, recv_timeout)
        elif recv_timeout is not None:
            socket.setTimeout(recv_timeout)

        if transport_factory is None:
            if framed_transport:
                transport_factory = framed_transport_factory
            else:
                transport_factory = buffered_transport_factory
        self.transport = transport_factory(socket, host, port)
        protocol = TBinaryProtocol.TBinaryProtocolAccelerated(self.transport)
        self.client = client_factory(protocol)
        self.transport.open()

        try:
            if credentials is not None:
                self.client.login(credentials)
            self.set_keyspace(keyspace)
        except Exception:
            self.close()
            raise

    def set_keyspace(self, keyspace):
        if keyspace is not None and keyspace != self.keyspace:
            self.client.set_keyspace(keyspace)
            self.keyspace = keyspace

    def invoke(self, op, *args, **kwargs):
        """ Calls the remote operation named `op` on this connection. """
        return getattr(self.client, op)(*args, **kwargs)

    def close(self):
        if not self.closed:
            self.closed = True
            self.transport.close()

    def __repr__(self):
        return '<Connection %s (%s)>' % (id(self), self.server)
