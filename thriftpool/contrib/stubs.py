"""A functional set of stubs to be used for unit testing.

Projects that use thriftpool and need to run an automated unit test suite on a
system like Jenkins can use these stubs to emulate a cluster of servers
without spinning one up locally.

.. code-block:: python

    >>> cluster = ClusterStub(['a:9160', 'b:9160'])
    >>> cluster.set_handler('get', lambda key: {'col': 'val'})
    >>> pool = ConnectionPool('Keyspace1', cluster.servers,
    ...                       connection_factory=cluster.connect)
    >>> pool.call('get', 'key1')
    {'col': 'val'}
    >>> cluster.fail('get', TTransportException(), times=2)
    >>> cluster.set_down('a:9160')

"""

import collections
import threading

from thrift.transport.TTransport import TTransportException


__all__ = ['ClusterStub', 'ConnectionStub']


class ConnectionStub(object):
    """
    Stands in for a :class:`~.thriftpool.connection.Connection` to a
    server of a :class:`ClusterStub`.

    Counts how many times it has been closed in :attr:`close_count`.
    """

    def __init__(self, cluster, keyspace, server, **kwargs):
        self.cluster = cluster
        self.keyspace = keyspace
        self.server = server
        self.options = kwargs
        self.operation_count = 0
        self.closed = False
        self.close_count = 0

    def invoke(self, op, *args, **kwargs):
        if self.closed:
            raise TTransportException(TTransportException.NOT_OPEN,
                                      "Connection to %s is closed" % self.server)
        return self.cluster._invoke(self, op, args, kwargs)

    def close(self):
        self.close_count += 1
        self.closed = True

    def __repr__(self):
        return '<ConnectionStub %s (%s)>' % (id(self), self.server)


class ClusterStub(object):
    """Functional cluster stub.

    :meth:`connect` can be given to a pool as its `connection_factory`.
    Connections to servers marked down with :meth:`set_down` fail to open
    with a :exc:`TTransportException`. Operations are answered by handlers
    registered with :meth:`set_handler`, after any failures queued with
    :meth:`fail` have been raised.

    Every opened connection is kept in :attr:`connections`, and every
    operation performed in :attr:`calls` as ``(server, op, args)``.

    """

    def __init__(self, servers=('localhost:9160',)):
        self.servers = list(servers)
        self.down = set()
        self.connections = []
        self.calls = []
        self.open_attempts = []
        self._handlers = {}
        self._failures = collections.defaultdict(collections.deque)
        self._lock = threading.Lock()

    def set_down(self, *servers):
        self.down.update(servers)

    def set_up(self, *servers):
        self.down.difference_update(servers)

    def set_handler(self, op, handler):
        self._handlers[op] = handler

    def fail(self, op, error, times=1):
        """ Makes the next `times` calls of `op` raise `error`. """
        with self._lock:
            self._failures[op].extend([error] * times)

    def connect(self, keyspace, server, **kwargs):
        with self._lock:
            self.open_attempts.append(server)
            if server in self.down:
                raise TTransportException(TTransportException.NOT_OPEN,
                                          "Could not connect to %s" % server)
            conn = ConnectionStub(self, keyspace, server, **kwargs)
            self.connections.append(conn)
            return conn

    def open_connections(self):
        return [conn for conn in self.connections if not conn.closed]

    def _invoke(self, conn, op, args, kwargs):
        with self._lock:
            self.calls.append((conn.server, op, args))
            failures = self._failures.get(op)
            error = failures.popleft() if failures else None
        if error is not None:
            raise error
        if op not in self._handlers:
            raise AttributeError("No handler registered for %s" % op)
        return self._handlers[op](*args, **kwargs)
