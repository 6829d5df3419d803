""" Connection pooling for Thrift RPC connections. """

import collections
import enum
import random
import socket
import threading
import time

from thrift.Thrift import TException, TApplicationException

from thriftpool.connection import Connection, DEFAULT_SERVER
from thriftpool.errors import (ThriftPoolError, NoServerAvailable,
                               NoConnectionAvailable, MaxRetriesException,
                               InvalidRequestError, ErrorClassifier)
from thriftpool.logging.pool_logger import PoolLogger
from thriftpool.util import as_interface

_BASE_BACKOFF = 0.1
_MAX_TRIES = (2 ** 31) - 1

DEFAULT_SERVER_LIST = (DEFAULT_SERVER,)

# Errors that mean a server could not be reached while opening a connection
_OPEN_ERRORS = (TException, socket.error, EOFError)

_EVENTS = ('connection_created', 'connection_checked_out',
           'connection_checked_in', 'connection_disposed',
           'connection_recycled', 'connection_failed',
           'obtained_server_list', 'pool_disposed', 'pool_at_max')

_NOT_FETCHED = object()

__all__ = ['ConnectionPool', 'PoolListener', 'ServerRotation', 'PoolStore',
           'PoolStats', 'Retries', 'UNBOUNDED', 'DEFAULT_SERVER_LIST']


class Retries(enum.Enum):
    UNBOUNDED = 'unbounded'

UNBOUNDED = Retries.UNBOUNDED
""" Pass as `max_retries` to retry failed operations without a fixed limit. """


class ServerRotation(object):
    """
    A fixed, randomly permuted list of servers with a rotating cursor.

    The permutation is made once, when the rotation is created. Each call
    to :meth:`next()` advances the cursor by one position and returns the
    server it then points to, so every server is handed out once before
    any is repeated.

    This is not thread-safe on its own; :class:`ConnectionPool` only
    touches it while holding its pool lock.
    """

    def __init__(self, servers, rng=None):
        self.servers = list(servers)
        if len(self.servers) > 1:
            (rng or random).shuffle(self.servers)
        self._position = 0

    def next(self):
        self._position = (self._position + 1) % len(self.servers)
        return self.servers[self._position]

    @property
    def position(self):
        return self._position

    def __len__(self):
        return len(self.servers)


class PoolStore(object):
    """
    A FIFO store of checked-in connections.

    All operations hold `lock`, a :class:`threading.Condition` that the
    owning pool shares, so a checkout can never race with the swap done
    by :meth:`replace_and_rotate()`.
    """

    def __init__(self, lock):
        self._lock = lock
        self._queue = collections.deque()

    def checkout(self, timeout=None):
        """
        Removes and returns the connection at the head of the store.

        If the store is empty this waits up to `timeout` seconds for a
        checkin (forever if `timeout` is ``None``, not at all if it is 0)
        and then raises :exc:`~.NoConnectionAvailable`.
        """
        with self._lock:
            if not self._queue and timeout != 0:
                self._lock.wait_for(lambda: self._queue, timeout)
            if not self._queue:
                raise NoConnectionAvailable("No connection was checked in "
                        "within %s seconds" % timeout)
            return self._queue.popleft()

    def checkin(self, conn):
        with self._lock:
            if conn in self._queue:
                raise InvalidRequestError("A connection has been returned to "
                        "the connection pool twice.")
            self._queue.append(conn)
            self._lock.notify()

    def replace_and_rotate(self, new_conn):
        """
        Adds `new_conn` at the tail, then moves the oldest stored
        connection behind it.
        """
        with self._lock:
            self._queue.append(new_conn)
            self._queue.append(self._queue.popleft())
            self._lock.notify()

    def drain(self):
        """ Removes and returns every stored connection. """
        with self._lock:
            conns = list(self._queue)
            self._queue.clear()
            return conns

    def __len__(self):
        with self._lock:
            return len(self._queue)

    def __iter__(self):
        with self._lock:
            return iter(list(self._queue))


class PoolStats(object):
    """ Counts of connections created, failed and recycled by a pool. """

    def __init__(self):
        self.created = 0
        self.failed = 0
        self.recycled = 0

    def as_dict(self):
        return {'created': self.created,
                'failed': self.failed,
                'recycled': self.recycled}


class ConnectionPool(object):
    """A pool that maintains a queue of open connections."""

    pool_timeout = 30
    """ If every connection is currently checked out, a request for a
    connection will wait up to `pool_timeout` seconds for one to be
    returned before raising :exc:`~.NoConnectionAvailable`. This may be
    set to 0 to fail immediately or -1 to wait forever.
    The default value is 30. """

    recycle = 10000
    """ After performing `recycle` number of operations, connections will
    be replaced when checked back in to the pool.  This may be set to
    -1 to disable connection recycling. The default value is 10,000. """

    logging_name = None
    """ By default, each pool identifies itself in the logs using ``id(self)``.
    If multiple pools are in use for different purposes, setting `logging_name` will
    help individual pools to be identified in the logs. """

    def __init__(self, keyspace,
                 server_list=None,
                 max_retries=5,
                 send_timeout=5000,
                 recv_timeout=5000,
                 recycle=10000,
                 credentials=None,
                 framed_transport=True,
                 **kwargs):
        """
        Constructs a pool that maintains a queue of open connections.

        All connections in the pool will be opened to `keyspace`.

        `server_list` is a sequence of servers in the form ``"host:port"`` that
        the pool will connect to. The port defaults to 9160 if excluded.
        The list will be randomly shuffled once before being drawn from
        sequentially. `server_list` may also be a function that returns the
        sequence of servers. If omitted, :data:`DEFAULT_SERVER_LIST` is used.

        The pool opens ``max(2 * len(server_list), 5)`` connections up front;
        if that cannot be done, :exc:`~.NoServerAvailable` is raised and
        no pool is created.

        `max_retries` is the number of times an operation that fails with a
        timeout, unavailable, or transport error will be retried on another
        connection. 0 disables retries; -1 or :data:`UNBOUNDED` retries
        without a fixed limit.

        `send_timeout` and `recv_timeout` are in milliseconds.

        If authentication is required, `credentials` are passed to the
        client's ``login()`` call when each connection is opened.

        `framed_transport` selects a framed rather than a buffered transport.

        The following keyword arguments are also recognized:

        * `client_factory`: called with a Thrift protocol, returns the
          generated client stub, e.g. ``Cassandra.Client``
        * `connection_factory`: replaces :class:`~.Connection`
        * `error_classifier`: an :class:`~.ErrorClassifier`
        * `listeners`: a list of :class:`PoolListener`-like objects
        * `pool_timeout` and `logging_name`

        Example Usage:

        .. code-block:: python

            >>> from cassandra import Cassandra
            >>> pool = thriftpool.ConnectionPool('Keyspace1',
            ...                                  ['10.0.0.4:9160', '10.0.0.5:9160'],
            ...                                  client_factory=Cassandra.Client)
            >>> pool.call('get_count', 'key', parent, predicate, level)
            3

        """
        recognized_kwargs = ('pool_timeout', 'logging_name', 'listeners',
                             'client_factory', 'connection_factory',
                             'error_classifier')
        for kw in kwargs:
            if kw not in recognized_kwargs:
                raise TypeError("ConnectionPool() got an unexpected keyword "
                                "argument '%s'" % kw)

        self.keyspace = keyspace
        self.credentials = credentials
        self.framed_transport = framed_transport
        self.send_timeout = send_timeout
        self.recv_timeout = recv_timeout
        self.max_retries = max_retries
        if recycle < -1 or recycle == 0:
            raise InvalidRequestError("recycle must be positive or -1, "
                                      "not %r" % (recycle,))
        self.recycle = recycle
        self.pool_timeout = kwargs.get('pool_timeout', self.pool_timeout)
        self.client_factory = kwargs.get('client_factory')
        self.connection_factory = kwargs.get('connection_factory', Connection)
        self.error_classifier = kwargs.get('error_classifier') or ErrorClassifier()

        self._pool_lock = threading.Condition()
        self._store = PoolStore(self._pool_lock)
        self._stats = PoolStats()
        self._description = _NOT_FETCHED
        self._description_lock = threading.Lock()

        self.listeners = []
        self._listeners = dict((event, []) for event in _EVENTS)
        self.add_listener(PoolLogger())
        for listener in kwargs.get('listeners', ()):
            self.add_listener(listener)

        self.logging_name = kwargs.get('logging_name')
        if not self.logging_name:
            self.logging_name = id(self)

        if server_list is None:
            server_list = DEFAULT_SERVER_LIST
        elif callable(server_list):
            server_list = server_list()
        self._rotation = ServerRotation(server_list)
        self._notify('obtained_server_list', 'debug',
                     server_list=list(self._rotation.servers))

        self._pool_size = max(2 * len(self._rotation), 5)
        self._fill()

    def _get_max_retries(self):
        return self._max_retries

    def _set_max_retries(self, max_retries):
        if max_retries == -1:
            max_retries = UNBOUNDED
        elif max_retries is not UNBOUNDED and max_retries < 0:
            raise InvalidRequestError("max_retries must be non-negative, -1 "
                                      "or UNBOUNDED, not %r" % (max_retries,))
        self._max_retries = max_retries

    max_retries = property(_get_max_retries, _set_max_retries)
    """ When an operation fails with a timeout, unavailable or transport
    error, which tend to indicate single or multiple node failure, the
    operation will be retried on a different connection up to `max_retries`
    times before a :exc:`~.MaxRetriesException` is raised. Setting this to 0
    disables retries and setting it to -1 or :data:`UNBOUNDED` allows
    unlimited retries. The default value is 5. """

    @property
    def server_list(self):
        """ The randomly permuted servers this pool connects to. """
        return list(self._rotation.servers)

    def _tries(self):
        if self._max_retries is UNBOUNDED:
            return _MAX_TRIES
        return self._max_retries + 1

    def _fill(self):
        conns = []
        try:
            while len(conns) < self._pool_size:
                conns.append(self._create_connection())
        except Exception:
            for conn in conns:
                self._dispose_connection(conn, reason="pool could not be filled")
            raise
        for conn in conns:
            self._store.checkin(conn)

    def _open_connection(self, server):
        return self.connection_factory(self.keyspace, server,
                                       framed_transport=self.framed_transport,
                                       send_timeout=self.send_timeout,
                                       recv_timeout=self.recv_timeout,
                                       credentials=self.credentials,
                                       client_factory=self.client_factory)

    def _create_connection(self):
        """
        Opens a connection to the next server in the rotation, moving on
        through the rotation until every server has been tried twice.
        """
        attempts = 2 * len(self._rotation)
        if not attempts:
            raise NoServerAvailable("Pool %s has no servers to connect to"
                                    % self.logging_name)

        last_error = None
        for _ in range(attempts):
            with self._pool_lock:
                server = self._rotation.next()
            try:
                conn = self._open_connection(server)
            except _OPEN_ERRORS as exc:
                last_error = exc
                with self._pool_lock:
                    self._stats.failed += 1
                self._notify_on_failure(exc, server)
                continue

            with self._pool_lock:
                self._stats.created += 1
            self._notify('connection_created', 'debug', connection=conn)
            return conn

        raise NoServerAvailable('An attempt was made to connect to each of the servers '
                                'twice, but none of the attempts succeeded. The last '
                                'failure was %s: %s' %
                                (last_error.__class__.__name__, last_error),
                                last_error)

    def _replace_connection(self):
        """ Adds a freshly opened connection to the store. """
        self._store.checkin(self._create_connection())

    def _dispose_connection(self, conn, reason=None):
        try:
            conn.close()
        except (TException, socket.error) as exc:
            self._notify('connection_disposed', 'warn', connection=conn,
                         message=reason, error=exc)
        else:
            self._notify('connection_disposed', 'debug', connection=conn,
                         message=reason)

    def get(self):
        """
        Checks out the oldest connection in the pool.

        The connection must be returned with :meth:`put()`; usually
        :meth:`call()` should be used instead.
        """
        timeout = self.pool_timeout
        if timeout == -1:
            timeout = None
        try:
            conn = self._store.checkout(timeout)
        except NoConnectionAvailable:
            self._notify('pool_at_max', 'info', pool_max=self._pool_size,
                         pool_timeout=self.pool_timeout)
            raise
        self._notify('connection_checked_out', 'debug', connection=conn)
        return conn

    def put(self, conn):
        """
        Returns a connection to the pool.

        A connection that has performed `recycle` operations is closed
        instead; a newly opened connection takes its place at the back of
        the pool and the oldest pooled connection is moved behind it.
        """
        if conn.closed:
            raise InvalidRequestError("A closed connection has been returned "
                                      "to the connection pool.")
        if self.recycle > -1 and conn.operation_count >= self.recycle:
            with self._pool_lock:
                self._stats.recycled += 1
            self._dispose_connection(conn, reason="recycling connection")
            new_conn = self._create_connection()
            self._notify('connection_recycled', 'debug',
                         old_conn=conn, new_conn=new_conn)
            self._store.replace_and_rotate(new_conn)
            conn = new_conn
        else:
            self._store.checkin(conn)
        self._notify('connection_checked_in', 'debug', connection=conn)
    return_conn = put

    def call(self, op, *args, **kwargs):
        """
        Checks out a connection, performs the remote operation `op` with
        `*args` and `**kwargs` on it, returns the connection to the pool,
        and returns the result.

        Timeouts, unavailable errors and transport errors cause the
        connection to be discarded and the operation to be retried on the
        next pooled connection, with exponential backoff, up to
        `max_retries` times. Any other error is raised immediately.
        """
        tries = self._tries()
        last_error = None
        for attempt in range(1, tries + 1):
            conn = self.get()
            conn.operation_count += 1
            try:
                result = conn.invoke(op, *args, **kwargs)
            except Exception as exc:
                if not self.error_classifier.is_retryable(exc):
                    self._handle_fatal_error(conn, op, exc)
                    raise
                last_error = exc
                self._handle_conn_failure(conn, op, exc, attempt,
                                          backoff=attempt < tries)
                continue
            except BaseException as exc:
                self._handle_fatal_error(conn, op, exc)
                raise
            self.put(conn)
            return result

        raise MaxRetriesException("An attempt to execute %s failed %d times. "
                                  "The last failure was %s: %s" %
                                  (op, tries, last_error.__class__.__name__,
                                   last_error),
                                  last_error, tries)
    execute = call

    def _handle_conn_failure(self, conn, op, exc, attempt, backoff=True):
        with self._pool_lock:
            self._stats.failed += 1
        self._notify_on_failure(exc, conn.server, connection=conn, operation=op)
        self._dispose_connection(conn, reason="%s failed" % op)
        if backoff:
            # Exponential backoff
            time.sleep(_BASE_BACKOFF * (2 ** attempt))
        self._replace_connection()

    def _handle_fatal_error(self, conn, op, exc):
        """
        Returns or replaces `conn` after `op` failed with an error that is
        not retried. The caller re-raises `exc`, so a failure to replace
        the connection is only reported to listeners.
        """
        # the protocol state of the connection can't be trusted
        discard = (isinstance(exc, TApplicationException) or
                   not isinstance(exc, Exception))
        try:
            if discard:
                self._notify_on_failure(exc, conn.server, connection=conn,
                                        operation=op)
                self._dispose_connection(conn, reason="%s failed" % op)
                self._replace_connection()
            else:
                self.put(conn)
        except ThriftPoolError as secondary:
            # a discarded connection has already been reported
            self._notify('connection_failed', 'warn', error=secondary,
                         server=conn.server, operation=op,
                         connection=None if discard else conn)

    def describe_keyspace(self):
        """
        Returns the description of this pool's keyspace.

        The description is fetched with a ``describe_keyspace`` call the
        first time this is called and reused for the life of the pool.
        """
        if self._description is _NOT_FETCHED:
            with self._description_lock:
                if self._description is _NOT_FETCHED:
                    self._description = self.call('describe_keyspace', self.keyspace)
        return self._description

    def dispose(self):
        """ Closes all checked in connections in the pool. """
        for conn in self._store.drain():
            self._dispose_connection(
                    conn, reason="Pool %s is being disposed" % self.logging_name)
        self._notify('pool_disposed', 'info')
    close = dispose

    def stats(self):
        """
        Returns a ``dict`` with the number of connections this pool has
        ``'created'``, the number of connection or operation failures
        (``'failed'``), and the number of connections ``'recycled'``.
        """
        with self._pool_lock:
            return self._stats.as_dict()

    def size(self):
        """ Returns the capacity of the pool. """
        return self._pool_size

    def checkedin(self):
        """ Returns the number of connections currently in the pool. """
        return len(self._store)

    def add_listener(self, listener):
        """
        Add a :class:`PoolListener`-like object to this pool.

        `listener` may be an object that implements some or all of
        :class:`PoolListener`, or a dictionary of callables containing implementations
        of some or all of the named methods in :class:`PoolListener`.

        """
        listener = as_interface(listener, methods=_EVENTS)

        self.listeners.append(listener)
        for event in _EVENTS:
            if hasattr(listener, event):
                self._listeners[event].append(getattr(listener, event))

    def _notify(self, event, level, **fields):
        callbacks = self._listeners[event]
        if callbacks:
            dic = {'pool_id': self.logging_name,
                   'level': level}
            dic.update(fields)
            for callback in callbacks:
                callback(dic)

    def _notify_on_failure(self, error, server, connection=None, operation=None):
        self._notify('connection_failed', 'info', error=error, server=server,
                     connection=connection, operation=operation)


class PoolListener(object):
    """
    The events a :class:`ConnectionPool` reports to its listeners.

    Subclassing is optional: any object with some of these methods, or a
    dict mapping event names to callables, can be passed to
    :meth:`ConnectionPool.add_listener()`. Each method receives one dict
    holding the pool's `logging_name` as ``'pool_id'``, the logging
    ``'level'`` the pool suggests for the event, and the fields listed
    below.
    """

    def connection_created(self, dic):
        """ A connection was opened. Fields: `connection`. """

    def connection_checked_out(self, dic):
        """ Fields: `connection`. """

    def connection_checked_in(self, dic):
        """ Fields: `connection`. """

    def connection_disposed(self, dic):
        """
        A connection was closed for the reason in `message`. `error` is
        set if closing it raised.
        """

    def connection_recycled(self, dic):
        """ `old_conn` reached `recycle` operations and `new_conn` took its place. """

    def connection_failed(self, dic):
        """
        Opening a connection to `server`, or performing `operation` on
        `connection`, raised `error`. `connection` and `operation` are
        ``None`` for a failed open.
        """

    def obtained_server_list(self, dic):
        """ Fields: `server_list`, in the order the pool will use it. """

    def pool_disposed(self, dic):
        pass

    def pool_at_max(self, dic):
        """
        No connection was checked in within `pool_timeout` seconds of a
        checkout request. Fields: `pool_max`, `pool_timeout`.
        """
