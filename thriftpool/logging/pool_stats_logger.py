import functools
import threading


def sync(lock_name):
    def wrapper(f):
        @functools.wraps(f)
        def wrapped(self, *args, **kwargs):
            with getattr(self, lock_name):
                return f(self, *args, **kwargs)

        return wrapped

    return wrapper


class StatsLogger(object):
    """
    A listener that keeps running counts of a pool's events.

    ``created``, ``failed`` and ``recycled`` follow the counters of
    :meth:`.ConnectionPool.stats()`, with failures split into connections
    that could not be opened (``'open'``) and operations that failed on
    a checked out connection (``'invoke'``). ``in_use`` tracks how many
    connections are checked out right now and the most there have been.

    Usage::

        >>> stats_logger = StatsLogger()
        >>> pool = ConnectionPool(..., listeners=[stats_logger])
        >>> # use the pool for a while...
        >>> stats_logger.stats
        {'created': 12, 'failed': {'open': 2, 'invoke': 1}, 'recycled': 1,
         'checked_out': 403, 'checked_in': 401,
         'in_use': {'current': 1, 'max': 4},
         'disposed': {'closed': 2, 'close_failed': 0},
         'server_lists': 1, 'at_max': 0}

    """

    def __init__(self):
        self.lock = threading.Lock()
        self.reset()

    @sync('lock')
    def reset(self):
        """ Sets every counter back to 0. """
        self._stats = {
            'created': 0,
            'failed': {'open': 0, 'invoke': 0},
            'recycled': 0,
            'checked_out': 0,
            'checked_in': 0,
            'in_use': {'current': 0, 'max': 0},
            'disposed': {'closed': 0, 'close_failed': 0},
            'server_lists': 0,
            'at_max': 0,
        }

    def _in_use(self, delta):
        in_use = self._stats['in_use']
        in_use['current'] += delta
        in_use['max'] = max(in_use['max'], in_use['current'])

    @sync('lock')
    def connection_created(self, dic):
        self._stats['created'] += 1

    @sync('lock')
    def connection_checked_out(self, dic):
        self._stats['checked_out'] += 1
        self._in_use(1)

    @sync('lock')
    def connection_checked_in(self, dic):
        self._stats['checked_in'] += 1
        self._in_use(-1)

    @sync('lock')
    def connection_recycled(self, dic):
        self._stats['recycled'] += 1

    @sync('lock')
    def connection_failed(self, dic):
        if dic.get('connection') is None:
            self._stats['failed']['open'] += 1
        else:
            self._stats['failed']['invoke'] += 1
            # the pool discards the connection instead of checking it in
            self._in_use(-1)

    @sync('lock')
    def connection_disposed(self, dic):
        if dic.get('error') is None:
            self._stats['disposed']['closed'] += 1
        else:
            self._stats['disposed']['close_failed'] += 1

    @sync('lock')
    def obtained_server_list(self, dic):
        self._stats['server_lists'] += 1

    @sync('lock')
    def pool_at_max(self, dic):
        self._stats['at_max'] += 1

    @property
    def stats(self):
        return self._stats
