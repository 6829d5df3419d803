from thriftpool.logging.thriftpool_logger import ThriftPoolLogger, levels


def _describe(conn):
    return '%s (%s)' % (id(conn), conn.server)


class PoolLogger(object):
    """
    Logs every pool event to the ``pool`` child of the thriftpool root
    logger, at the level the event carries.
    """

    @property
    def logger(self):
        return ThriftPoolLogger().get_logger('pool')

    def _log(self, dic, msg, *args):
        self.logger.log(levels[dic.get('level', 'info')], msg, *args)

    def connection_created(self, dic):
        self._log(dic, "Connection %s opened for pool %s",
                  _describe(dic['connection']), dic['pool_id'])

    def connection_checked_out(self, dic):
        self._log(dic, "Connection %s was checked out from pool %s",
                  _describe(dic['connection']), dic['pool_id'])

    def connection_checked_in(self, dic):
        self._log(dic, "Connection %s was checked in to pool %s",
                  _describe(dic['connection']), dic['pool_id'])

    def connection_disposed(self, dic):
        error = dic.get('error')
        if error is None:
            self._log(dic, "Connection %s was closed; pool %s, reason: %s",
                      _describe(dic['connection']), dic['pool_id'],
                      dic.get('message'))
        else:
            self._log(dic, "Error closing connection %s in pool %s, "
                      "reason: %s, error: %s %s",
                      _describe(dic['connection']), dic['pool_id'],
                      dic.get('message'), error.__class__.__name__, error)

    def connection_recycled(self, dic):
        old_conn = dic['old_conn']
        self._log(dic, "Connection %s in pool %s was replaced by %s after "
                  "%d operations",
                  _describe(old_conn), dic['pool_id'],
                  _describe(dic['new_conn']), old_conn.operation_count)

    def connection_failed(self, dic):
        conn = dic.get('connection')
        if conn is None:
            self._log(dic, "Error opening connection (%s) for pool %s: %s",
                      dic['server'], dic['pool_id'], dic['error'])
        else:
            self._log(dic, "Connection %s in pool %s failed performing %s: %s",
                      _describe(conn), dic['pool_id'], dic['operation'],
                      dic['error'])

    def obtained_server_list(self, dic):
        self._log(dic, "Server list obtained for pool %s: [%s]",
                  dic['pool_id'], ", ".join(dic['server_list']))

    def pool_disposed(self, dic):
        self._log(dic, "Pool %s was disposed", dic['pool_id'])

    def pool_at_max(self, dic):
        self._log(dic, "Pool %s had a checkout request but none of its %s "
                  "connections was checked in within %s seconds",
                  dic['pool_id'], dic['pool_max'], dic['pool_timeout'])
