""" Naming and levels for thriftpool's loggers. """

import logging

__all__ = ['ThriftPoolLogger']

levels = {'debug': logging.DEBUG,
          'info': logging.INFO,
          'warn': logging.WARN,
          'error': logging.ERROR,
          'critical': logging.CRITICAL}


class ThriftPoolLogger(object):
    """
    Adjusts the loggers every pool writes its events to.

    The settings live on the class, so any instance can be used. Pool
    events go to the ``'pool'`` child of a root logger named
    ``'thriftpool'`` at level ``'info'``. Only a :class:`logging.NullHandler`
    is attached, so add a handler to see them::

        >>> log = thriftpool.ThriftPoolLogger()
        >>> log.set_logger_level('debug')
        >>> log.get_logger().addHandler(logging.StreamHandler())

    """

    name = 'thriftpool'
    level = 'info'

    def get_logger(self, child=None):
        if child is None:
            return logging.getLogger(ThriftPoolLogger.name)
        return logging.getLogger('%s.%s' % (ThriftPoolLogger.name, child))

    def set_logger_level(self, level):
        """ `level` is one of 'debug', 'info', 'warn', 'error' or 'critical'. """
        self.get_logger().setLevel(levels[level])
        ThriftPoolLogger.level = level

    def set_logger_name(self, name):
        """ Moves thriftpool's logging under the root logger `name`. """
        ThriftPoolLogger.name = name
        root = self.get_logger()
        if not any(isinstance(h, logging.NullHandler) for h in root.handlers):
            root.addHandler(logging.NullHandler())
        self.set_logger_level(ThriftPoolLogger.level)


ThriftPoolLogger().set_logger_name(ThriftPoolLogger.name)
