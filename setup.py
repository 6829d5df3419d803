#!/usr/bin/env python
# -*- coding: utf-8 -*-
#

from setuptools import setup

version_tuple = (0, 1, 0)
__version__ = '.'.join(map(str, version_tuple))

long_description = """thriftpool is a client-side connection pool for Thrift RPC services
running on a set of equivalent servers, such as Apache Cassandra, with the
following features:

1. Automatic failover across the server list when opening connections
2. Retry with exponential backoff for timed out, unavailable and
   transport failures
3. Recycling of connections after a fixed number of operations
4. Listener hooks for logging and statistics
"""

setup(
      name = 'thriftpool',
      version = __version__,
      description = 'Failover connection pool for Thrift RPC clients',
      long_description = long_description,
      keywords = 'thrift rpc connection pool cassandra client',
      packages = ['thriftpool',
                  'thriftpool.contrib',
                  'thriftpool.logging'],
      install_requires = ['thrift'],
      extras_require = {'test': ['pytest']},
      python_requires = '>=3.7',
      classifiers=[
          'Development Status :: 4 - Beta',
          'Intended Audience :: Developers',
          'License :: OSI Approved :: MIT License',
          'Natural Language :: English',
          'Operating System :: OS Independent',
          'Programming Language :: Python :: 3',
          'Topic :: Software Development :: Libraries :: Python Modules'
          ]
      )
