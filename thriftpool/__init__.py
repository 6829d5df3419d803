from thriftpool.connection import *
from thriftpool.errors import *
from thriftpool.pool import *

from thriftpool.logging.thriftpool_logger import *

__version_info__ = (0, 1, 0)
__version__ = '.'.join(map(str, __version_info__))
