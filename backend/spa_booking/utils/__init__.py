from .errors import error_response
from .keyed_lock import KeyedLock
