"""
Streaming Package - execution event stream and observer registry
"""

from .execution_stream import ExecutionStream
from .observers import Observer, ObserverRegistry, QueueObserver, ObserverClosedError

__all__ = [
    'ExecutionStream',
    'Observer',
    'ObserverRegistry',
    'QueueObserver',
    'ObserverClosedError',
]
