"""
Browser Package - driver interface, Playwright adapter and step dispatch
"""

from .driver import BrowserDriver
from .action_executor import ActionExecutor, ActionResult

__all__ = [
    'BrowserDriver',
    'ActionExecutor',
    'ActionResult',
]
