"""
WebPilot - hierarchical planning and execution engine for browser automation.

Turns a natural-language objective into a two-level plan, executes it step by
step against one browser session and streams progress to observers.
"""

__version__ = "0.1.0"
