"""
Browser Driver Interface

Narrow capability interface the engine uses to talk to a browser. Any
automation backend can implement it; errors it raises are treated opaquely
as "step failed".
"""

from typing import Any, List, Optional, Protocol, runtime_checkable


@runtime_checkable
class BrowserDriver(Protocol):
    """Asynchronous browser primitives used by the action executor."""

    async def navigate(self, url: str) -> None:
        ...

    async def click(self, selector: str) -> None:
        ...

    async def type(self, selector: str, text: str) -> None:
        ...

    async def wait_for_selector(self, selector: str, timeout_ms: Optional[int] = None) -> None:
        ...

    async def find_element(self, selector: str) -> Optional[Any]:
        ...

    async def find_elements(self, selector: str) -> List[Any]:
        ...

    async def screenshot(self, full_page: bool = False) -> bytes:
        ...

    async def evaluate(self, expression: str, arg: Any = None) -> Any:
        ...

    async def content(self) -> str:
        ...

    async def get_title(self) -> str:
        ...

    async def get_url(self) -> str:
        ...
