"""
Playwright Browser Driver

BrowserDriver implementation over ``playwright.async_api``. Owns one
browser, one context and one page; the engine never runs two operations on
it concurrently.

Usage:
    driver = PlaywrightDriver(headless=True)
    await driver.start()
    await driver.navigate("https://example.com")
    await driver.close()
"""

from typing import Any, List, Optional

from playwright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright

from webpilot.core.config import Settings, settings as default_settings


class PlaywrightDriver:
    """Single-page Playwright session."""

    def __init__(self, settings: Optional[Settings] = None, default_timeout_ms: int = 10000):
        self.settings = settings or default_settings
        self.default_timeout_ms = default_timeout_ms
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self._page: Optional[Page] = None

    async def start(self) -> "PlaywrightDriver":
        """Launch Chromium and open a page. Idempotent."""
        if self._page is not None:
            return self

        print(f"[PLAYWRIGHT] Launching Chromium (headless={self.settings.headless})")
        try:
            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(headless=self.settings.headless)
            self._context = await self._browser.new_context(viewport={
                "width": self.settings.viewport_width,
                "height": self.settings.viewport_height,
            })
            self._page = await self._context.new_page()
            self._page.set_default_timeout(self.default_timeout_ms)
        except Exception as e:
            print(f"[PLAYWRIGHT] ❌ Browser launch failed: {type(e).__name__}: {e}")
            await self.close()
            raise
        print("[PLAYWRIGHT] ✅ Browser ready")
        return self

    @property
    def page(self) -> Page:
        if self._page is None:
            raise RuntimeError("Browser not started. Call start() first.")
        return self._page

    async def close(self) -> None:
        """Close page, browser and Playwright. Safe to call more than once."""
        if self._browser is not None:
            try:
                await self._browser.close()
            except Exception as e:
                print(f"[PLAYWRIGHT] Error closing browser: {e}")
        if self._playwright is not None:
            try:
                await self._playwright.stop()
            except Exception as e:
                print(f"[PLAYWRIGHT] Error stopping Playwright: {e}")
        self._page = None
        self._context = None
        self._browser = None
        self._playwright = None

    async def navigate(self, url: str) -> None:
        await self.page.goto(url, wait_until="domcontentloaded")

    async def click(self, selector: str) -> None:
        await self.page.click(selector)

    async def type(self, selector: str, text: str) -> None:
        await self.page.fill(selector, text)

    async def wait_for_selector(self, selector: str, timeout_ms: Optional[int] = None) -> None:
        await self.page.wait_for_selector(selector, timeout=timeout_ms)

    async def find_element(self, selector: str) -> Optional[Any]:
        return await self.page.query_selector(selector)

    async def find_elements(self, selector: str) -> List[Any]:
        return await self.page.query_selector_all(selector)

    async def screenshot(self, full_page: bool = False) -> bytes:
        return await self.page.screenshot(full_page=full_page, type="png")

    async def evaluate(self, expression: str, arg: Any = None) -> Any:
        return await self.page.evaluate(expression, arg)

    async def content(self) -> str:
        return await self.page.content()

    async def get_title(self) -> str:
        return await self.page.title()

    async def get_url(self) -> str:
        return self.page.url
