"""Process-wide headless browser shared by every render extraction."""

from __future__ import annotations

import asyncio
import atexit
import signal
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Dict, Optional

from playwright.async_api import async_playwright

from config.settings import HTTP_CONFIG, RENDER_CONFIG
from src.utils.logger import get_logger


class BrowserManager:
    """
    Owns the playwright driver and one chromium process.

    The browser is launched lazily on the first ``get_browser`` call and
    relaunched transparently when it has disconnected. Pages are handed out
    through ``page()``, which always closes them, and the number of pages
    open at once is bounded by ``render.max_open_pages``.
    """

    def __init__(
        self,
        *,
        driver_factory: Callable[[], Any] = async_playwright,
        render_config: Optional[Dict[str, Any]] = None,
        logger_factory=None,
    ) -> None:
        self.render_config = dict(render_config or RENDER_CONFIG)
        self._driver_factory = driver_factory
        self._driver: Any = None
        self._browser: Any = None
        self._lock = asyncio.Lock()
        self._page_slots = asyncio.Semaphore(self.render_config["max_open_pages"])
        self._hooks_installed = False
        self.launch_count = 0
        self.open_pages = 0
        factory = logger_factory or get_logger()
        self.module_logger = factory.create_module_logger("extractors.browser")

    def _log(self, level: str, event: str, **details: Any) -> None:
        payload: Dict[str, Any] = {"event": event}
        if details:
            payload["details"] = details
        getattr(self.module_logger, level)(payload)

    @property
    def is_running(self) -> bool:
        return self._browser is not None

    async def get_browser(self) -> Any:
        """Return a connected browser, launching or relaunching it as needed."""
        async with self._lock:
            if self._browser is not None:
                if self._browser.is_connected():
                    return self._browser
                self._log("warning", "extractor.render.browser_disconnected")
                self._browser = None

            if self._driver is None:
                self._driver = await self._driver_factory().start()
            self._browser = await self._driver.chromium.launch(
                headless=True, args=list(self.render_config["launch_args"])
            )
            self.launch_count += 1
            self._log("info", "extractor.render.browser_launched", launches=self.launch_count)
            return self._browser

    @asynccontextmanager
    async def page(self) -> AsyncIterator[Any]:
        """Open an isolated page and close it on every exit path."""
        async with self._page_slots:
            browser = await self.get_browser()
            page = await browser.new_page(
                viewport={
                    "width": self.render_config["viewport_width"],
                    "height": self.render_config["viewport_height"],
                },
                user_agent=HTTP_CONFIG["user_agent"],
            )
            self.open_pages += 1
            try:
                yield page
            finally:
                self.open_pages -= 1
                try:
                    await page.close()
                except Exception as exc:
                    self._log("warning", "extractor.render.page_close_failed", error=str(exc))

    async def _close_handles(self) -> None:
        browser, driver = self._browser, self._driver
        self._browser = None
        self._driver = None
        if browser is not None:
            try:
                await browser.close()
            except Exception as exc:
                self._log("warning", "extractor.render.browser_close_failed", error=str(exc))
        if driver is not None:
            try:
                await driver.stop()
            except Exception as exc:
                self._log("warning", "extractor.render.driver_stop_failed", error=str(exc))

    async def shutdown(self) -> None:
        """Close the browser and stop the driver."""
        async with self._lock:
            was_running = self._browser is not None or self._driver is not None
            await self._close_handles()
        if was_running:
            self._log("info", "extractor.render.browser_shutdown")

    def _shutdown_at_exit(self) -> None:
        if self._browser is None and self._driver is None:
            return
        try:
            asyncio.run(self._close_handles())
        except Exception as exc:
            self._log("warning", "extractor.render.exit_shutdown_failed", error=str(exc))

    def _on_signal(self, signum: int) -> None:
        self._log("warning", "extractor.render.signal_received", signal=signal.Signals(signum).name)
        asyncio.get_running_loop().create_task(self._shutdown_and_cancel())

    async def _shutdown_and_cancel(self) -> None:
        await self.shutdown()
        current = asyncio.current_task()
        for task in asyncio.all_tasks():
            if task is not current:
                task.cancel()

    def install_shutdown_hooks(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        """Release the browser on SIGINT/SIGTERM and at interpreter exit."""
        if self._hooks_installed:
            return
        loop = loop or asyncio.get_running_loop()
        for signum in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(signum, self._on_signal, signum)
            except (NotImplementedError, RuntimeError):
                # Windows loops and non-main threads cannot own signal handlers
                self._log("debug", "extractor.render.signal_hook_unavailable", signal=signum.name)
        atexit.register(self._shutdown_at_exit)
        self._hooks_installed = True


_manager: Optional[BrowserManager] = None


def get_browser_manager() -> BrowserManager:
    global _manager
    if _manager is None:
        _manager = BrowserManager()
    return _manager


async def shutdown_browser_manager() -> None:
    global _manager
    if _manager is not None:
        await _manager.shutdown()
        _manager = None


__all__ = ["BrowserManager", "get_browser_manager", "shutdown_browser_manager"]
