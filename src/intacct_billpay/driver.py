"""UI driver boundary.

Grid and form code talk to the page only through ``UIDriver``. The
Playwright implementation scopes every selector to one frame and translates
Playwright exceptions into ``UIActionError`` / ``UITimeoutError`` so callers
never import Playwright.
"""

import asyncio
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Protocol

import structlog
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import FrameLocator, Locator, Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from intacct_billpay.errors import UIActionError, UITimeoutError

logger = structlog.get_logger(__name__)


class UIDriver(Protocol):
    """Verbs the automation needs from the page."""

    async def count(self, selector: str) -> int: ...

    async def wait_visible(self, selector: str, timeout: float) -> None: ...

    async def wait_attached(self, selector: str, timeout: float) -> None: ...

    async def inner_text(self, selector: str) -> str: ...

    async def click(self, selector: str) -> None: ...

    async def fill(self, selector: str, value: str) -> None: ...

    async def select_option(
        self, selector: str, value: str | None = None, label: str | None = None
    ) -> None: ...

    async def check(self, selector: str) -> None: ...

    async def pause(self, seconds: float) -> None: ...


class PlaywrightDriver:
    """UIDriver backed by a Playwright page or frame locator."""

    def __init__(self, scope: Page | FrameLocator, action_timeout: float = 30.0):
        self._scope = scope
        self._action_timeout_ms = action_timeout * 1000

    def _locator(self, selector: str) -> Locator:
        return self._scope.locator(selector).first

    @contextmanager
    def _translate(self, action: str, selector: str) -> Iterator[None]:
        try:
            yield
        except PlaywrightTimeoutError as e:
            raise UITimeoutError(action, selector, e.message) from e
        except PlaywrightError as e:
            raise UIActionError(action, selector, e.message) from e

    async def count(self, selector: str) -> int:
        with self._translate("count", selector):
            return await self._scope.locator(selector).count()

    async def wait_visible(self, selector: str, timeout: float) -> None:
        with self._translate("wait_visible", selector):
            await self._locator(selector).wait_for(state="visible", timeout=timeout * 1000)

    async def wait_attached(self, selector: str, timeout: float) -> None:
        with self._translate("wait_attached", selector):
            await self._locator(selector).wait_for(state="attached", timeout=timeout * 1000)

    async def inner_text(self, selector: str) -> str:
        with self._translate("inner_text", selector):
            return await self._locator(selector).inner_text(timeout=self._action_timeout_ms)

    async def click(self, selector: str) -> None:
        with self._translate("click", selector):
            await self._locator(selector).click(timeout=self._action_timeout_ms)

    async def fill(self, selector: str, value: str) -> None:
        with self._translate("fill", selector):
            await self._locator(selector).fill(value, timeout=self._action_timeout_ms)

    async def select_option(
        self, selector: str, value: str | None = None, label: str | None = None
    ) -> None:
        with self._translate("select_option", selector):
            locator = self._locator(selector)
            if label is not None:
                await locator.select_option(label=label, timeout=self._action_timeout_ms)
            else:
                await locator.select_option(value, timeout=self._action_timeout_ms)

    async def check(self, selector: str) -> None:
        with self._translate("check", selector):
            await self._locator(selector).check(timeout=self._action_timeout_ms)

    async def pause(self, seconds: float) -> None:
        if seconds > 0:
            await asyncio.sleep(seconds)
