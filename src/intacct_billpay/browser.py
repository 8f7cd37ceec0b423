"""Browser session management.

The payment run never launches or logs into Intacct itself. An operator
starts a Chromium with remote debugging (``launch_browser``), signs in
(by hand or with ``login``), opens the Pay bills page, and the run attaches
to that tab over the Chrome DevTools Protocol.
"""

import asyncio
from dataclasses import dataclass

import httpx
import structlog
from playwright.async_api import Browser, FrameLocator, Page, Playwright
from playwright.async_api import Error as PlaywrightError

from intacct_billpay.config.settings import FlatSettings
from intacct_billpay.errors import ConfigurationError, SessionNotFoundError

logger = structlog.get_logger(__name__)


MAIN_FRAME = "#iamain"
LOGIN_BUTTON = 'input[id="retbutton"]'
COMPANY_INPUT = 'input[id="company"]'
USER_INPUT = 'input[id="login"]'
PASSWORD_INPUT = 'input[id="passwd"]'
REMEMBER_ME = "#rememberme"
MAIN_MENU = "#main-menu"
APPS_MENU = "#siaappsmenu .open-main"
MY_INSTANCES = "#cl"
CLIENT_LIST = "#cl-all-Clients"
SERVICE_AUTHORIZATIONS = "#cl-all-Clients >> text=My service authorizations"


@dataclass
class BrowserSession:
    """An attached browser with the Intacct tab and its main frame."""

    browser: Browser
    page: Page
    frame: FrameLocator

    async def close(self) -> None:
        """Disconnect from the browser. The browser itself stays open."""
        await self.browser.close()


async def probe_cdp_endpoint(cdp_url: str, timeout: float = 5.0) -> dict[str, str]:
    """Check that a browser is listening for DevTools connections.

    Raises:
        SessionNotFoundError: If the endpoint is unreachable.
    """
    url = f"{cdp_url.rstrip('/')}/json/version"
    try:
        async with httpx.AsyncClient(timeout=httpx.Timeout(timeout)) as client:
            response = await client.get(url)
            response.raise_for_status()
    except httpx.HTTPError as e:
        raise SessionNotFoundError(
            f"No browser with remote debugging at {cdp_url}. "
            "Start one with 'intacct-billpay launch'.",
            details={"error": str(e)},
        ) from e

    data = response.json()
    logger.debug("cdp_endpoint_found", browser=data.get("Browser"))
    return data if isinstance(data, dict) else {}


async def _connect(playwright: Playwright, cdp_url: str) -> Browser:
    await probe_cdp_endpoint(cdp_url)
    try:
        return await playwright.chromium.connect_over_cdp(cdp_url)
    except PlaywrightError as e:
        raise SessionNotFoundError(f"Could not attach to browser at {cdp_url}: {e.message}") from e


async def attach_session(playwright: Playwright, settings: FlatSettings) -> BrowserSession:
    """Attach to the running browser and find the Intacct tab.

    Raises:
        SessionNotFoundError: If the browser or the tab cannot be found.
    """
    browser = await _connect(playwright, settings.cdp_url)
    pages = [page for context in browser.contexts for page in context.pages]
    if not pages:
        await browser.close()
        raise SessionNotFoundError("No open pages found.")

    page = next((p for p in pages if settings.page_url_match in p.url), None)
    if page is None:
        await browser.close()
        raise SessionNotFoundError(
            f'No page with URL containing "{settings.page_url_match}" found.',
            details={"urls": [p.url for p in pages]},
        )

    logger.info("session_attached", url=page.url)
    return BrowserSession(browser=browser, page=page, frame=page.frame_locator(MAIN_FRAME))


async def launch_browser(playwright: Playwright, settings: FlatSettings) -> None:
    """Open a headed Chromium with remote debugging on the login page.

    Keeps running until cancelled (Ctrl-C) so the browser stays open.
    """
    port = httpx.URL(settings.cdp_url).port or 9222
    browser = await playwright.chromium.launch(
        headless=False,
        executable_path=settings.browser_path,
        args=[f"--remote-debugging-port={port}"],
    )
    viewport = {"width": settings.viewport_width, "height": settings.viewport_height}
    context = await browser.new_context(viewport=viewport)
    await context.set_extra_http_headers({"Accept-Language": "en-US,en;q=0.9"})

    page = await context.new_page()
    await page.goto(settings.login_url)
    await page.wait_for_selector(LOGIN_BUTTON)
    logger.info("browser_launched", port=port, url=settings.login_url)

    try:
        await asyncio.Event().wait()
    finally:
        await browser.close()


async def login(playwright: Playwright, settings: FlatSettings) -> None:
    """Sign in to Intacct in the attached browser.

    Raises:
        ConfigurationError: If credentials are not configured.
        SessionNotFoundError: If no browser is listening.
    """
    if not (settings.intacct_company and settings.intacct_login and settings.intacct_password):
        raise ConfigurationError(
            "Intacct credentials are not set. Please set INTACCT_COMPANY, "
            "INTACCT_LOGIN and INTACCT_PASSWORD."
        )

    browser = await _connect(playwright, settings.cdp_url)
    try:
        context = browser.contexts[0] if browser.contexts else await browser.new_context()
        pages = context.pages
        if not pages:
            page = await context.new_page()
            await page.goto(settings.login_url)
        else:
            page = next((p for p in pages if settings.login_url in p.url), pages[0])

        await page.fill(COMPANY_INPUT, settings.intacct_company)
        await page.fill(USER_INPUT, settings.intacct_login)
        await page.fill(PASSWORD_INPUT, settings.intacct_password.get_secret_value())
        await page.click(REMEMBER_ME)
        await page.click(LOGIN_BUTTON)

        await page.wait_for_selector(MAIN_MENU, state="visible")
        logger.info("logged_in", company=settings.intacct_company)

        await page.click(APPS_MENU)
        await page.click(MY_INSTANCES)
        await page.wait_for_selector(CLIENT_LIST)
        await page.click(SERVICE_AUTHORIZATIONS)
        logger.info("service_authorizations_opened")
    finally:
        await browser.close()
