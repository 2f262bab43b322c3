from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Callable, ContextManager, Iterator, Sequence

from selenium import webdriver
from selenium.common.exceptions import WebDriverException
from selenium.webdriver.chrome.options import Options

logger = logging.getLogger(__name__)

HIDE_WEBDRIVER_JS = (
    "Object.defineProperty(navigator, 'webdriver', {get: () => undefined});"
    "window.chrome = window.chrome || {runtime: {}};"
    "Object.defineProperty(navigator, 'languages', {get: () => ['en-US', 'en']});"
)

BrowserFactory = Callable[..., ContextManager[webdriver.Chrome]]


def build_driver(
    *,
    user_agent: str,
    headless: bool = True,
    window_size: str = "1920,1080",
    blocked_patterns: Sequence[str] = (),
) -> webdriver.Chrome:
    options = Options()
    if headless:
        options.add_argument("--headless=new")
    options.add_argument("--no-sandbox")
    options.add_argument("--disable-dev-shm-usage")
    options.add_argument("--disable-blink-features=AutomationControlled")
    options.add_argument("--no-first-run")
    options.add_argument("--no-default-browser-check")
    options.add_argument("--disable-default-apps")
    options.add_argument(f"--window-size={window_size}")
    options.add_argument(f"--user-agent={user_agent}")
    options.add_argument("--lang=en-US")
    options.add_experimental_option("excludeSwitches", ["enable-automation"])
    options.add_experimental_option("useAutomationExtension", False)
    if blocked_patterns:
        options.add_experimental_option(
            "prefs", {"profile.managed_default_content_settings.images": 2}
        )

    driver = webdriver.Chrome(options=options)
    try:
        driver.execute_cdp_cmd(
            "Page.addScriptToEvaluateOnNewDocument", {"source": HIDE_WEBDRIVER_JS}
        )
        driver.execute_cdp_cmd("Network.enable", {})
        driver.execute_cdp_cmd(
            "Network.setExtraHTTPHeaders",
            {"headers": {"Accept-Language": "en-US,en;q=0.9"}},
        )
        if blocked_patterns:
            driver.execute_cdp_cmd(
                "Network.setBlockedURLs", {"urls": list(blocked_patterns)}
            )
    except WebDriverException:
        driver.quit()
        raise
    return driver


@contextmanager
def chrome_session(
    *,
    user_agent: str,
    headless: bool = True,
    window_size: str = "1920,1080",
    blocked_patterns: Sequence[str] = (),
) -> Iterator[webdriver.Chrome]:
    """Yield a throwaway Chrome profile; the process is quit on every exit path."""
    driver = build_driver(
        user_agent=user_agent,
        headless=headless,
        window_size=window_size,
        blocked_patterns=blocked_patterns,
    )
    try:
        yield driver
    finally:
        try:
            driver.quit()
        except WebDriverException as exc:
            logger.debug("Browser quit failed: %s", exc)
