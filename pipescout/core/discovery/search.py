from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from functools import partial
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from selenium.webdriver.common.by import By
from selenium.webdriver.common.keys import Keys
from selenium.webdriver.support import expected_conditions as EC
from selenium.webdriver.support.ui import WebDriverWait

from ..config import DEFAULT_USER_AGENT, SearchConfig
from ..fetch.browser import BrowserFactory, chrome_session
from ..utils import host_matches, host_of, is_social, unwrap_redirect
from .relevance import is_relevant

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SearchEngine:
    name: str
    home_url: str
    input_selector: str
    own_domain: str
    redirect_param: Optional[str] = None


ENGINES: Dict[str, SearchEngine] = {
    "duckduckgo": SearchEngine(
        name="duckduckgo",
        home_url="https://duckduckgo.com",
        input_selector="input[name='q']",
        own_domain="duckduckgo.com",
        redirect_param="uddg",
    ),
    "google": SearchEngine(
        name="google",
        home_url="https://www.google.com",
        input_selector="textarea[name='q'], input[name='q']",
        own_domain="google.com",
        redirect_param="q",
    ),
}

ANCHORS_JS = """
return Array.from(document.querySelectorAll('a[href]')).map(a => ({
  href: a.getAttribute('href') || '',
  text: (a.innerText || a.textContent || '').trim()
}));
"""


def filter_result_anchors(
    anchors: Iterable[Mapping[str, Any]],
    base_url: str,
    entity: str,
    engine: SearchEngine,
    limit: int = 15,
) -> List[str]:
    """Resolve, filter and rank raw result-page anchors in page order."""
    urls: List[str] = []
    seen: set[str] = set()
    for anchor in anchors:
        href = str(anchor.get("href") or "")
        text = str(anchor.get("text") or "")
        target = unwrap_redirect(
            href, base_url, engine.redirect_param, engine.own_domain
        )
        if not target:
            continue
        if host_matches(host_of(target), engine.own_domain) or is_social(target):
            continue
        if not is_relevant(target, text, entity):
            continue
        if target in seen:
            continue
        seen.add(target)
        urls.append(target)
        if len(urls) >= limit:
            break
    return urls


class SearchHarvester:
    """Type a query into a rendered search page and harvest result links."""

    def __init__(
        self,
        config: SearchConfig | None = None,
        *,
        user_agent: str = DEFAULT_USER_AGENT,
        headless: bool = True,
        browser_factory: Optional[BrowserFactory] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = config or SearchConfig()
        if self.config.engine not in ENGINES:
            raise ValueError(f"Unknown search engine: {self.config.engine}")
        self.engine = ENGINES[self.config.engine]
        self.browser_factory = browser_factory or partial(
            chrome_session, user_agent=user_agent, headless=headless
        )
        self._sleep = sleep

    def query_for(self, entity: str) -> str:
        return f"{entity.strip()} {self.config.query_suffix}".strip()

    def _wait_loaded(self, driver) -> None:  # type: ignore[no-untyped-def]
        WebDriverWait(driver, self.config.page_timeout_sec).until(
            lambda d: d.execute_script("return document.readyState") == "complete"
        )

    def _type_query(self, driver, query: str) -> None:  # type: ignore[no-untyped-def]
        box = WebDriverWait(driver, self.config.page_timeout_sec).until(
            EC.element_to_be_clickable((By.CSS_SELECTOR, self.engine.input_selector))
        )
        box.click()
        for ch in query:
            box.send_keys(ch)
            self._sleep(self.config.type_delay_sec)
        box.send_keys(Keys.ENTER)

    def _scroll(self, driver) -> None:  # type: ignore[no-untyped-def]
        driver.execute_script("window.scrollTo(0, document.body.scrollHeight / 2);")
        self._sleep(1.0)
        driver.execute_script("window.scrollTo(0, document.body.scrollHeight);")
        self._sleep(2.0)

    def _harvest(self, entity: str) -> List[str]:
        query = self.query_for(entity)
        with self.browser_factory() as driver:
            driver.set_page_load_timeout(self.config.page_timeout_sec)
            driver.get(self.engine.home_url)
            self._wait_loaded(driver)
            self._sleep(self.config.home_settle_sec)
            logger.info("Searching %s for %r", self.engine.name, query)
            self._type_query(driver, query)
            self._wait_loaded(driver)
            self._sleep(self.config.results_settle_sec)
            if self.config.scroll:
                self._scroll(driver)
            anchors = driver.execute_script(ANCHORS_JS) or []
            base_url = driver.current_url
        logger.debug("Collected %d anchors from %s", len(anchors), base_url)
        return filter_result_anchors(
            anchors, base_url, entity, self.engine, self.config.max_results
        )

    def search(self, entity: str) -> List[str]:
        try:
            urls = self._harvest(entity)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Search on %s failed for %r: %s", self.engine.name, entity, exc)
            return []
        logger.info("Found %d URLs on %s for %r", len(urls), self.engine.name, entity)
        return urls
