from __future__ import annotations

import logging
import time
from functools import partial
from typing import Any, Callable, Dict, List, Mapping, Optional

from selenium.common.exceptions import TimeoutException, WebDriverException
from selenium.webdriver.common.by import By
from selenium.webdriver.support import expected_conditions as EC
from selenium.webdriver.support.ui import WebDriverWait

from ..config import DEFAULT_USER_AGENT, RenderConfig
from ..errors import AcquisitionError, FailureKind, classify_exception
from ..models import METHOD_RENDERED
from .browser import BrowserFactory, chrome_session

logger = logging.getLogger(__name__)

PIPELINE_SELECTOR = "table, .pipeline, [class*='pipeline'], [id*='pipeline']"

# Runs in the page; returns raw text blocks for compose_rendered_text
EXTRACT_JS = """
const drop = ['script', 'style', 'noscript', 'template', 'nav', 'header', 'footer'];
drop.forEach(sel => document.querySelectorAll(sel).forEach(el => el.remove()));
const banners = ['[class*="cookie"]', '[id*="cookie"]', '[class*="consent"]',
                 '[id*="onetrust"]'];
const pageLen = document.body ? document.body.textContent.length : 0;
const isPageContainer = el => ['HTML', 'BODY', 'MAIN'].includes(el.tagName) ||
  el.querySelector('main') !== null ||
  (pageLen > 0 && el.textContent.length > pageLen / 2);
banners.forEach(sel => document.querySelectorAll(sel).forEach(el => {
  if (el.isConnected && !isPageContainer(el)) el.remove();
}));
const text = el => (el.innerText || '').trim();
const tables = Array.from(document.querySelectorAll('table')).map(table =>
  Array.from(table.querySelectorAll('tr'))
    .map(row => Array.from(row.querySelectorAll('td, th')).map(text))
    .filter(cells => cells.length > 0));
const lists = Array.from(document.querySelectorAll('ul li, ol li')).map(text)
  .filter(t => t.length > 0);
const sections = Array.from(document.querySelectorAll(
  '[class*="pipeline"], [class*="product"], [class*="drug"], [id*="pipeline"]'
)).map(text);
return {body: document.body ? text(document.body) : '', tables, lists, sections};
"""


def compose_rendered_text(
    parts: Mapping[str, Any],
    section_min_chars: int = 20,
    section_max_chars: int = 5000,
) -> str:
    """Concatenate body text, table rows, list items and pipeline-ish sections."""
    blocks: List[str] = []
    body = str(parts.get("body") or "").strip()
    if body:
        blocks.append(body)

    table_lines: List[str] = []
    for idx, rows in enumerate(parts.get("tables") or [], start=1):
        lines = [
            " | ".join(str(c).strip() for c in cells)
            for cells in rows
            if cells
        ]
        if lines:
            table_lines.append(f"Table {idx}:")
            table_lines.extend(lines)
    if table_lines:
        blocks.append("=== TABLES ===\n" + "\n".join(table_lines))

    items = [str(i).strip() for i in parts.get("lists") or [] if str(i).strip()]
    if items:
        blocks.append("=== LISTS ===\n" + "\n".join(f"- {i}" for i in items))

    sections = [
        s.strip()
        for s in (str(x) for x in parts.get("sections") or [])
        if section_min_chars < len(s.strip()) < section_max_chars
    ]
    if sections:
        blocks.append("=== PIPELINE SECTIONS ===\n" + "\n".join(sections))

    return "\n\n".join(blocks)


class RenderedFetcher:
    method = METHOD_RENDERED

    def __init__(
        self,
        config: RenderConfig | None = None,
        *,
        user_agent: str = DEFAULT_USER_AGENT,
        browser_factory: Optional[BrowserFactory] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = config or RenderConfig()
        self.user_agent = user_agent
        self.browser_factory = browser_factory or partial(
            chrome_session,
            user_agent=user_agent,
            headless=self.config.headless,
            window_size=self.config.window_size,
            blocked_patterns=self.config.blocked_patterns,
        )
        self._sleep = sleep

    def _wait_loaded(self, driver) -> None:  # type: ignore[no-untyped-def]
        WebDriverWait(driver, self.config.page_timeout_sec).until(
            lambda d: d.execute_script("return document.readyState") == "complete"
        )

    def _wait_for_pipeline_selector(self, driver) -> bool:  # type: ignore[no-untyped-def]
        try:
            WebDriverWait(driver, self.config.selector_timeout_sec).until(
                EC.presence_of_element_located((By.CSS_SELECTOR, PIPELINE_SELECTOR))
            )
            return True
        except TimeoutException:
            logger.info("No pipeline selector on %s; continuing", driver.current_url)
            return False

    def fetch(self, url: str) -> str:
        try:
            with self.browser_factory() as driver:
                driver.set_page_load_timeout(self.config.page_timeout_sec)
                driver.get(url)
                self._wait_loaded(driver)
                self._sleep(self.config.settle_sec)
                self._wait_for_pipeline_selector(driver)
                parts: Dict[str, Any] = driver.execute_script(EXTRACT_JS) or {}
        except WebDriverException as exc:
            kind = classify_exception(exc)
            raise AcquisitionError(
                kind, url, f"{kind.value}: {url} ({exc.msg or exc})", tier=self.method
            ) from exc

        text = compose_rendered_text(
            parts, self.config.section_min_chars, self.config.section_max_chars
        )
        logger.info("Rendered %s -> %d chars", url, len(text))
        if len(text) < self.config.min_chars:
            raise AcquisitionError(
                FailureKind.TOO_SHORT,
                url,
                f"Rendered content too short ({len(text)} chars): {url}",
                tier=self.method,
            )
        return text
