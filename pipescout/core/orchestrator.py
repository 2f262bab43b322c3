from __future__ import annotations

import logging
from typing import Iterable, List, Optional

import requests
from requests.adapters import HTTPAdapter
from tqdm import tqdm
from urllib3.util.retry import Retry

from .config import ScoutConfig
from .discovery.engine import DiscoveryEngine
from .discovery.search import SearchHarvester
from .errors import AcquisitionError, ExtractionServiceError, QuotaExhaustedError
from .extract.client import PipelineExtractor
from .fetch.cascade import AcquisitionCascade
from .fetch.fetcher import LightweightFetcher
from .fetch.renderer import RenderedFetcher
from .models import CandidateURL, QuotaDecision, RunReport, TargetReport
from .quota.governor import QuotaGovernor
from .quota.ledger import JsonLedgerStore
from .storage.writer import JsonlResultSink

logger = logging.getLogger(__name__)

STATUS_SUCCESS = "success"
STATUS_ERROR = "error"


class ExtractionOrchestrator:
    """Drive discovery, acquisition and metered extraction for each target.

    Targets and their candidate URLs are processed strictly in order. Per-URL
    acquisition and extraction failures are soft. A governor denial that
    survives waiting stops the current target and every later one.
    """

    def __init__(
        self,
        config: ScoutConfig,
        discovery: DiscoveryEngine,
        cascade: AcquisitionCascade,
        extractor: PipelineExtractor,
        governor: QuotaGovernor,
        sink: Optional[JsonlResultSink] = None,
    ) -> None:
        self.config = config
        self.discovery = discovery
        self.cascade = cascade
        self.extractor = extractor
        self.governor = governor
        self.sink = sink

    def _gate(self) -> None:
        decision = self.governor.await_capacity()
        if not decision.allowed:
            raise QuotaExhaustedError(decision)

    def _finalize(self, report: TargetReport, reason: str) -> None:
        if report.succeeded > 0:
            report.status = STATUS_SUCCESS
            if self.sink is not None:
                self.sink.write_batch(report.records)
        else:
            report.status = STATUS_ERROR
            report.error = reason

    def _process(self, report: TargetReport, max_successes: int) -> None:
        entity = report.entity
        candidates = self.discovery.discover(entity)
        report.candidates = [c.url for c in candidates]
        if not candidates:
            report.status = STATUS_ERROR
            report.error = "no candidate URLs"
            logger.warning("No candidate URLs for %r", entity)
            return
        try:
            self._extract_candidates(report, candidates, max_successes)
        except QuotaExhaustedError as exc:
            self._finalize(report, f"quota exhausted: {exc}")
            raise
        self._finalize(report, "no pipeline data extracted")

    def _extract_candidates(
        self,
        report: TargetReport,
        candidates: List[CandidateURL],
        max_successes: int,
    ) -> None:
        entity = report.entity
        min_chars = self.config.orchestrator.min_content_chars
        for cand in candidates:
            if report.succeeded >= max_successes:
                logger.info(
                    "Reached %d successes for %r; skipping remaining URLs",
                    max_successes,
                    entity,
                )
                break

            self._gate()

            report.attempted += 1
            try:
                acquired = self.cascade.acquire(cand.url)
            except AcquisitionError as exc:
                logger.warning(
                    "Acquisition failed [%s] %s: %s", exc.kind.value, cand.url, exc
                )
                report.failures[cand.url] = exc.kind.value
                continue

            if acquired.length < min_chars:
                logger.warning(
                    "Content too short for extraction (%d chars): %s",
                    acquired.length,
                    cand.url,
                )
                report.failures[cand.url] = "too_short"
                continue

            try:
                response = self.extractor.extract(acquired.content, cand.url)
            except ExtractionServiceError as exc:
                if exc.input_tokens or exc.output_tokens:
                    self.governor.record(exc.input_tokens, exc.output_tokens)
                if exc.exhausts_capacity:
                    decision = QuotaDecision(
                        allowed=False,
                        snapshot=self.governor.stats(),
                        reason=str(exc),
                        limit=exc.kind,
                    )
                    raise QuotaExhaustedError(decision) from exc
                logger.warning(
                    "Extraction failed [%s] %s: %s", exc.kind, cand.url, exc
                )
                report.failures[cand.url] = f"extraction_{exc.kind}"
                continue

            self.governor.record(response.input_tokens, response.output_tokens)
            if not response.products:
                logger.info("No pipeline products found at %s", cand.url)
                report.failures[cand.url] = "no_products"
                continue

            report.succeeded += 1
            report.results.append(response)
            logger.info(
                "Success %d/%d for %r: %d products from %s (%s)",
                report.succeeded,
                max_successes,
                entity,
                len(response.products),
                cand.url,
                acquired.method,
            )

    def run(self, entity: str, max_successes: Optional[int] = None) -> TargetReport:
        """Run one target. Raises ``QuotaExhaustedError`` on a hard denial."""
        cap = (
            max_successes
            if max_successes is not None
            else self.config.orchestrator.max_successes
        )
        report = TargetReport(entity=entity.strip())
        self._process(report, max(1, cap))
        return report

    def run_batch(
        self, entities: Iterable[str], max_successes: Optional[int] = None
    ) -> RunReport:
        cap = (
            max_successes
            if max_successes is not None
            else self.config.orchestrator.max_successes
        )
        names: List[str] = [e.strip() for e in entities if e and e.strip()]
        run = RunReport(run_id=self.config.run_id)
        logger.info(
            "Processing %d targets (quota: %s)", len(names), self.governor.describe()
        )
        for idx, name in enumerate(tqdm(names, desc="Targets", unit="target")):
            report = TargetReport(entity=name)
            run.targets.append(report)
            try:
                self._process(report, max(1, cap))
            except QuotaExhaustedError as exc:
                run.aborted = True
                run.abort_reason = str(exc)
                run.skipped = names[idx + 1 :]
                logger.error(
                    "Quota exhausted; aborting run with %d targets skipped: %s",
                    len(run.skipped),
                    exc,
                )
                break
            if report.status == STATUS_SUCCESS:
                logger.info("%s: %d results", name, report.succeeded)
            else:
                logger.warning("%s: %s", name, report.error)

        run.quota = self.governor.stats()
        if self.sink is not None:
            path = self.sink.write_run_report(run)
            logger.info("Run report written to %s", path)
        return run


def build_session(user_agent: str) -> requests.Session:
    session = requests.Session()
    # No transport retries: each tier is attempted once per URL
    adapter = HTTPAdapter(max_retries=Retry(total=0, raise_on_status=False))
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    session.headers.update({"User-Agent": user_agent})
    return session


def build_cascade(config: ScoutConfig) -> AcquisitionCascade:
    lightweight = LightweightFetcher(build_session(config.fetch.user_agent), config.fetch)
    rendered = RenderedFetcher(config.render, user_agent=config.fetch.user_agent)
    return AcquisitionCascade(
        lightweight, rendered, sufficient_chars=config.fetch.sufficient_chars
    )


def build_discovery(config: ScoutConfig) -> DiscoveryEngine:
    harvester = SearchHarvester(
        config.search,
        user_agent=config.fetch.user_agent,
        headless=config.render.headless,
    )
    return DiscoveryEngine(config.discovery, searcher=harvester)


def build_governor(config: ScoutConfig) -> QuotaGovernor:
    return QuotaGovernor(config.quota, JsonLedgerStore(config.quota.state_path))


def build_orchestrator(config: ScoutConfig) -> ExtractionOrchestrator:
    return ExtractionOrchestrator(
        config,
        discovery=build_discovery(config),
        cascade=build_cascade(config),
        extractor=PipelineExtractor(config.extraction),
        governor=build_governor(config),
        sink=JsonlResultSink(config.output.root),
    )
