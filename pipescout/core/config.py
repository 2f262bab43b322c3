from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional

import yaml
from dotenv import load_dotenv

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/128.0.0.0 Safari/537.36"
)


@dataclass(slots=True)
class SearchConfig:
    engine: str = "duckduckgo"
    query_suffix: str = "Pipeline"
    page_timeout_sec: int = 30
    home_settle_sec: float = 2.0
    type_delay_sec: float = 0.1
    results_settle_sec: float = 3.0
    scroll: bool = True
    max_results: int = 15


@dataclass(slots=True)
class DiscoveryConfig:
    max_candidates: int = 8
    min_search_results: int = 2
    fallback_paths: List[str] = field(
        default_factory=lambda: ["/pipeline", "/science/pipeline"]
    )
    known_domains: Dict[str, str] = field(default_factory=dict)


@dataclass(slots=True)
class FetchConfig:
    user_agent: str = DEFAULT_USER_AGENT
    timeout_sec: float = 15.0
    max_redirects: int = 5
    sufficient_chars: int = 2000


@dataclass(slots=True)
class RenderConfig:
    headless: bool = True
    page_timeout_sec: int = 30
    settle_sec: float = 3.0
    selector_timeout_sec: float = 5.0
    min_chars: int = 100
    section_min_chars: int = 20
    section_max_chars: int = 5000
    window_size: str = "1920,1080"
    blocked_patterns: List[str] = field(
        default_factory=lambda: [
            "*.png",
            "*.jpg",
            "*.jpeg",
            "*.gif",
            "*.webp",
            "*.svg",
            "*.ico",
            "*.css",
            "*.woff",
            "*.woff2",
            "*.ttf",
            "*.otf",
            "*.mp4",
            "*.webm",
            "*.mp3",
        ]
    )


@dataclass(slots=True)
class QuotaConfig:
    requests_per_minute: int = 25
    requests_per_day: int = 500
    requests_per_session: int = 100
    cost_per_day_usd: float = 10.0
    input_cost_per_1k: float = 0.00015
    output_cost_per_1k: float = 0.0006
    state_path: Path = Path("data/quota_ledger.json")


@dataclass(slots=True)
class ExtractionConfig:
    model: str = "gpt-4o-mini"
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    max_content_length: int = 20000
    temperature: float = 0.1
    max_tokens: int = 4000
    timeout_sec: float = 120.0


@dataclass(slots=True)
class OrchestratorConfig:
    max_successes: int = 5
    min_content_chars: int = 100


@dataclass(slots=True)
class OutputConfig:
    root: Path = Path("data")


@dataclass(slots=True)
class ScoutConfig:
    run_id: str
    search: SearchConfig = field(default_factory=SearchConfig)
    discovery: DiscoveryConfig = field(default_factory=DiscoveryConfig)
    fetch: FetchConfig = field(default_factory=FetchConfig)
    render: RenderConfig = field(default_factory=RenderConfig)
    quota: QuotaConfig = field(default_factory=QuotaConfig)
    extraction: ExtractionConfig = field(default_factory=ExtractionConfig)
    orchestrator: OrchestratorConfig = field(default_factory=OrchestratorConfig)
    output: OutputConfig = field(default_factory=OutputConfig)


def _ensure_run_id(run_id: Optional[str]) -> str:
    if run_id:
        return run_id
    now = datetime.now(timezone.utc)
    return now.strftime("%Y%m%d-%H%M%S")


def _coerce(key: str, value: Any, cast: Callable[[Any], Any]) -> Any:
    try:
        return cast(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid value for {key}: {value!r}") from exc


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes", "y", "on"}


def _section(params: Mapping[str, Any], name: str) -> Dict[str, Any]:
    raw = params.get(name) or {}
    return raw if isinstance(raw, dict) else {}


def _env(name: str, env: Mapping[str, str]) -> Optional[str]:
    value = env.get(name)
    if value is None or not str(value).strip():
        return None
    return str(value).strip()


def load_config(
    base_dir: Path | None = None,
    params_path: Path | None = None,
    env: Mapping[str, str] | None = None,
) -> ScoutConfig:
    """Build the config tree from ``config/params.yaml`` plus env overrides."""
    if env is None:
        load_dotenv()
        env = os.environ
    base_dir = base_dir or Path(__file__).resolve().parents[2]
    params_path = params_path or base_dir / "config" / "params.yaml"

    params: Dict[str, Any] = {}
    if params_path.exists():
        with params_path.open("r", encoding="utf-8") as fh:
            params = yaml.safe_load(fh) or {}

    search_cfg = _section(params, "search")
    search = SearchConfig(
        engine=str(search_cfg.get("engine", "duckduckgo")).lower(),
        query_suffix=str(search_cfg.get("query_suffix", "Pipeline")),
        page_timeout_sec=_coerce(
            "search.page_timeout_sec", search_cfg.get("page_timeout_sec", 30), int
        ),
        home_settle_sec=_coerce(
            "search.home_settle_sec", search_cfg.get("home_settle_sec", 2.0), float
        ),
        type_delay_sec=_coerce(
            "search.type_delay_sec", search_cfg.get("type_delay_sec", 0.1), float
        ),
        results_settle_sec=_coerce(
            "search.results_settle_sec",
            search_cfg.get("results_settle_sec", 3.0),
            float,
        ),
        scroll=_as_bool(search_cfg.get("scroll", True)),
        max_results=_coerce(
            "search.max_results", search_cfg.get("max_results", 15), int
        ),
    )

    discovery_cfg = _section(params, "discovery")
    known_raw = discovery_cfg.get("known_domains") or {}
    known_domains = {
        str(k).strip().lower(): str(v).strip()
        for k, v in known_raw.items()
        if str(k).strip() and str(v).strip()
    }
    paths_raw = discovery_cfg.get("fallback_paths")
    discovery = DiscoveryConfig(
        max_candidates=_coerce(
            "discovery.max_candidates", discovery_cfg.get("max_candidates", 8), int
        ),
        min_search_results=_coerce(
            "discovery.min_search_results",
            discovery_cfg.get("min_search_results", 2),
            int,
        ),
        known_domains=known_domains,
    )
    if isinstance(paths_raw, (list, tuple)) and paths_raw:
        discovery.fallback_paths = [str(p).strip() for p in paths_raw if str(p).strip()]

    fetch_cfg = _section(params, "fetch")
    fetch = FetchConfig(
        user_agent=_env("PIPESCOUT_USER_AGENT", env)
        or str(fetch_cfg.get("user_agent", DEFAULT_USER_AGENT)),
        timeout_sec=_coerce(
            "fetch.timeout_sec",
            _env("SCRAPING_TIMEOUT", env) or fetch_cfg.get("timeout_sec", 15),
            float,
        ),
        max_redirects=_coerce(
            "fetch.max_redirects", fetch_cfg.get("max_redirects", 5), int
        ),
        sufficient_chars=_coerce(
            "fetch.sufficient_chars", fetch_cfg.get("sufficient_chars", 2000), int
        ),
    )

    render_cfg = _section(params, "render")
    headless_env = _env("HEADLESS", env)
    render = RenderConfig(
        headless=_as_bool(
            headless_env if headless_env is not None else render_cfg.get("headless", True)
        ),
        page_timeout_sec=_coerce(
            "render.page_timeout_sec", render_cfg.get("page_timeout_sec", 30), int
        ),
        settle_sec=_coerce("render.settle_sec", render_cfg.get("settle_sec", 3.0), float),
        selector_timeout_sec=_coerce(
            "render.selector_timeout_sec",
            render_cfg.get("selector_timeout_sec", 5.0),
            float,
        ),
        min_chars=_coerce("render.min_chars", render_cfg.get("min_chars", 100), int),
    )
    blocked = render_cfg.get("blocked_patterns")
    if isinstance(blocked, (list, tuple)):
        render.blocked_patterns = [str(p) for p in blocked if str(p).strip()]

    quota_cfg = _section(params, "quota")
    quota = QuotaConfig(
        requests_per_minute=_coerce(
            "quota.requests_per_minute",
            _env("OPENAI_LIMIT_REQUESTS_PER_MINUTE", env)
            or quota_cfg.get("requests_per_minute", 25),
            int,
        ),
        requests_per_day=_coerce(
            "quota.requests_per_day",
            _env("OPENAI_LIMIT_REQUESTS_PER_DAY", env)
            or quota_cfg.get("requests_per_day", 500),
            int,
        ),
        requests_per_session=_coerce(
            "quota.requests_per_session",
            _env("OPENAI_LIMIT_REQUESTS_PER_SESSION", env)
            or quota_cfg.get("requests_per_session", 100),
            int,
        ),
        cost_per_day_usd=_coerce(
            "quota.cost_per_day_usd",
            _env("OPENAI_LIMIT_COST_PER_DAY", env)
            or quota_cfg.get("cost_per_day_usd", 10.0),
            float,
        ),
        input_cost_per_1k=_coerce(
            "quota.input_cost_per_1k", quota_cfg.get("input_cost_per_1k", 0.00015), float
        ),
        output_cost_per_1k=_coerce(
            "quota.output_cost_per_1k",
            quota_cfg.get("output_cost_per_1k", 0.0006),
            float,
        ),
        state_path=Path(
            _env("PIPESCOUT_QUOTA_STATE", env)
            or quota_cfg.get("state_path", "data/quota_ledger.json")
        ),
    )

    extraction_cfg = _section(params, "extraction")
    extraction = ExtractionConfig(
        model=_env("OPENAI_MODEL", env) or str(extraction_cfg.get("model", "gpt-4o-mini")),
        api_key=_env("OPENAI_API_KEY", env),
        base_url=_env("OPENAI_BASE_URL", env) or extraction_cfg.get("base_url"),
        max_content_length=_coerce(
            "extraction.max_content_length",
            _env("SCRAPING_MAX_CONTENT_LENGTH", env)
            or extraction_cfg.get("max_content_length", 20000),
            int,
        ),
        temperature=_coerce(
            "extraction.temperature", extraction_cfg.get("temperature", 0.1), float
        ),
        max_tokens=_coerce(
            "extraction.max_tokens", extraction_cfg.get("max_tokens", 4000), int
        ),
        timeout_sec=_coerce(
            "extraction.timeout_sec", extraction_cfg.get("timeout_sec", 120), float
        ),
    )

    orch_cfg = _section(params, "orchestrator")
    orchestrator = OrchestratorConfig(
        max_successes=_coerce(
            "orchestrator.max_successes", orch_cfg.get("max_successes", 5), int
        ),
        min_content_chars=_coerce(
            "orchestrator.min_content_chars", orch_cfg.get("min_content_chars", 100), int
        ),
    )

    output_cfg = _section(params, "output")
    output = OutputConfig(root=Path(output_cfg.get("root", "data")))

    return ScoutConfig(
        run_id=_ensure_run_id(params.get("run_id")),
        search=search,
        discovery=discovery,
        fetch=fetch,
        render=render,
        quota=quota,
        extraction=extraction,
        orchestrator=orchestrator,
        output=output,
    )
