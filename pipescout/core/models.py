from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

ORIGIN_SEARCH = "search"
ORIGIN_GENERATED = "generated"

METHOD_LIGHTWEIGHT = "lightweight"
METHOD_RENDERED = "rendered"


@dataclass(slots=True)
class CandidateURL:
    url: str
    origin: str
    rank: int = 0


@dataclass(slots=True)
class AcquisitionResult:
    url: str
    content: str
    method: str
    trace: List[str] = field(default_factory=list)

    @property
    def length(self) -> int:
        return len(self.content)


@dataclass(slots=True)
class Product:
    name: str
    category: Optional[str] = None
    stage: Optional[str] = None


@dataclass(slots=True)
class ExtractionResponse:
    url: str
    products: List[Product]
    input_tokens: int = 0
    output_tokens: int = 0


@dataclass(slots=True)
class ProductRecord:
    molecule_name: str
    category: Optional[str]
    stage: Optional[str]
    company_name: str
    source_url: str


@dataclass(slots=True)
class QuotaDecision:
    allowed: bool
    snapshot: Dict[str, Any]
    reason: Optional[str] = None
    limit: Optional[str] = None
    wait_seconds: Optional[int] = None


@dataclass(slots=True)
class TargetReport:
    entity: str
    status: str = "pending"
    error: Optional[str] = None
    candidates: List[str] = field(default_factory=list)
    attempted: int = 0
    succeeded: int = 0
    results: List[ExtractionResponse] = field(default_factory=list)
    failures: Dict[str, str] = field(default_factory=dict)

    @property
    def records(self) -> List[ProductRecord]:
        out: List[ProductRecord] = []
        for response in self.results:
            for product in response.products:
                out.append(
                    ProductRecord(
                        molecule_name=product.name,
                        category=product.category,
                        stage=product.stage,
                        company_name=self.entity,
                        source_url=response.url,
                    )
                )
        return out


@dataclass(slots=True)
class RunReport:
    run_id: str
    targets: List[TargetReport] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    aborted: bool = False
    abort_reason: Optional[str] = None
    quota: Dict[str, Any] = field(default_factory=dict)
