"""
Scan Result Schemas

The per-analyzer result union, the ScanResults aggregate filled by the
orchestrator, and the report handed to persistence.
"""
from typing import Any, Dict, Generic, List, Literal, Optional, Type, TypeVar, Union

from pydantic import BaseModel, Field, PrivateAttr
from typing_extensions import Annotated

from app.platform.utils.url_validator import extract_host
from app.features.scan.schemas.findings import (
    AccessibilityFindings,
    ApiSurfaceFindings,
    MarkupFindings,
    PerformanceFindings,
    SecurityFindings,
    Severity,
    TechStackFindings,
)

T = TypeVar("T", bound=BaseModel)


# ============================================================================
# AnalyzerResult: Pending | Completed[T] | Failed
# ============================================================================

class Pending(BaseModel):
    status: Literal["pending"] = "pending"


class Completed(BaseModel, Generic[T]):
    status: Literal["completed"] = "completed"
    payload: T


class Failed(BaseModel):
    status: Literal["failed"] = "failed"
    error: str


def _slot(payload_type: Type[BaseModel]):
    return Annotated[
        Union[Pending, Completed[payload_type], Failed],
        Field(discriminator="status"),
    ]


MarkupResult = _slot(MarkupFindings)
ApiSurfaceResult = _slot(ApiSurfaceFindings)
SecurityResult = _slot(SecurityFindings)
PerformanceResult = _slot(PerformanceFindings)
AccessibilityResult = _slot(AccessibilityFindings)
TechStackResult = _slot(TechStackFindings)

AnalyzerResult = Union[Pending, Completed, Failed]


# ============================================================================
# ScanResults aggregate
# ============================================================================

class ScanResults(BaseModel):
    """
    One slot per analyzer kind, all Pending at creation.

    Slots are filled through record(); a slot accepts exactly one terminal
    result and nothing is accepted after seal().
    """
    e2e: MarkupResult = Field(default_factory=Pending)
    api: ApiSurfaceResult = Field(default_factory=Pending)
    security: SecurityResult = Field(default_factory=Pending)
    performance: PerformanceResult = Field(default_factory=Pending)
    accessibility: AccessibilityResult = Field(default_factory=Pending)
    tech_stack: TechStackResult = Field(default_factory=Pending)

    _sealed: bool = PrivateAttr(default=False)

    def record(self, kind: str, result: AnalyzerResult) -> None:
        if self._sealed:
            raise RuntimeError("ScanResults is sealed; analyzers already finished")
        if kind not in SLOT_PAYLOADS:
            raise KeyError(f"Unknown analyzer kind: {kind}")
        if not isinstance(getattr(self, kind), Pending):
            raise RuntimeError(f"Analyzer slot '{kind}' was already recorded")
        if isinstance(result, Pending):
            raise ValueError("Only completed or failed results can be recorded")
        setattr(self, kind, result)

    def seal(self) -> None:
        self._sealed = True

    @property
    def sealed(self) -> bool:
        return self._sealed

    def completed(self, kind: str) -> Optional[BaseModel]:
        """Payload of a completed slot, None for pending or failed ones."""
        result = getattr(self, kind)
        if isinstance(result, Completed):
            return result.payload
        return None

    def slot_record(self, kind: str) -> Dict[str, Any]:
        """Flat dictionary stored for one analyzer slot."""
        result = getattr(self, kind)
        if isinstance(result, Completed):
            record = result.payload.model_dump(by_alias=True, exclude_none=True)
        elif isinstance(result, Failed):
            record = SLOT_PAYLOADS[kind]().model_dump(by_alias=True, exclude_none=True)
            record["error"] = result.error
        else:
            record = {}
        record["status"] = result.status
        return record

    def to_record(self) -> Dict[str, Dict[str, Any]]:
        return {
            "e2e": self.slot_record("e2e"),
            "api": self.slot_record("api"),
            "security": self.slot_record("security"),
            "performance": self.slot_record("performance"),
            "accessibility": self.slot_record("accessibility"),
            "techStack": self.slot_record("tech_stack"),
        }


SLOT_PAYLOADS: Dict[str, Type[BaseModel]] = {
    "e2e": MarkupFindings,
    "api": ApiSurfaceFindings,
    "security": SecurityFindings,
    "performance": PerformanceFindings,
    "accessibility": AccessibilityFindings,
    "tech_stack": TechStackFindings,
}


# ============================================================================
# Aggregation outputs
# ============================================================================

class TopIssue(BaseModel):
    category: str
    severity: Severity
    description: str


class AISummary(BaseModel):
    """Outcome of the best-effort summarization step. Never an error."""
    summary: Optional[str] = None
    recommendations: List[str] = Field(default_factory=list)


class ScanTarget(BaseModel, frozen=True):
    scan_id: str
    url: str

    @property
    def host(self) -> str:
        return extract_host(self.url)


class ScanReport(BaseModel):
    """Snapshot handed to the persistence layer once a scan finished."""
    scan_id: str
    target_url: str
    results: ScanResults
    overall_score: int
    top_issues: List[TopIssue]
    ai: AISummary = Field(default_factory=AISummary)

    performance_score: int = 0
    seo_score: int = 0
    accessibility_issue_count: int = 0
    security_checks_passed: int = 0
    security_checks_total: int = 7
    technologies: List[str] = Field(default_factory=list)
    exposed_endpoints: List[str] = Field(default_factory=list)
