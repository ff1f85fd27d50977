"""
Analyzer Findings

Payload models produced by each analyzer. Every field has a default so that
the default-constructed model doubles as the zeroed record stored for a
failed analyzer.
"""
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

Severity = Literal["critical", "high", "medium", "low"]
Confidence = Literal["low", "medium", "high"]


class Issue(BaseModel):
    """A single security or accessibility finding."""
    severity: Severity
    category: str
    description: str
    count: Optional[int] = None
    wcag_reference: Optional[str] = None


# ============================================================================
# Markup (E2E) / API surface
# ============================================================================

class MarkupFindings(BaseModel):
    buttons_found: int = 0
    links_found: int = 0
    forms_found: int = 0
    primary_actions: List[str] = Field(default_factory=list)


class ApiEndpoint(BaseModel):
    method: str = "GET"
    path: str
    status: int = 0


class ApiSurfaceFindings(BaseModel):
    endpoints_detected: int = 0
    endpoints: List[ApiEndpoint] = Field(default_factory=list)


# ============================================================================
# Security / Accessibility
# ============================================================================

class SecurityFindings(BaseModel):
    issues: List[Issue] = Field(default_factory=list)
    checks_performed: int = 0
    checks_passed: int = 0
    https_enabled: bool = False


class AccessibilityFindings(BaseModel):
    issues: List[Issue] = Field(default_factory=list)
    total_issues: int = 0
    score: int = 0
    wcag_level: str = "Unable to determine"


# ============================================================================
# Performance
# ============================================================================

class LighthouseScores(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    performance: Optional[int] = None
    accessibility: Optional[int] = None
    best_practices: Optional[int] = Field(default=None, alias="bestPractices")
    seo: Optional[int] = None


class CoreWebVitals(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    fcp: int = 0
    lcp: int = 0
    tti: int = 0
    tbt: int = 0
    cls: float = 0.0
    speed_index: int = Field(default=0, alias="speedIndex")


class PerformanceAudit(BaseModel):
    """An opportunity or diagnostic audit taken from a PageSpeed report."""
    title: str
    description: Optional[str] = None
    score: Optional[float] = None
    savings: Optional[float] = None


class PerformanceFindings(BaseModel):
    score: int = 0
    load_time_ms: int = 0
    image_count: Optional[int] = None
    scripts_count: Optional[int] = None
    stylesheets_count: Optional[int] = None
    compression_enabled: Optional[bool] = None
    caching_enabled: Optional[bool] = None
    lighthouse_scores: Optional[LighthouseScores] = None
    core_web_vitals: Optional[CoreWebVitals] = None
    opportunities: List[PerformanceAudit] = Field(default_factory=list)
    diagnostics: List[PerformanceAudit] = Field(default_factory=list)
    source: Optional[Literal["google-pagespeed", "basic-scan"]] = None


# ============================================================================
# Tech stack
# ============================================================================

class TechSignature(BaseModel):
    name: str
    confidence: Confidence
    version: Optional[str] = None
    category: str


class TechStackFindings(BaseModel):
    detected: List[TechSignature] = Field(default_factory=list)
    total_detected: int = 0
