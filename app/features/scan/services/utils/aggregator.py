"""
Scan Aggregation

Derives the overall score, the ranked top-issues list and the flattened
report fields from a sealed ScanResults aggregate.
"""
from typing import Dict, List, Optional

from app.features.scan.schemas.results import (
    AISummary,
    Failed,
    ScanReport,
    ScanResults,
    ScanTarget,
    TopIssue,
)
from app.features.scan.services.analysis.security_analyzer import SecurityAnalyzer
from app.features.scan.services.utils.rounding import round_half_up

SEVERITY_RANK: Dict[str, int] = {"critical": 0, "high": 1, "medium": 2, "low": 3}
UNKNOWN_SEVERITY_RANK = 99
MAX_TOP_ISSUES = 10
POOR_PERFORMANCE_THRESHOLD = 50

SCORE_WEIGHTS: Dict[str, float] = {
    "security": 0.30,
    "performance": 0.25,
    "accessibility": 0.25,
    "e2e": 0.10,
    "api": 0.10,
}

E2E_SCORE_WITH_BUTTONS = 80
E2E_SCORE_WITHOUT_BUTTONS = 50
API_SCORE = 70


def extract_top_issues(results: ScanResults) -> List[TopIssue]:
    """
    Security issues first, then accessibility issues, then a synthetic
    performance issue for a poor score. A failed performance check counts
    as score 0, the value its failed record carries. Stable-sorted by
    severity and capped at MAX_TOP_ISSUES.
    """
    issues: List[TopIssue] = []

    security = results.completed("security")
    if security is not None:
        for issue in security.issues:
            issues.append(TopIssue(
                category=issue.category,
                severity=issue.severity,
                description=issue.description,
            ))

    accessibility = results.completed("accessibility")
    if accessibility is not None:
        for issue in accessibility.issues:
            issues.append(TopIssue(
                category="Accessibility",
                severity=issue.severity,
                description=issue.description,
            ))

    performance_score = _performance_score(results)
    if performance_score is not None and performance_score < POOR_PERFORMANCE_THRESHOLD:
        issues.append(TopIssue(
            category="Performance",
            severity="high",
            description=f"Poor performance score ({performance_score}/100) - site loads slowly",
        ))

    issues.sort(key=lambda issue: SEVERITY_RANK.get(issue.severity, UNKNOWN_SEVERITY_RANK))
    return issues[:MAX_TOP_ISSUES]


def _performance_score(results: ScanResults) -> Optional[int]:
    performance = results.completed("performance")
    if performance is not None:
        return performance.score
    if isinstance(results.performance, Failed):
        return 0
    return None


def calculate_overall_score(results: ScanResults) -> int:
    """Weighted mean over completed analyzers only; 0 when none completed."""
    total_score = 0.0
    total_weight = 0.0

    security = results.completed("security")
    if security is not None and security.checks_performed > 0:
        security_score = security.checks_passed / security.checks_performed * 100
        total_score += security_score * SCORE_WEIGHTS["security"]
        total_weight += SCORE_WEIGHTS["security"]

    performance = results.completed("performance")
    if performance is not None:
        total_score += performance.score * SCORE_WEIGHTS["performance"]
        total_weight += SCORE_WEIGHTS["performance"]

    accessibility = results.completed("accessibility")
    if accessibility is not None:
        total_score += accessibility.score * SCORE_WEIGHTS["accessibility"]
        total_weight += SCORE_WEIGHTS["accessibility"]

    markup = results.completed("e2e")
    if markup is not None:
        e2e_score = E2E_SCORE_WITH_BUTTONS if markup.buttons_found > 0 else E2E_SCORE_WITHOUT_BUTTONS
        total_score += e2e_score * SCORE_WEIGHTS["e2e"]
        total_weight += SCORE_WEIGHTS["e2e"]

    if results.completed("api") is not None:
        total_score += API_SCORE * SCORE_WEIGHTS["api"]
        total_weight += SCORE_WEIGHTS["api"]

    if total_weight == 0:
        return 0

    return max(0, min(100, round_half_up(total_score / total_weight)))


def build_report(
    target: ScanTarget,
    results: ScanResults,
    ai: Optional[AISummary] = None,
    overall_score: Optional[int] = None,
    top_issues: Optional[List[TopIssue]] = None,
) -> ScanReport:
    """Bundle the aggregate with its derived and flattened fields."""
    if overall_score is None:
        overall_score = calculate_overall_score(results)
    if top_issues is None:
        top_issues = extract_top_issues(results)

    performance = results.completed("performance")
    accessibility = results.completed("accessibility")
    security = results.completed("security")
    tech_stack = results.completed("tech_stack")
    api_surface = results.completed("api")

    seo_score = 0
    if performance is not None and performance.lighthouse_scores and performance.lighthouse_scores.seo is not None:
        seo_score = performance.lighthouse_scores.seo

    return ScanReport(
        scan_id=target.scan_id,
        target_url=target.url,
        results=results,
        overall_score=overall_score,
        top_issues=top_issues,
        ai=ai or AISummary(),
        performance_score=performance.score if performance is not None else 0,
        seo_score=seo_score,
        accessibility_issue_count=accessibility.total_issues if accessibility is not None else 0,
        security_checks_passed=security.checks_passed if security is not None else 0,
        security_checks_total=SecurityAnalyzer.CHECKS_PERFORMED,
        technologies=[tech.name for tech in tech_stack.detected] if tech_stack is not None else [],
        exposed_endpoints=[endpoint.path for endpoint in api_surface.endpoints] if api_surface is not None else [],
    )
