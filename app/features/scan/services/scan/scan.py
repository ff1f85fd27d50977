import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from app.features.scan.models.scan_result import ScanResult, ScanStatus
from app.features.scan.schemas.results import AISummary, ScanReport, TopIssue
from app.features.scan.services.analysis.summarizer import ScanSummarizer
from app.features.scan.services.rate_limit.host_rate_limiter import (
    claim_scan_slot,
    release_scan_slot,
)
from app.platform.exceptions import (
    RateLimitExceeded,
    ScanNotFound,
    SummarizerUnavailable,
    SummaryGenerationFailed,
)
from app.platform.utils.url_validator import extract_host, validate_url

logger = logging.getLogger(__name__)

RESULT_COLUMNS = {
    "e2e": "e2e_results",
    "api": "api_results",
    "security": "security_results",
    "performance": "performance_results",
    "accessibility": "accessibility_results",
    "techStack": "tech_stack",
}


# ============================================================================
# API side (async)
# ============================================================================

async def create_scan(db: AsyncSession, url: str) -> ScanResult:
    """
    Validate the URL, apply the per-host rate limit and store a pending row.

    A rejected request is still stored, with status "rejected", and then
    surfaces as RateLimitExceeded. No analyzer runs for it.
    """
    is_valid, url_str, error_message = validate_url(url)
    if not is_valid:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid URL: {error_message}"
        )

    domain = extract_host(url_str)

    is_allowed, remaining, retry_after = await claim_scan_slot(db, domain)
    if not is_allowed:
        scan = ScanResult(
            target_url=url_str,
            domain=domain,
            scan_status=ScanStatus.rejected,
            error_message="Rate limit exceeded. Please try again later."
        )
        db.add(scan)
        await db.commit()
        logger.warning(f"Rejected scan {scan.id} for {domain}, retry after {retry_after}s")
        raise RateLimitExceeded(domain, retry_after=retry_after)

    scan = ScanResult(
        target_url=url_str,
        domain=domain,
        scan_status=ScanStatus.pending
    )
    db.add(scan)
    await db.commit()
    await db.refresh(scan)

    logger.info(f"Created scan {scan.id} for {url_str} ({remaining} scans left this window)")
    return scan


async def queue_scan(db: AsyncSession, scan: ScanResult) -> ScanResult:
    """Hand a pending scan to the Celery worker and remember the task id."""
    from app.features.scan.workers.tasks import run_site_scan

    try:
        task_result = run_site_scan.delay(scan_id=scan.id, url=scan.target_url)
    except Exception as e:
        logger.error(f"Failed to queue scan {scan.id}: {e}")
        scan.scan_status = ScanStatus.failed
        scan.error_message = f"Failed to queue scan: {str(e)}"
        await release_scan_slot(db, scan.domain)
        await db.commit()
        raise

    scan.celery_task_id = task_result.id
    await db.commit()

    logger.info(f"Queued scan {scan.id} as task {task_result.id}")
    return scan


async def get_scan(db: AsyncSession, scan_id: str) -> ScanResult:
    query = select(ScanResult).where(ScanResult.id == scan_id)
    result = await db.execute(query)
    scan = result.scalar_one_or_none()

    if not scan:
        raise ScanNotFound(scan_id)

    return scan


async def regenerate_ai_summary(
    db: AsyncSession,
    scan_id: str,
    summarizer: ScanSummarizer
) -> ScanResult:
    """
    Rebuild the summary prompt from a stored scan and overwrite its AI fields.
    """
    scan = await get_scan(db, scan_id)

    if not summarizer.enabled:
        raise SummarizerUnavailable("AI summarization is not configured")

    security = scan.security_results or {}
    top_issues = [TopIssue(**issue) for issue in scan.top_issues or []]

    ai = await asyncio.to_thread(
        summarizer.summarize_counts,
        url=scan.target_url,
        overall_score=scan.overall_score or 0,
        security_issue_count=len(security.get("issues") or []),
        accessibility_issue_count=scan.accessibility_issue_count or 0,
        performance_score=scan.performance_score or 0,
        top_issues=top_issues,
    )

    if ai.summary is None:
        raise SummaryGenerationFailed("AI summary could not be generated")

    scan.ai_summary = ai.summary
    scan.ai_recommendations = ai.recommendations
    await db.commit()
    await db.refresh(scan)

    logger.info(f"Regenerated AI summary for scan {scan_id}")
    return scan


def serialize_scan(scan: ScanResult) -> Dict[str, Any]:
    """Row as returned by the scan API."""
    scan_status = scan.scan_status.value if hasattr(scan.scan_status, 'value') else str(scan.scan_status)

    return {
        "scan_id": scan.id,
        "target_url": scan.target_url,
        "status": scan_status,
        "overall_score": scan.overall_score,
        "results": {key: getattr(scan, column) for key, column in RESULT_COLUMNS.items()},
        "top_issues": scan.top_issues or [],
        "ai_summary": scan.ai_summary,
        "ai_recommendations": scan.ai_recommendations or [],
        "performance_score": scan.performance_score,
        "seo_score": scan.seo_score,
        "accessibility_issue_count": scan.accessibility_issue_count,
        "security_checks_passed": scan.security_checks_passed,
        "security_checks_total": scan.security_checks_total,
        "technologies": scan.technologies or [],
        "exposed_endpoints": scan.exposed_endpoints or [],
        "error_message": scan.error_message,
        "created_at": scan.created_at.isoformat() if scan.created_at else None,
        "completed_at": scan.completed_at.isoformat() if scan.completed_at else None,
        "expires_at": scan.expires_at.isoformat() if scan.expires_at else None,
    }


# ============================================================================
# Worker side (sync)
# ============================================================================

def update_scan_status(db: Session, scan_id: str, scan_status: ScanStatus, **kwargs) -> Optional[ScanResult]:
    """Update a scan row's status and any extra columns passed as keywords."""
    scan = db.query(ScanResult).filter(ScanResult.id == scan_id).first()
    if not scan:
        logger.warning(f"Status update for non-existent scan {scan_id}")
        return None

    scan.scan_status = scan_status
    for key, value in kwargs.items():
        if hasattr(scan, key):
            setattr(scan, key, value)
    db.commit()
    return scan


def save_scan_report(db: Session, report: ScanReport) -> Optional[ScanResult]:
    """Persist a finished report and mark the scan completed."""
    records = report.results.to_record()
    ai = report.ai or AISummary()

    columns = {column: records[key] for key, column in RESULT_COLUMNS.items()}

    return update_scan_status(
        db,
        report.scan_id,
        ScanStatus.completed,
        overall_score=report.overall_score,
        top_issues=[issue.model_dump() for issue in report.top_issues],
        ai_summary=ai.summary,
        ai_recommendations=ai.recommendations,
        performance_score=report.performance_score,
        seo_score=report.seo_score,
        accessibility_issue_count=report.accessibility_issue_count,
        security_checks_passed=report.security_checks_passed,
        security_checks_total=report.security_checks_total,
        technologies=report.technologies,
        exposed_endpoints=report.exposed_endpoints,
        error_message=None,
        completed_at=datetime.utcnow(),
        **columns
    )
