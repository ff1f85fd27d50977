import logging
from datetime import datetime
from typing import Any, Dict, Optional

from app.features.scan.models.scan_result import ScanStatus
from app.features.scan.schemas.results import ScanTarget
from app.features.scan.services.orchestration.scan_orchestrator import ScanOrchestrator
from app.features.scan.services.scan.scan import save_scan_report, update_scan_status
from app.features.scan.services.scan_config import ScanConfig
from app.platform.celery_app import celery_app
from app.platform.db.session import get_sync_db

logger = logging.getLogger(__name__)


def process_scan(
    scan_id: str,
    url: str,
    orchestrator: Optional[ScanOrchestrator] = None
) -> Dict[str, Any]:
    """
    Run one scan end to end against its stored row.

    pending -> processing -> completed, or failed when anything outside the
    analyzers' own failure boundaries raises.
    """
    orchestrator = orchestrator or ScanOrchestrator(ScanConfig.from_settings())

    db = get_sync_db()
    try:
        update_scan_status(db, scan_id, ScanStatus.processing)

        try:
            report = orchestrator.scan(ScanTarget(scan_id=scan_id, url=url))
            save_scan_report(db, report)
        except Exception as e:
            logger.error(f"[{scan_id}] Scan failed: {e}")
            db.rollback()
            update_scan_status(
                db,
                scan_id,
                ScanStatus.failed,
                error_message=str(e),
                completed_at=datetime.utcnow()
            )
            raise

        logger.info(f"[{scan_id}] Scan completed with score {report.overall_score}/100")
        return {
            "scan_id": scan_id,
            "status": ScanStatus.completed.value,
            "overall_score": report.overall_score
        }
    finally:
        db.close()


@celery_app.task(
    bind=True,
    name="app.features.scan.workers.tasks.run_site_scan",
    max_retries=0,
)
def run_site_scan(self, scan_id: str, url: str) -> Dict[str, Any]:
    """
    Celery entry point for one scan.

    Args:
        scan_id: The stored scan row ID
        url: Normalized target URL

    Returns:
        Dict with the scan id, final status and overall score
    """
    logger.info(f"[{scan_id}] Starting site scan for {url}")
    return process_scan(scan_id, url)
