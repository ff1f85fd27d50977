from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.scan.schemas.scan import (
    ScanStartRequest,
    ScanStartResponse,
    ScanResponse,
    RegenerateAIResponse,
)
from app.features.scan.services.analysis.summarizer import ScanSummarizer
from app.features.scan.services.scan.scan import (
    create_scan,
    get_scan,
    queue_scan,
    regenerate_ai_summary,
    serialize_scan,
)
from app.features.scan.services.scan_config import ScanConfig
from app.platform.db.session import get_db
from app.platform.logger import get_logger
from app.platform.response import api_response

logger = get_logger(__name__)

router = APIRouter(prefix="/scan", tags=["scan"])


def get_summarizer() -> ScanSummarizer:
    return ScanSummarizer(ScanConfig.from_settings())


@router.post("", response_model=ScanStartResponse, status_code=status.HTTP_202_ACCEPTED)
async def start_scan(
    data: ScanStartRequest,
    db: AsyncSession = Depends(get_db)
):
    """
    Start a scan of one URL.

    The scan is queued to a Celery worker and this endpoint returns
    immediately. Poll GET /scan/{scan_id} for the result.

    Returns:
        ScanStartResponse with scan_id for tracking
    """
    scan = await create_scan(db, data.url)
    await queue_scan(db, scan)

    logger.info(f"Accepted scan {scan.id} for {scan.target_url}")

    return api_response(
        status_code=status.HTTP_202_ACCEPTED,
        message=f"Scan queued successfully. Poll GET /scan/{scan.id} for results.",
        data={
            "scan_id": scan.id,
            "status": "pending"
        }
    )


@router.get("/{scan_id}", response_model=ScanResponse)
async def get_scan_result(
    scan_id: str,
    db: AsyncSession = Depends(get_db)
):
    """
    Get a stored scan: its status and, once completed, every analyzer
    record, the overall score, top issues and AI summary.
    """
    scan = await get_scan(db, scan_id)
    return api_response(
        message="Scan retrieved successfully",
        data=serialize_scan(scan)
    )


@router.post("/{scan_id}/regenerate-ai", response_model=RegenerateAIResponse)
async def regenerate_ai(
    scan_id: str,
    db: AsyncSession = Depends(get_db),
    summarizer: ScanSummarizer = Depends(get_summarizer)
):
    """
    Ask the LLM again for a summary of a stored scan and overwrite the
    previous one.
    """
    scan = await regenerate_ai_summary(db, scan_id, summarizer)
    return api_response(
        message="AI summary regenerated successfully",
        data={
            "ai_summary": scan.ai_summary,
            "ai_recommendations": scan.ai_recommendations or []
        }
    )
