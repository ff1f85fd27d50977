from sqlalchemy import select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession
from datetime import datetime, timedelta
from typing import Optional

from app.features.scan.models.rate_limit import RateLimit
from app.platform.logger import get_logger

logger = get_logger(__name__)

RATE_LIMIT_WINDOW = timedelta(hours=1)
RATE_LIMIT_MAX_SCANS = 5


def _insert_ignoring_duplicates(db: AsyncSession):
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert(RateLimit)
    return sqlite.insert(RateLimit)


async def ensure_rate_limit(
    db: AsyncSession,
    domain: str,
    now: Optional[datetime] = None
) -> None:
    """
    Make sure the host has a RateLimit row.

    Concurrent first requests for one host all issue the insert; the unique
    domain index keeps one row and the others are skipped.
    """
    now = now or datetime.utcnow()

    stmt = _insert_ignoring_duplicates(db).values(
        domain=domain,
        scan_count=0,
        window_start=now,
        last_scan_at=now,
    ).on_conflict_do_nothing(index_elements=["domain"])
    await db.execute(stmt)


async def get_rate_limit(db: AsyncSession, domain: str) -> Optional[RateLimit]:
    query = (
        select(RateLimit)
        .where(RateLimit.domain == domain)
        .execution_options(populate_existing=True)
    )
    result = await db.execute(query)
    return result.scalar_one_or_none()


async def claim_scan_slot(
    db: AsyncSession,
    domain: str,
    now: Optional[datetime] = None
) -> tuple[bool, int, int]:
    """
    Count one scan against the host if its window still has room.

    The window reset and the increment are conditional UPDATEs, so two
    requests racing for the last slot cannot both get it. A rejected claim
    leaves scan_count untouched. Nothing is committed here; the caller
    commits together with the scan row.

    Returns:
        (is_allowed, remaining_scans, retry_after_seconds) tuple
    """
    now = now or datetime.utcnow()
    await ensure_rate_limit(db, domain, now)

    reset = await db.execute(
        update(RateLimit)
        .where(RateLimit.domain == domain, RateLimit.window_start <= now - RATE_LIMIT_WINDOW)
        .values(scan_count=0, window_start=now)
        .execution_options(synchronize_session=False)
    )
    if reset.rowcount:
        logger.info(f"Reset rate limit window for {domain}")

    claimed = await db.execute(
        update(RateLimit)
        .where(RateLimit.domain == domain, RateLimit.scan_count < RATE_LIMIT_MAX_SCANS)
        .values(scan_count=RateLimit.scan_count + 1, last_scan_at=now)
        .execution_options(synchronize_session=False)
    )

    rate_limit = await get_rate_limit(db, domain)

    if claimed.rowcount != 1:
        window_end = rate_limit.window_start + RATE_LIMIT_WINDOW
        retry_after = max(1, int((window_end - now).total_seconds()))
        logger.warning(f"Rate limit exceeded for {domain} "
                       f"(count={rate_limit.scan_count}, retry_after={retry_after}s)")
        return False, 0, retry_after

    logger.info(f"Incremented scan count for {domain} "
                f"(count={rate_limit.scan_count}, max={RATE_LIMIT_MAX_SCANS})")
    return True, RATE_LIMIT_MAX_SCANS - rate_limit.scan_count, 0


async def release_scan_slot(db: AsyncSession, domain: str) -> None:
    """Give back a claimed slot for a scan that never reached a worker."""
    await db.execute(
        update(RateLimit)
        .where(RateLimit.domain == domain, RateLimit.scan_count > 0)
        .values(scan_count=RateLimit.scan_count - 1)
        .execution_options(synchronize_session=False)
    )
    logger.info(f"Released scan slot for {domain}")
