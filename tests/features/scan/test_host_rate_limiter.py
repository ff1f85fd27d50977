import asyncio
from datetime import datetime, timedelta
from unittest.mock import patch

import pytest
import pytest_asyncio
from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

import app.features.scan.models  # noqa: F401
from app.features.scan.models.rate_limit import RateLimit
from app.features.scan.models.scan_result import ScanResult, ScanStatus
from app.features.scan.services.rate_limit.host_rate_limiter import (
    RATE_LIMIT_MAX_SCANS,
    claim_scan_slot,
    get_rate_limit,
    release_scan_slot,
)
from app.features.scan.services.scan.scan import create_scan, queue_scan
from app.platform.db.base import Base
from app.platform.exceptions import RateLimitExceeded

NOW = datetime(2026, 3, 1, 12, 0, 0)


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'rate_limit.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


async def _use_window(db, domain, count, now=NOW):
    for _ in range(count):
        is_allowed, _, _ = await claim_scan_slot(db, domain, now)
        assert is_allowed
    await db.commit()


async def _stored_count(db, domain):
    rate_limit = await get_rate_limit(db, domain)
    return rate_limit.scan_count


@pytest.mark.asyncio
async def test_first_scan_is_allowed(db_session):
    is_allowed, remaining, retry_after = await claim_scan_slot(db_session, "example.com", NOW)

    assert is_allowed is True
    assert remaining == RATE_LIMIT_MAX_SCANS - 1
    assert retry_after == 0
    assert await _stored_count(db_session, "example.com") == 1


@pytest.mark.asyncio
async def test_sixth_scan_in_window_is_rejected(db_session):
    await _use_window(db_session, "example.com", RATE_LIMIT_MAX_SCANS)

    is_allowed, remaining, retry_after = await claim_scan_slot(
        db_session, "example.com", NOW + timedelta(minutes=10)
    )

    assert is_allowed is False
    assert remaining == 0
    assert retry_after == 50 * 60
    assert await _stored_count(db_session, "example.com") == RATE_LIMIT_MAX_SCANS


@pytest.mark.asyncio
async def test_hosts_are_counted_separately(db_session):
    await _use_window(db_session, "example.com", RATE_LIMIT_MAX_SCANS)

    is_allowed, remaining, _ = await claim_scan_slot(db_session, "example.org", NOW)

    assert is_allowed is True
    assert remaining == RATE_LIMIT_MAX_SCANS - 1


@pytest.mark.asyncio
async def test_window_restarts_after_an_hour(db_session):
    await _use_window(db_session, "example.com", RATE_LIMIT_MAX_SCANS)
    later = NOW + timedelta(hours=1, minutes=1)

    is_allowed, remaining, _ = await claim_scan_slot(db_session, "example.com", later)

    assert is_allowed is True
    assert remaining == RATE_LIMIT_MAX_SCANS - 1

    rate_limit = await get_rate_limit(db_session, "example.com")
    assert rate_limit.scan_count == 1
    assert rate_limit.window_start == later


@pytest.mark.asyncio
async def test_release_gives_back_a_slot(db_session):
    await _use_window(db_session, "example.com", RATE_LIMIT_MAX_SCANS)

    await release_scan_slot(db_session, "example.com")
    await db_session.commit()

    is_allowed, remaining, _ = await claim_scan_slot(db_session, "example.com", NOW)
    assert is_allowed is True
    assert remaining == 0


@pytest.mark.asyncio
async def test_create_scan_rejects_before_any_analysis(db_session):
    for _ in range(RATE_LIMIT_MAX_SCANS):
        scan = await create_scan(db_session, "https://limited.example.com/page")
        assert scan.scan_status == ScanStatus.pending

    with pytest.raises(RateLimitExceeded) as exc:
        await create_scan(db_session, "limited.example.com")

    assert exc.value.domain == "limited.example.com"
    assert exc.value.retry_after > 0

    result = await db_session.execute(
        select(ScanResult).where(ScanResult.scan_status == ScanStatus.rejected)
    )
    rejected = result.scalars().all()
    assert len(rejected) == 1
    assert rejected[0].target_url == "https://limited.example.com"

    assert await _stored_count(db_session, "limited.example.com") == RATE_LIMIT_MAX_SCANS


@pytest.mark.asyncio
async def test_concurrent_requests_never_exceed_ceiling(session_factory):
    async def submit():
        async with session_factory() as session:
            return await create_scan(session, "https://busy.example.com")

    outcomes = await asyncio.gather(*[submit() for _ in range(8)], return_exceptions=True)

    accepted = [o for o in outcomes if isinstance(o, ScanResult)]
    rejected = [o for o in outcomes if isinstance(o, RateLimitExceeded)]
    assert len(accepted) == RATE_LIMIT_MAX_SCANS
    assert len(rejected) == 8 - RATE_LIMIT_MAX_SCANS

    async with session_factory() as session:
        assert await _stored_count(session, "busy.example.com") == RATE_LIMIT_MAX_SCANS
        result = await session.execute(select(RateLimit).where(RateLimit.domain == "busy.example.com"))
        assert len(result.scalars().all()) == 1


@pytest.mark.asyncio
async def test_failed_enqueue_releases_the_slot(db_session):
    scan = await create_scan(db_session, "https://queue-down.example.com")

    with patch("app.features.scan.workers.tasks.run_site_scan.delay",
               side_effect=ConnectionError("broker unreachable")):
        with pytest.raises(ConnectionError):
            await queue_scan(db_session, scan)

    assert scan.scan_status == ScanStatus.failed
    assert "broker unreachable" in scan.error_message
    assert await _stored_count(db_session, "queue-down.example.com") == 0
