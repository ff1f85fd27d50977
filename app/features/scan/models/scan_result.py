from sqlalchemy import Column, String, Integer, DateTime, Text, JSON, Index, Enum
from datetime import datetime, timedelta
import enum

from app.platform.db.base import BaseModel

RESULT_RETENTION = timedelta(days=30)


class ScanStatus(enum.Enum):
    """Scan row lifecycle"""
    pending = "pending"
    processing = "processing"
    completed = "completed"
    failed = "failed"
    rejected = "rejected"


def _default_expiry():
    return datetime.utcnow() + RESULT_RETENTION


class ScanResult(BaseModel):
    """
    One scan of one URL: per-analyzer records, aggregate score, top issues
    and the optional AI summary.
    """
    __tablename__ = "scan_results"

    target_url = Column(String(2048), nullable=False)
    domain = Column(String(255), nullable=False, index=True)

    scan_status = Column(Enum(ScanStatus), default=ScanStatus.pending, nullable=False, index=True)
    error_message = Column(Text, nullable=True)

    # Aggregated score
    overall_score = Column(Integer, nullable=True)  # 0-100

    # Per-analyzer records
    e2e_results = Column(JSON, nullable=True)
    api_results = Column(JSON, nullable=True)
    security_results = Column(JSON, nullable=True)
    performance_results = Column(JSON, nullable=True)
    accessibility_results = Column(JSON, nullable=True)
    tech_stack = Column(JSON, nullable=True)

    top_issues = Column(JSON, nullable=True)
    ai_summary = Column(Text, nullable=True)
    ai_recommendations = Column(JSON, nullable=True)

    # Flattened fields (denormalized)
    performance_score = Column(Integer, nullable=True)
    seo_score = Column(Integer, nullable=True)
    accessibility_issue_count = Column(Integer, nullable=True)
    security_checks_passed = Column(Integer, nullable=True)
    security_checks_total = Column(Integer, nullable=True)
    technologies = Column(JSON, nullable=True)
    exposed_endpoints = Column(JSON, nullable=True)

    celery_task_id = Column(String(128), nullable=True, index=True)

    # Timestamps (created_at and updated_at inherited from BaseModel)
    completed_at = Column(DateTime, nullable=True)
    expires_at = Column(DateTime, default=_default_expiry, nullable=False)

    __table_args__ = (
        Index('idx_scan_results_domain_created', 'domain', 'created_at'),
    )
