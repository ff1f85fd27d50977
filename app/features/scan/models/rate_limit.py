from sqlalchemy import Column, String, Integer, DateTime
from datetime import datetime

from app.platform.db.base import BaseModel


class RateLimit(BaseModel):
    """
    Per-host scan counter over a rolling window.
    """
    __tablename__ = "rate_limits"

    domain = Column(String(255), nullable=False, unique=True, index=True)
    scan_count = Column(Integer, default=0, nullable=False)
    window_start = Column(DateTime, default=datetime.utcnow, nullable=False)
    last_scan_at = Column(DateTime, default=datetime.utcnow, nullable=False)
