"""
Scan models package.
"""
from app.features.scan.models.scan_result import ScanResult, ScanStatus
from app.features.scan.models.rate_limit import RateLimit

__all__ = ["ScanResult", "ScanStatus", "RateLimit"]
