"""
Scan Schemas

Request and response models for the scan API endpoints.
"""
from typing import List, Optional, Dict, Any
from pydantic import BaseModel, Field


class ScanStartRequest(BaseModel):
    """Request to start a scan of one URL."""
    url: str = Field(..., min_length=1, max_length=2048)

    class Config:
        json_schema_extra = {
            "example": {
                "url": "https://example.com"
            }
        }


class ScanStartResponse(BaseModel):
    """Response after queueing a scan."""
    scan_id: str
    status: str


class ScanResponse(BaseModel):
    """A stored scan row."""
    scan_id: str
    target_url: str
    status: str
    overall_score: Optional[int] = None
    results: Dict[str, Optional[Dict[str, Any]]]
    top_issues: List[Dict[str, Any]] = []
    ai_summary: Optional[str] = None
    ai_recommendations: List[str] = []
    performance_score: Optional[int] = None
    seo_score: Optional[int] = None
    accessibility_issue_count: Optional[int] = None
    security_checks_passed: Optional[int] = None
    security_checks_total: Optional[int] = None
    technologies: List[str] = []
    exposed_endpoints: List[str] = []
    error_message: Optional[str] = None
    created_at: Optional[str] = None
    completed_at: Optional[str] = None
    expires_at: Optional[str] = None


class RegenerateAIResponse(BaseModel):
    """Response after regenerating the AI summary of a scan."""
    ai_summary: Optional[str] = None
    ai_recommendations: List[str] = []
