import json
import logging
from typing import Any, Dict, List, Optional

from app.features.scan.schemas.findings import (
    CoreWebVitals,
    LighthouseScores,
    PerformanceAudit,
    PerformanceFindings,
)
from app.features.scan.services.fetch.fetcher import PAGESPEED_TIMEOUT, Fetcher
from app.features.scan.services.utils.rounding import round_half_up

logger = logging.getLogger(__name__)

PAGESPEED_API_URL = "https://www.googleapis.com/pagespeedonline/v5/runPagespeed"
PAGESPEED_CATEGORIES = ["performance", "accessibility", "best-practices", "seo"]

OPPORTUNITY_AUDITS = [
    "render-blocking-resources",
    "unused-css-rules",
    "unused-javascript",
    "modern-image-formats",
    "offscreen-images",
    "minify-css",
    "minify-javascript",
    "reduce-unused-code",
]

DIAGNOSTIC_AUDITS = [
    "dom-size",
    "total-byte-weight",
    "mainthread-work-breakdown",
    "bootup-time",
    "duplicated-javascript",
]

MAX_AUDITS = 5


class PageSpeedError(Exception):
    """The PageSpeed API answered with an error or an unusable body."""


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class PageSpeedClient:
    """Runs a PageSpeed Insights report and maps it onto PerformanceFindings."""

    def __init__(self, fetcher: Fetcher, api_key: str):
        self.fetcher = fetcher
        self.api_key = api_key

    def run(self, url: str) -> PerformanceFindings:
        logger.info("Calling Google PageSpeed Insights API...")
        response = self.fetcher.get(
            PAGESPEED_API_URL,
            timeout=PAGESPEED_TIMEOUT,
            params={"url": url, "key": self.api_key, "category": PAGESPEED_CATEGORIES},
            accept="application/json",
        )

        if not response.ok:
            raise PageSpeedError(f"PageSpeed API error: {response.status}")

        try:
            data = json.loads(response.body)
        except ValueError as e:
            raise PageSpeedError(f"PageSpeed API returned invalid JSON: {str(e)}") from e

        lighthouse_result = data.get("lighthouseResult")
        if not isinstance(lighthouse_result, dict):
            raise PageSpeedError("PageSpeed API response has no lighthouseResult")

        return self.map_report(lighthouse_result)

    @classmethod
    def map_report(cls, lighthouse_result: Dict[str, Any]) -> PerformanceFindings:
        categories = lighthouse_result.get("categories") or {}
        audits = lighthouse_result.get("audits") or {}

        def category_score(name: str) -> int:
            return round_half_up(((categories.get(name) or {}).get("score") or 0) * 100)

        performance_score = category_score("performance")

        metric_items = ((audits.get("metrics") or {}).get("details") or {}).get("items") or [{}]
        metrics = metric_items[0] or {}

        optimized_images = ((audits.get("uses-optimized-images") or {}).get("details") or {}).get("items") or []
        compression_score = (audits.get("uses-text-compression") or {}).get("score")
        cache_score = (audits.get("uses-long-cache-ttl") or {}).get("score")

        return PerformanceFindings(
            score=performance_score,
            load_time_ms=round_half_up(metrics.get("observedLoad") or 0),
            lighthouse_scores=LighthouseScores(
                performance=performance_score,
                accessibility=category_score("accessibility"),
                best_practices=category_score("best-practices"),
                seo=category_score("seo"),
            ),
            core_web_vitals=CoreWebVitals(
                fcp=round_half_up(metrics.get("firstContentfulPaint") or 0),
                lcp=round_half_up(metrics.get("largestContentfulPaint") or 0),
                tti=round_half_up(metrics.get("interactive") or 0),
                tbt=round_half_up(metrics.get("totalBlockingTime") or 0),
                cls=round_half_up((metrics.get("cumulativeLayoutShift") or 0) * 1000) / 1000,
                speed_index=round_half_up(metrics.get("speedIndex") or 0),
            ),
            image_count=len(optimized_images),
            compression_enabled=compression_score == 1,
            caching_enabled=_is_number(cache_score) and cache_score > 0.5,
            opportunities=cls.extract_opportunities(audits),
            diagnostics=cls.extract_diagnostics(audits),
            source="google-pagespeed",
        )

    @staticmethod
    def extract_opportunities(audits: Dict[str, Any]) -> List[PerformanceAudit]:
        opportunities = []
        for audit_id in OPPORTUNITY_AUDITS:
            audit = audits.get(audit_id)
            if not audit or not _is_number(audit.get("score")) or audit["score"] >= 1:
                continue
            details = audit.get("details") or {}
            savings = details.get("overallSavingsMs")
            opportunities.append(PerformanceAudit(
                title=audit.get("title") or audit_id,
                description=audit.get("description"),
                score=audit["score"],
                savings=savings if _is_number(savings) else 0,
            ))
        return opportunities[:MAX_AUDITS]

    @staticmethod
    def extract_diagnostics(audits: Dict[str, Any]) -> List[PerformanceAudit]:
        diagnostics = []
        for audit_id in DIAGNOSTIC_AUDITS:
            audit: Optional[Dict[str, Any]] = audits.get(audit_id)
            if not audit or not _is_number(audit.get("score")) or audit["score"] >= 1:
                continue
            diagnostics.append(PerformanceAudit(
                title=audit.get("title") or audit_id,
                description=audit.get("description"),
                score=audit["score"],
            ))
        return diagnostics[:MAX_AUDITS]
