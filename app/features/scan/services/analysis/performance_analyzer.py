import logging
import re
from typing import Optional

from app.features.scan.schemas.findings import LighthouseScores, PerformanceFindings
from app.features.scan.services.analysis.base import Analyzer
from app.features.scan.services.analysis.pagespeed_client import PageSpeedClient
from app.features.scan.services.fetch.fetcher import PERFORMANCE_TIMEOUT, FetchResponse, Fetcher
from app.features.scan.services.utils.rounding import round_half_up

logger = logging.getLogger(__name__)

IMG_TAG = re.compile(r"<img[^>]*>", re.IGNORECASE)
SCRIPT_TAG = re.compile(r"<script[^>]*>", re.IGNORECASE)
STYLESHEET_TAG = re.compile(r"<link[^>]*rel=[\"']stylesheet[\"'][^>]*>", re.IGNORECASE)


class PerformanceAnalyzer(Analyzer):
    """
    Performance score from PageSpeed Insights when an API key is configured,
    otherwise from a timed fetch plus resource and header heuristics.

    A PageSpeed failure of any kind falls through to the basic scan; the
    caller only sees which one ran through the `source` field.
    """

    kind = "performance"
    label = "Performance"
    payload_type = PerformanceFindings

    def __init__(self, fetcher: Fetcher, pagespeed_api_key: Optional[str] = None):
        super().__init__(fetcher)
        self.pagespeed = PageSpeedClient(fetcher, pagespeed_api_key) if pagespeed_api_key else None

    def analyze(self, url: str) -> PerformanceFindings:
        logger.info(f"Performance scan: fetching {url}")

        if self.pagespeed is not None:
            logger.info("Using Google PageSpeed Insights API")
            try:
                return self.pagespeed.run(url)
            except Exception as e:
                logger.warning(f"Google PageSpeed API error: {str(e)}")
                logger.info("Falling back to basic scan")
        else:
            logger.info("Falling back to basic performance scan")

        return self.basic_scan(url)

    def basic_scan(self, url: str) -> PerformanceFindings:
        response = self.fetcher.get(url, timeout=PERFORMANCE_TIMEOUT)
        return self.score_response(response)

    @staticmethod
    def score_response(response: FetchResponse) -> PerformanceFindings:
        html = response.body or ""
        load_time = response.elapsed_ms

        image_count = len(IMG_TAG.findall(html))
        script_count = len(SCRIPT_TAG.findall(html))
        stylesheet_count = len(STYLESHEET_TAG.findall(html))

        content_encoding = (response.header("content-encoding") or "").lower()
        has_compression = "gzip" in content_encoding or "br" in content_encoding
        has_caching = bool(response.header("cache-control"))

        score = 100
        if load_time > 3000:
            score -= 30
        elif load_time > 1500:
            score -= 15

        if image_count > 20:
            score -= 10
        if script_count > 15:
            score -= 10
        if stylesheet_count > 5:
            score -= 5
        if not has_compression:
            score -= 15
        if not has_caching:
            score -= 10

        score = max(0, score)

        return PerformanceFindings(
            score=score,
            load_time_ms=round_half_up(load_time),
            image_count=image_count,
            scripts_count=script_count,
            stylesheets_count=stylesheet_count,
            compression_enabled=has_compression,
            caching_enabled=has_caching,
            lighthouse_scores=LighthouseScores(performance=score, seo=max(0, score - 10)),
            source="basic-scan",
        )
