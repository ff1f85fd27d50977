import logging
import re
from typing import List

from app.features.scan.schemas.findings import ApiEndpoint, ApiSurfaceFindings
from app.features.scan.services.analysis.base import Analyzer
from app.features.scan.services.fetch.fetcher import CONTENT_TIMEOUT

logger = logging.getLogger(__name__)

CALL_SITE = re.compile(
    r"fetch\([\"']([^\"']+)[\"']|axios\.[a-z]+\([\"']([^\"']+)[\"']|\$\.ajax\([\"']([^\"']+)[\"']"
)
QUOTED_LITERAL = re.compile(r"[\"']([^\"']+)[\"']")

MAX_ENDPOINTS = 10


class ApiSurfaceAnalyzer(Analyzer):
    """
    Lists same-origin endpoints referenced by fetch(), axios.<verb>() and
    $.ajax() call sites in the page source.

    Repeated paths are reported once per call site. The HTTP verb cannot be
    told from a string literal, so every endpoint is reported as GET.
    """

    kind = "api"
    label = "API"
    payload_type = ApiSurfaceFindings

    def analyze(self, url: str) -> ApiSurfaceFindings:
        logger.info(f"API scan: fetching {url}")
        response = self.fetcher.get(url, timeout=CONTENT_TIMEOUT)
        return self.extract(response.body or "")

    @staticmethod
    def extract(html: str) -> ApiSurfaceFindings:
        endpoints: List[ApiEndpoint] = []

        for match in CALL_SITE.finditer(html):
            literal = QUOTED_LITERAL.search(match.group(0))
            path = literal.group(1) if literal else None
            if path and path.startswith("/"):
                endpoints.append(ApiEndpoint(method="GET", path=path, status=0))

        return ApiSurfaceFindings(
            endpoints_detected=len(endpoints),
            endpoints=endpoints[:MAX_ENDPOINTS],
        )
