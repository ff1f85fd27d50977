import logging
import re
from typing import List

from app.features.scan.schemas.findings import Issue, SecurityFindings
from app.features.scan.services.analysis.base import Analyzer
from app.features.scan.services.fetch.fetcher import CONTENT_TIMEOUT, FetchResponse

logger = logging.getLogger(__name__)

COOKIE_WRITE_PATTERN = re.compile(r"document\.cookie\s*=", re.IGNORECASE)


class SecurityAnalyzer(Analyzer):
    """
    Header and body checklist of seven security signals.

    Checks, in order:
    1. Strict-Transport-Security present (high)
    2. X-Content-Type-Options present (medium)
    3. X-Frame-Options or Content-Security-Policy present (high, only when both missing)
    4. Content-Security-Policy present (medium, reported even when check 3 fired)
    5. X-XSS-Protection present (low)
    6. No inline `document.cookie =` writes (high)
    7. HTTPS flag, counted but never reported as an issue

    The response is evaluated whatever its status code.
    """

    kind = "security"
    label = "Security"
    payload_type = SecurityFindings

    CHECKS_PERFORMED = 7

    def analyze(self, url: str) -> SecurityFindings:
        logger.info(f"Security scan: fetching {url}")
        response = self.fetcher.get(url, timeout=CONTENT_TIMEOUT)
        return self.evaluate(url, response)

    def evaluate(self, url: str, response: FetchResponse) -> SecurityFindings:
        issues: List[Issue] = []

        if not response.header("strict-transport-security"):
            issues.append(self._issue(
                "high", "Missing HSTS header - site vulnerable to protocol downgrade attacks"
            ))

        if not response.header("x-content-type-options"):
            issues.append(self._issue(
                "medium", "Missing X-Content-Type-Options header - vulnerable to MIME sniffing"
            ))

        if not response.header("x-frame-options") and not response.header("content-security-policy"):
            issues.append(self._issue(
                "high", "Missing X-Frame-Options/CSP - vulnerable to clickjacking attacks"
            ))

        if not response.header("content-security-policy"):
            issues.append(self._issue(
                "medium", "No Content-Security-Policy - vulnerable to XSS attacks"
            ))

        if not response.header("x-xss-protection"):
            issues.append(self._issue("low", "Missing X-XSS-Protection header"))

        if COOKIE_WRITE_PATTERN.search(response.body or ""):
            issues.append(self._issue(
                "high", "JavaScript cookie manipulation detected - potential XSS vector"
            ))

        return SecurityFindings(
            issues=issues,
            checks_performed=self.CHECKS_PERFORMED,
            checks_passed=self.CHECKS_PERFORMED - len(issues),
            https_enabled=url.startswith("https"),
        )

    @staticmethod
    def _issue(severity: str, description: str) -> Issue:
        return Issue(severity=severity, category="Security", description=description)
