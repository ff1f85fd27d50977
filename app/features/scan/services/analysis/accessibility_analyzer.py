import logging
import re
from typing import List

from app.features.scan.schemas.findings import AccessibilityFindings, Issue
from app.features.scan.services.analysis.base import Analyzer
from app.features.scan.services.fetch.fetcher import CONTENT_TIMEOUT

logger = logging.getLogger(__name__)

SEVERITY_POINTS = {"critical": 25, "high": 15, "medium": 8, "low": 3}
DEFAULT_DEDUCTION = 10

FAILS_LEVEL_A = "Fails Level A"
PASSES_LEVEL_A = "Passes Level A (potential AA issues)"

IMG_WITHOUT_ALT = re.compile(r"<img(?![^>]*alt=)[^>]*>", re.IGNORECASE)
HTML_WITH_LANG = re.compile(r"<html[^>]*lang=", re.IGNORECASE)
EMPTY_BUTTON = re.compile(r"<button[^>]*>\s*</button>", re.IGNORECASE)
INPUT_TAG = re.compile(r"<input[^>]*>", re.IGNORECASE)
LABEL_TAG = re.compile(r"<label[^>]*>", re.IGNORECASE)
HEADING_TAG = re.compile(r"<h[1-6][^>]*>", re.IGNORECASE)
H1_TAG = re.compile(r"<h1[^>]*>", re.IGNORECASE)
EMPTY_LINK = re.compile(r"<a[^>]*href=[^>]*>\s*</a>", re.IGNORECASE)
SKIP_LINK = re.compile(r"<a[^>]*href=[\"']#(main|content|skip)[\"'][^>]*>", re.IGNORECASE)
NEGATIVE_TABINDEX = re.compile(r"tabindex=[\"']-\d+[\"']", re.IGNORECASE)


def deduction_for(severity: str) -> int:
    return SEVERITY_POINTS.get(severity, DEFAULT_DEDUCTION)


def score_issues(issues: List[Issue]) -> int:
    return max(0, 100 - sum(deduction_for(issue.severity) for issue in issues))


class AccessibilityAnalyzer(Analyzer):
    """
    Eight WCAG heuristics over the raw markup.

    Each heuristic adds at most one issue. The label check compares tag
    counts only; it does not associate labels with inputs.
    """

    kind = "accessibility"
    label = "Accessibility"
    payload_type = AccessibilityFindings

    def analyze(self, url: str) -> AccessibilityFindings:
        logger.info(f"Accessibility scan: fetching {url}")
        response = self.fetcher.get(url, timeout=CONTENT_TIMEOUT)
        return self.evaluate(response.body or "")

    def evaluate(self, html: str) -> AccessibilityFindings:
        issues: List[Issue] = []

        img_without_alt = len(IMG_WITHOUT_ALT.findall(html))
        if img_without_alt > 0:
            issues.append(self._issue(
                "critical",
                f"{img_without_alt} images missing alt text - screen readers cannot describe images",
                "WCAG 2.1 Level A (1.1.1)",
                count=img_without_alt,
            ))

        if not HTML_WITH_LANG.search(html):
            issues.append(self._issue(
                "high",
                "Missing lang attribute on html element - affects screen reader pronunciation",
                "WCAG 2.1 Level A (3.1.1)",
            ))

        empty_buttons = len(EMPTY_BUTTON.findall(html))
        if empty_buttons > 0:
            issues.append(self._issue(
                "critical",
                f"{empty_buttons} buttons without accessible text - screen readers cannot announce purpose",
                "WCAG 2.1 Level A (4.1.2)",
                count=empty_buttons,
            ))

        input_count = len(INPUT_TAG.findall(html))
        label_count = len(LABEL_TAG.findall(html))
        if input_count > label_count + 2:
            gap = input_count - label_count
            issues.append(self._issue(
                "high",
                f"{gap} form inputs possibly without labels - difficult for screen reader users",
                "WCAG 2.1 Level A (1.3.1, 3.3.2)",
                count=gap,
            ))

        heading_count = len(HEADING_TAG.findall(html))
        h1_count = len(H1_TAG.findall(html))
        if h1_count == 0 and heading_count > 0:
            issues.append(self._issue(
                "medium",
                "Page has no H1 heading - impacts document structure and navigation",
                "WCAG 2.1 Level A (1.3.1)",
            ))
        elif h1_count > 1:
            issues.append(self._issue(
                "medium",
                f"Page has {h1_count} H1 headings - should typically have only one",
                "WCAG 2.1 Best Practice",
            ))

        empty_links = len(EMPTY_LINK.findall(html))
        if empty_links > 0:
            issues.append(self._issue(
                "high",
                f"{empty_links} links without text - screen readers cannot announce destination",
                "WCAG 2.1 Level A (2.4.4)",
                count=empty_links,
            ))

        if not SKIP_LINK.search(html):
            issues.append(self._issue(
                "low",
                "No skip navigation link found - keyboard users must tab through all navigation",
                "WCAG 2.1 Level A (2.4.1)",
            ))

        negative_tabindex = len(NEGATIVE_TABINDEX.findall(html))
        if negative_tabindex > 0:
            issues.append(self._issue(
                "medium",
                f"{negative_tabindex} elements with negative tabindex - removes from keyboard navigation",
                "WCAG 2.1 Level A (2.1.1)",
                count=negative_tabindex,
            ))

        fails_level_a = any(issue.severity in ("critical", "high") for issue in issues)

        return AccessibilityFindings(
            issues=issues,
            total_issues=len(issues),
            score=score_issues(issues),
            wcag_level=FAILS_LEVEL_A if fails_level_a else PASSES_LEVEL_A,
        )

    @staticmethod
    def _issue(severity: str, description: str, wcag_reference: str, count=None) -> Issue:
        return Issue(
            severity=severity,
            category="Accessibility",
            description=description,
            count=count,
            wcag_reference=wcag_reference,
        )
