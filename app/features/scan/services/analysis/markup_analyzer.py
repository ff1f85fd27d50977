import logging
import re
from typing import List

from bs4 import BeautifulSoup, FeatureNotFound

from app.features.scan.schemas.findings import MarkupFindings
from app.features.scan.services.analysis.base import AnalysisFailed, Analyzer
from app.features.scan.services.fetch.fetcher import CONTENT_TIMEOUT, Fetcher

logger = logging.getLogger(__name__)

BUTTON_PATTERN = re.compile(r"<button[^>]*>([\s\S]*?)</button>", re.IGNORECASE)
LINK_PATTERN = re.compile(r"<a[^>]*href=[\"']([^\"']*)[\"'][^>]*>", re.IGNORECASE)
FORM_PATTERN = re.compile(r"<form[^>]*>", re.IGNORECASE)
TAG_PATTERN = re.compile(r"<[^>]*>")


class MarkupAnalyzer(Analyzer):
    """
    Counts interactive elements (buttons, links, forms) and collects the
    visible text of the first buttons as primary actions.

    The page is parsed with BeautifulSoup; when the configured parser
    backend cannot run the same counts are taken with regular expressions.
    """

    kind = "e2e"
    label = "E2E"
    payload_type = MarkupFindings

    MAX_PRIMARY_ACTIONS = 5

    def __init__(self, fetcher: Fetcher, html_parser: str = "html.parser"):
        super().__init__(fetcher)
        self.html_parser = html_parser

    def analyze(self, url: str) -> MarkupFindings:
        logger.info(f"E2E scan: fetching {url}")
        response = self.fetcher.get(url, timeout=CONTENT_TIMEOUT)

        if not response.ok:
            logger.info(f"E2E scan: received status {response.status}")
            raise AnalysisFailed(f"HTTP {response.status}")

        logger.info(f"E2E scan: received {len(response.body)} bytes")
        return self.count_elements(response.body)

    def count_elements(self, html: str) -> MarkupFindings:
        try:
            return self._count_with_parser(html)
        except FeatureNotFound as e:
            logger.warning(f"HTML parser '{self.html_parser}' unavailable ({e}), falling back to regex parsing")
            return self._count_with_patterns(html)

    def _count_with_parser(self, html: str) -> MarkupFindings:
        soup = BeautifulSoup(html, self.html_parser)

        buttons = soup.find_all("button")
        anchors = soup.find_all("a", href=True)
        forms = soup.find_all("form")

        primary_actions = [
            text for text in (button.get_text().strip() for button in buttons) if text
        ][: self.MAX_PRIMARY_ACTIONS]

        return MarkupFindings(
            buttons_found=len(buttons),
            links_found=len(anchors),
            forms_found=len(forms),
            primary_actions=primary_actions,
        )

    def _count_with_patterns(self, html: str) -> MarkupFindings:
        buttons: List[str] = [match.group(0) for match in BUTTON_PATTERN.finditer(html)]
        links = LINK_PATTERN.findall(html)
        forms = FORM_PATTERN.findall(html)

        primary_actions = [
            text
            for text in (TAG_PATTERN.sub("", button).strip() for button in buttons[: self.MAX_PRIMARY_ACTIONS])
            if text
        ]

        return MarkupFindings(
            buttons_found=len(buttons),
            links_found=len(links),
            forms_found=len(forms),
            primary_actions=primary_actions,
        )
