import logging
import re
from typing import List

from app.features.scan.schemas.findings import TechSignature, TechStackFindings
from app.features.scan.services.analysis.base import Analyzer
from app.features.scan.services.fetch.fetcher import CONTENT_TIMEOUT, FetchResponse

logger = logging.getLogger(__name__)

NEXT_BUILD_ID = re.compile(r'"buildId":"([^"]+)"')
REACT_DOM = re.compile(r"react[.-]?dom", re.IGNORECASE)
VUE_JS = re.compile(r"vue[.-]?js", re.IGNORECASE)
NG_ATTRIBUTE = re.compile(r"<[^>]*ng-[^>]*>", re.IGNORECASE)
NG_VERSION = re.compile(r'ng-version="([^"]+)"')
WP_THEME_VERSION = re.compile(r"wp-content/themes/[^/]+/([0-9.]+)")
DRUPAL_MODULES = re.compile(r"sites/(default|all)/modules", re.IGNORECASE)
SVELTE_SCRIPT = re.compile(r"<script[^>]*src=[\"'][^\"']*svelte[^\"']*[\"']", re.IGNORECASE)
JQUERY = re.compile(r"jquery[.-]?(\d+\.\d+\.\d+)?", re.IGNORECASE)
JQUERY_VERSION = re.compile(r"jquery[.-]?(\d+\.\d+\.\d+)", re.IGNORECASE)
TAILWIND_CLASSES = re.compile(r"class=[\"'][^\"']*\b(flex|grid|bg-|text-|p-|m-|w-|h-)[^\"']*[\"']")
BOOTSTRAP_CLASSES = re.compile(r"class=[\"'][^\"']*\b(container|row|col-|btn|navbar)[^\"']*[\"']")


class TechStackAnalyzer(Analyzer):
    """
    Fingerprints frameworks, CMSs, libraries and servers from body text
    and response headers.

    Families are evaluated in a fixed order and every match is kept, so a
    page can report several unrelated technologies. Within a family the
    specific signature wins over the generic one.
    """

    kind = "tech_stack"
    label = "Tech stack detection"
    payload_type = TechStackFindings

    def analyze(self, url: str) -> TechStackFindings:
        logger.info(f"Tech stack detection: fetching {url}")
        response = self.fetcher.get(url, timeout=CONTENT_TIMEOUT)
        return self.detect(response)

    def detect(self, response: FetchResponse) -> TechStackFindings:
        html = response.body or ""
        detected: List[TechSignature] = []

        if "__NEXT_DATA__" in html or "_next/static" in html:
            detected.append(TechSignature(
                name="Next.js",
                confidence="high",
                version="detected" if NEXT_BUILD_ID.search(html) else None,
                category="Framework",
            ))
        elif "react" in html or "React" in html or REACT_DOM.search(html):
            detected.append(TechSignature(name="React", confidence="medium", category="Library"))

        if "__nuxt" in html or "_nuxt/" in html:
            detected.append(TechSignature(name="Nuxt.js", confidence="high", category="Framework"))
        elif "vue" in html or "Vue" in html or VUE_JS.search(html):
            detected.append(TechSignature(name="Vue.js", confidence="medium", category="Framework"))

        if "ng-version" in html or NG_ATTRIBUTE.search(html):
            version_match = NG_VERSION.search(html)
            detected.append(TechSignature(
                name="Angular",
                confidence="high",
                version=version_match.group(1) if version_match else None,
                category="Framework",
            ))

        if "wp-content" in html or "wp-includes" in html or "/wordpress/" in html:
            version_match = WP_THEME_VERSION.search(html)
            detected.append(TechSignature(
                name="WordPress",
                confidence="high",
                version=version_match.group(1) if version_match else None,
                category="CMS",
            ))

        if "Drupal" in html or DRUPAL_MODULES.search(html):
            detected.append(TechSignature(name="Drupal", confidence="high", category="CMS"))

        if "__svelte" in html or SVELTE_SCRIPT.search(html):
            detected.append(TechSignature(name="Svelte", confidence="medium", category="Framework"))

        if JQUERY.search(html):
            version_match = JQUERY_VERSION.search(html)
            detected.append(TechSignature(
                name="jQuery",
                confidence="high",
                version=version_match.group(1) if version_match else None,
                category="Library",
            ))

        if "tailwind" in html or TAILWIND_CLASSES.search(html):
            detected.append(TechSignature(name="Tailwind CSS", confidence="medium", category="CSS Framework"))

        if BOOTSTRAP_CLASSES.search(html) and "tailwind" not in html:
            detected.append(TechSignature(name="Bootstrap", confidence="low", category="CSS Framework"))

        detected.extend(self._from_headers(response))

        return TechStackFindings(detected=detected, total_detected=len(detected))

    @staticmethod
    def _from_headers(response: FetchResponse) -> List[TechSignature]:
        detected: List[TechSignature] = []

        powered_by = response.header("x-powered-by")
        if powered_by:
            detected.append(TechSignature(name=powered_by, confidence="high", category="Server"))

        server = response.header("server")
        if server:
            parts = server.split("/")
            detected.append(TechSignature(
                name=parts[0],
                confidence="high",
                version=parts[1] if len(parts) > 1 else None,
                category="Web Server",
            ))

        aspnet_version = response.header("x-aspnet-version")
        if aspnet_version or response.header("x-aspnetmvc-version"):
            detected.append(TechSignature(
                name="ASP.NET",
                confidence="high",
                version=aspnet_version or None,
                category="Framework",
            ))

        return detected
