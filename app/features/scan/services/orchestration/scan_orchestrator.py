import logging
from typing import List, Optional

from app.features.scan.schemas.results import ScanReport, ScanResults, ScanTarget
from app.features.scan.services.analysis.accessibility_analyzer import AccessibilityAnalyzer
from app.features.scan.services.analysis.api_surface_analyzer import ApiSurfaceAnalyzer
from app.features.scan.services.analysis.base import Analyzer
from app.features.scan.services.analysis.markup_analyzer import MarkupAnalyzer
from app.features.scan.services.analysis.performance_analyzer import PerformanceAnalyzer
from app.features.scan.services.analysis.security_analyzer import SecurityAnalyzer
from app.features.scan.services.analysis.summarizer import ScanSummarizer
from app.features.scan.services.analysis.tech_stack_analyzer import TechStackAnalyzer
from app.features.scan.services.fetch.fetcher import Fetcher
from app.features.scan.services.scan_config import ScanConfig
from app.features.scan.services.utils.aggregator import (
    build_report,
    calculate_overall_score,
    extract_top_issues,
)

logger = logging.getLogger(__name__)


class ScanOrchestrator:
    """
    Runs the six analyzers against one target, then aggregates.

    Analyzers run one after another in a fixed order and each performs its
    own fetch, so one analyzer's network failure never reaches another.
    run() always returns a sealed ScanResults, even when every analyzer
    failed.
    """

    def __init__(
        self,
        config: ScanConfig,
        fetcher: Optional[Fetcher] = None,
        summarizer: Optional[ScanSummarizer] = None,
    ):
        self.config = config
        self.fetcher = fetcher or Fetcher(user_agent=config.user_agent)
        self.summarizer = summarizer or ScanSummarizer(config)
        self.analyzers: List[Analyzer] = [
            MarkupAnalyzer(self.fetcher, html_parser=config.html_parser),
            ApiSurfaceAnalyzer(self.fetcher),
            SecurityAnalyzer(self.fetcher),
            PerformanceAnalyzer(self.fetcher, pagespeed_api_key=config.pagespeed_api_key),
            AccessibilityAnalyzer(self.fetcher),
            TechStackAnalyzer(self.fetcher),
        ]

    def run(self, target: ScanTarget) -> ScanResults:
        results = ScanResults()

        for analyzer in self.analyzers:
            logger.info(f"Running {analyzer.label} analysis for scan {target.scan_id}")
            results.record(analyzer.kind, analyzer.run(target.url))

        results.seal()
        return results

    def scan(self, target: ScanTarget) -> ScanReport:
        """Full pipeline: analyzers, aggregation and the best-effort summary."""
        logger.info(f"Starting scan {target.scan_id} for {target.url}")

        results = self.run(target)
        overall_score = calculate_overall_score(results)
        top_issues = extract_top_issues(results)

        logger.info(f"Scan {target.scan_id} scored {overall_score}/100 with {len(top_issues)} top issues")

        ai = self.summarizer.summarize(target.url, results, top_issues, overall_score)

        return build_report(
            target,
            results,
            ai=ai,
            overall_score=overall_score,
            top_issues=top_issues,
        )
