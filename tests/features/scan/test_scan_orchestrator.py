from unittest.mock import MagicMock

import pytest

from app.features.scan.schemas.results import (
    AISummary,
    Completed,
    Failed,
    ScanTarget,
)
from app.features.scan.services.analysis.summarizer import ScanSummarizer
from app.features.scan.services.fetch.fetcher import FetchResponse, FetchTimeoutError
from app.features.scan.services.orchestration.scan_orchestrator import ScanOrchestrator

PAGE = """
<html lang="en"><body>
  <a href="#main">Skip</a>
  <h1>Example</h1>
  <button>Get started</button>
  <script>fetch("/api/plans")</script>
</body></html>
"""

TARGET = ScanTarget(scan_id="scan-123", url="https://example.com")


def test_analyzers_run_in_fixed_order(scan_config, make_fetcher):
    orchestrator = ScanOrchestrator(scan_config, fetcher=make_fetcher(PAGE))

    assert [analyzer.kind for analyzer in orchestrator.analyzers] == [
        "e2e", "api", "security", "performance", "accessibility", "tech_stack"
    ]


def test_every_analyzer_completes_on_a_healthy_page(scan_config, make_fetcher):
    fetcher = make_fetcher(PAGE, headers={"Server": "nginx"}, elapsed_ms=300)

    results = ScanOrchestrator(scan_config, fetcher=fetcher).run(TARGET)

    for kind in ("e2e", "api", "security", "performance", "accessibility", "tech_stack"):
        assert isinstance(getattr(results, kind), Completed)
    assert results.sealed is True
    assert fetcher.get.call_count == 6
    with pytest.raises(RuntimeError):
        results.record("api", Failed(error="late"))


def test_timeout_everywhere_still_returns_complete_results(scan_config, make_fetcher):
    fetcher = make_fetcher()
    fetcher.get.side_effect = FetchTimeoutError("Timeout after 10s fetching https://example.com")

    report = ScanOrchestrator(scan_config, fetcher=fetcher).scan(TARGET)

    for kind in ("e2e", "api", "security", "performance", "accessibility", "tech_stack"):
        result = getattr(report.results, kind)
        assert isinstance(result, Failed)
        assert "Timeout" in result.error
    assert report.overall_score == 0
    assert [issue.description for issue in report.top_issues] == [
        "Poor performance score (0/100) - site loads slowly"
    ]
    assert report.ai == AISummary()
    assert report.results.slot_record("e2e")["buttons_found"] == 0


def test_one_failed_fetch_does_not_affect_the_others(scan_config, make_fetcher):
    fetcher = make_fetcher()
    fetcher.get.side_effect = [FetchTimeoutError("Timeout after 10s fetching https://example.com")] + [
        FetchResponse(status=200, body=PAGE, elapsed_ms=300) for _ in range(5)
    ]

    results = ScanOrchestrator(scan_config, fetcher=fetcher).run(TARGET)

    assert isinstance(results.e2e, Failed)
    assert isinstance(results.api, Completed)
    assert results.api.payload.endpoints[0].path == "/api/plans"
    assert isinstance(results.tech_stack, Completed)


def test_scan_builds_report_and_summary(scan_config, make_fetcher):
    summarizer = MagicMock(spec=ScanSummarizer)
    summarizer.summarize.return_value = AISummary(summary="Solid basics.", recommendations=["Add HSTS"])
    orchestrator = ScanOrchestrator(scan_config, fetcher=make_fetcher(PAGE), summarizer=summarizer)

    report = orchestrator.scan(TARGET)

    assert report.scan_id == "scan-123"
    assert report.target_url == "https://example.com"
    assert 0 <= report.overall_score <= 100
    assert report.ai.summary == "Solid basics."
    assert report.exposed_endpoints == ["/api/plans"]
    assert report.security_checks_total == 7

    args, _ = summarizer.summarize.call_args
    assert args[0] == "https://example.com"
    assert args[3] == report.overall_score
