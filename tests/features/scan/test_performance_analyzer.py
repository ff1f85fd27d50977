import json

from app.features.scan.schemas.results import Completed
from app.features.scan.services.analysis.pagespeed_client import (
    PAGESPEED_API_URL,
    PageSpeedClient,
)
from app.features.scan.services.analysis.performance_analyzer import PerformanceAnalyzer
from app.features.scan.services.fetch.fetcher import (
    PAGESPEED_TIMEOUT,
    PERFORMANCE_TIMEOUT,
    FetchError,
    FetchResponse,
)

LIGHTHOUSE_RESULT = {
    "categories": {
        "performance": {"score": 0.876},
        "accessibility": {"score": 0.9},
        "best-practices": {"score": 0.5},
        "seo": {"score": 1},
    },
    "audits": {
        "metrics": {
            "details": {
                "items": [{
                    "observedLoad": 1234.4,
                    "firstContentfulPaint": 800.5,
                    "largestContentfulPaint": 2100,
                    "interactive": 3000,
                    "totalBlockingTime": 150,
                    "cumulativeLayoutShift": 0.1234,
                    "speedIndex": 1900,
                }]
            }
        },
        "uses-optimized-images": {"details": {"items": [{}, {}]}},
        "uses-text-compression": {"score": 1},
        "uses-long-cache-ttl": {"score": 0.4},
        "render-blocking-resources": {
            "title": "Eliminate render-blocking resources",
            "score": 0.3,
            "details": {"overallSavingsMs": 450},
        },
        "unused-css-rules": {"title": "Reduce unused CSS", "score": 1},
        "dom-size": {"title": "Avoid an excessive DOM size", "score": 0.5},
        "bootup-time": {"title": "Reduce JavaScript execution time", "score": None},
    },
}


class TestBasicScan:
    """Heuristic scoring used when no PageSpeed key is configured."""

    def test_fast_compressed_cached_page_scores_full(self, make_fetcher):
        fetcher = make_fetcher(
            "<html><img src='a.png'></html>",
            headers={"Content-Encoding": "gzip", "Cache-Control": "max-age=60"},
            elapsed_ms=500.4,
        )

        result = PerformanceAnalyzer(fetcher).run("https://example.com")

        assert isinstance(result, Completed)
        findings = result.payload
        assert findings.source == "basic-scan"
        assert findings.score == 100
        assert findings.load_time_ms == 500
        assert findings.image_count == 1
        assert findings.lighthouse_scores.seo == 90
        fetcher.get.assert_called_once_with("https://example.com", timeout=PERFORMANCE_TIMEOUT)

    def test_slow_uncompressed_page(self, make_fetcher):
        fetcher = make_fetcher("<html></html>", elapsed_ms=3500)

        findings = PerformanceAnalyzer(fetcher).run("https://example.com").payload

        assert findings.score == 100 - 30 - 15 - 10
        assert findings.lighthouse_scores.performance == findings.score
        assert findings.lighthouse_scores.seo == max(0, findings.score - 10)
        assert findings.compression_enabled is False
        assert findings.caching_enabled is False

    def test_heavy_page_deductions(self):
        html = "<img>" * 21 + "<script></script>" * 16 + "<link rel='stylesheet' href='a.css'>" * 6
        response = FetchResponse(
            status=200,
            headers={"Content-Encoding": "br", "Cache-Control": "no-cache"},
            body=html,
            elapsed_ms=2000,
        )

        findings = PerformanceAnalyzer.score_response(response)

        assert findings.scripts_count == 16
        assert findings.stylesheets_count == 6
        assert findings.score == 100 - 15 - 10 - 10 - 5

    def test_every_deduction_applies(self, make_fetcher):
        html = "<img>" * 21 + "<script></script>" * 16 + "<link rel='stylesheet'>" * 6
        fetcher = make_fetcher(html, elapsed_ms=5000)

        findings = PerformanceAnalyzer(fetcher).run("https://example.com").payload

        assert findings.score == 100 - 30 - 10 - 10 - 5 - 15 - 10
        assert findings.lighthouse_scores.seo == 10


class TestPageSpeed:
    """External PageSpeed strategy and its fallback."""

    def test_maps_lighthouse_report(self):
        findings = PageSpeedClient.map_report(LIGHTHOUSE_RESULT)

        assert findings.source == "google-pagespeed"
        assert findings.score == 88
        assert findings.load_time_ms == 1234
        assert findings.lighthouse_scores.performance == 88
        assert findings.lighthouse_scores.accessibility == 90
        assert findings.lighthouse_scores.best_practices == 50
        assert findings.lighthouse_scores.seo == 100
        assert findings.core_web_vitals.fcp == 801
        assert findings.core_web_vitals.cls == 0.123
        assert findings.core_web_vitals.speed_index == 1900
        assert findings.image_count == 2
        assert findings.compression_enabled is True
        assert findings.caching_enabled is False
        assert [audit.title for audit in findings.opportunities] == ["Eliminate render-blocking resources"]
        assert findings.opportunities[0].savings == 450
        assert [audit.title for audit in findings.diagnostics] == ["Avoid an excessive DOM size"]

    def test_record_uses_camel_case_aliases(self):
        record = PageSpeedClient.map_report(LIGHTHOUSE_RESULT).model_dump(by_alias=True)

        assert record["lighthouse_scores"]["bestPractices"] == 50
        assert record["core_web_vitals"]["speedIndex"] == 1900

    def test_uses_pagespeed_when_key_configured(self, make_fetcher):
        fetcher = make_fetcher(json.dumps({"lighthouseResult": LIGHTHOUSE_RESULT}))

        result = PerformanceAnalyzer(fetcher, pagespeed_api_key="test-key").run("https://example.com")

        assert result.payload.source == "google-pagespeed"
        args, kwargs = fetcher.get.call_args
        assert args[0] == PAGESPEED_API_URL
        assert kwargs["timeout"] == PAGESPEED_TIMEOUT
        assert kwargs["params"]["url"] == "https://example.com"
        assert kwargs["params"]["key"] == "test-key"

    def test_falls_back_on_api_error_status(self, make_fetcher):
        fetcher = make_fetcher()
        fetcher.get.side_effect = [
            FetchResponse(status=429, body="quota exceeded"),
            FetchResponse(status=200, body="<html></html>", elapsed_ms=200),
        ]

        result = PerformanceAnalyzer(fetcher, pagespeed_api_key="test-key").run("https://example.com")

        assert isinstance(result, Completed)
        assert result.payload.source == "basic-scan"
        assert fetcher.get.call_count == 2

    def test_falls_back_on_invalid_body(self, make_fetcher):
        fetcher = make_fetcher()
        fetcher.get.side_effect = [
            FetchResponse(status=200, body="not json"),
            FetchResponse(status=200, body="<html></html>", elapsed_ms=200),
        ]

        result = PerformanceAnalyzer(fetcher, pagespeed_api_key="test-key").run("https://example.com")

        assert result.payload.source == "basic-scan"

    def test_falls_back_on_network_error(self, make_fetcher):
        fetcher = make_fetcher()
        fetcher.get.side_effect = [
            FetchError("Request to PageSpeed failed"),
            FetchResponse(status=200, body="<html></html>", elapsed_ms=200),
        ]

        result = PerformanceAnalyzer(fetcher, pagespeed_api_key="test-key").run("https://example.com")

        assert result.payload.source == "basic-scan"
