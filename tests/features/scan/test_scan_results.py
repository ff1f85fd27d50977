import pytest

from app.features.scan.schemas.findings import (
    LighthouseScores,
    PerformanceFindings,
    SecurityFindings,
)
from app.features.scan.schemas.results import (
    Completed,
    Failed,
    Pending,
    ScanResults,
    ScanTarget,
)


def test_new_results_are_all_pending():
    results = ScanResults()

    for kind in ("e2e", "api", "security", "performance", "accessibility", "tech_stack"):
        assert isinstance(getattr(results, kind), Pending)
        assert results.completed(kind) is None


def test_slot_accepts_one_terminal_result():
    results = ScanResults()
    results.record("security", Failed(error="Timeout"))

    with pytest.raises(RuntimeError):
        results.record("security", Completed[SecurityFindings](payload=SecurityFindings()))


def test_nothing_recorded_after_seal():
    results = ScanResults()
    results.seal()

    assert results.sealed is True
    with pytest.raises(RuntimeError):
        results.record("api", Failed(error="late"))


def test_pending_and_unknown_kinds_rejected():
    results = ScanResults()

    with pytest.raises(ValueError):
        results.record("api", Pending())
    with pytest.raises(KeyError):
        results.record("lighthouse", Failed(error="nope"))


def test_failed_slots_serialize_to_defaults():
    results = ScanResults()
    results.record("security", Failed(error="Request failed"))
    results.record("accessibility", Failed(error="Request failed"))
    results.record("performance", Failed(error="Request failed"))

    record = results.to_record()

    assert record["security"] == {
        "issues": [],
        "checks_performed": 0,
        "checks_passed": 0,
        "https_enabled": False,
        "status": "failed",
        "error": "Request failed",
    }
    assert record["accessibility"]["wcag_level"] == "Unable to determine"
    assert record["accessibility"]["score"] == 0
    assert record["performance"]["score"] == 0
    assert record["performance"]["load_time_ms"] == 0
    assert record["techStack"] == {"status": "pending"}


def test_completed_slot_serializes_payload_with_aliases():
    results = ScanResults()
    payload = PerformanceFindings(
        score=72,
        load_time_ms=900,
        lighthouse_scores=LighthouseScores(performance=72, best_practices=80, seo=62),
        source="basic-scan",
    )
    results.record("performance", Completed[PerformanceFindings](payload=payload))

    record = results.slot_record("performance")

    assert record["status"] == "completed"
    assert record["lighthouse_scores"] == {"performance": 72, "bestPractices": 80, "seo": 62}
    assert "error" not in record


def test_scan_target_host():
    target = ScanTarget(scan_id="scan-1", url="https://Example.COM:8443/path")

    assert target.host == "example.com"
