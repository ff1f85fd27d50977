from app.features.scan.schemas.findings import Issue
from app.features.scan.schemas.results import Completed
from app.features.scan.services.analysis.accessibility_analyzer import (
    FAILS_LEVEL_A,
    PASSES_LEVEL_A,
    AccessibilityAnalyzer,
    deduction_for,
    score_issues,
)


def test_images_without_alt_and_missing_lang(make_fetcher):
    html = (
        '<html><body><a href="#main">Skip to content</a><h1>Title</h1>'
        '<img src="a.png"><img src="b.png"><img src="c.png" alt="Logo"></body></html>'
    )

    result = AccessibilityAnalyzer(make_fetcher(html)).run("https://example.com")

    assert isinstance(result, Completed)
    findings = result.payload
    severities = [issue.severity for issue in findings.issues]
    assert severities == ["critical", "high"]
    assert findings.issues[0].count == 2
    assert findings.issues[0].wcag_reference == "WCAG 2.1 Level A (1.1.1)"
    assert findings.score == 60
    assert findings.total_issues == 2
    assert findings.wcag_level == FAILS_LEVEL_A


def test_clean_page_passes_level_a(make_fetcher):
    html = '<html lang="en"><body><a href="#content">Skip</a><h1>Welcome</h1></body></html>'

    findings = AccessibilityAnalyzer(make_fetcher(html)).run("https://example.com").payload

    assert findings.issues == []
    assert findings.score == 100
    assert findings.wcag_level == PASSES_LEVEL_A


def test_low_and_medium_issues_still_pass_level_a(make_fetcher):
    html = '<html lang="en"><body><h1>One</h1><h1>Two</h1></body></html>'

    findings = AccessibilityAnalyzer(make_fetcher(html)).run("https://example.com").payload

    assert [issue.severity for issue in findings.issues] == ["medium", "low"]
    assert findings.issues[0].description == "Page has 2 H1 headings - should typically have only one"
    assert findings.score == 100 - 8 - 3
    assert findings.wcag_level == PASSES_LEVEL_A


def test_form_and_link_heuristics(make_fetcher):
    html = (
        '<html lang="en"><body><a href="#skip">Skip</a><h2>Section</h2>'
        '<input name="a"><input name="b"><input name="c"><input name="d"><label>A</label>'
        '<a href="/empty"> </a><button></button><div tabindex="-1"></div></body></html>'
    )

    findings = AccessibilityAnalyzer(make_fetcher(html)).run("https://example.com").payload

    descriptions = [issue.description for issue in findings.issues]
    assert descriptions == [
        "1 buttons without accessible text - screen readers cannot announce purpose",
        "3 form inputs possibly without labels - difficult for screen reader users",
        "Page has no H1 heading - impacts document structure and navigation",
        "1 links without text - screen readers cannot announce destination",
        "1 elements with negative tabindex - removes from keyboard navigation",
    ]
    assert findings.score == max(0, 100 - 25 - 15 - 8 - 15 - 8)


def test_score_never_negative():
    issues = [Issue(severity="critical", category="Accessibility", description="x")] * 5

    assert score_issues(issues) == 0


def test_unknown_severity_deducts_default():
    assert deduction_for("critical") == 25
    assert deduction_for("informational") == 10
