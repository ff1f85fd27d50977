import json
import logging
import re
from typing import Any, Callable, List, Optional, Sequence

from openai import OpenAI

from app.features.scan.schemas.results import AISummary, ScanResults, TopIssue
from app.features.scan.services.scan_config import ScanConfig

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = "You are a web security and performance expert. Always respond with valid JSON only."

FENCE_OPEN = re.compile(r"^```(?:json)?\s*")
FENCE_CLOSE = re.compile(r"\s*```$")


def build_prompt(
    url: str,
    overall_score: int,
    security_issue_count: int,
    accessibility_issue_count: int,
    performance_score: int,
    top_issues: Sequence[TopIssue],
) -> str:
    issue_lines = "\n".join(
        f"- [{issue.severity}] {issue.category}: {issue.description}" for issue in top_issues
    )
    return f"""Analyze this website scan for {url}:

Overall Score: {overall_score}/100

Security Issues: {security_issue_count}
Accessibility Issues: {accessibility_issue_count}
Performance Score: {performance_score}/100

Top Issues:
{issue_lines}

You are a web security and performance expert. Provide concise, actionable technical analysis.

Provide:
1. A brief 2-3 sentence technical summary
2. Top 3-5 actionable recommendations

Format as JSON: {{"summary": "...", "recommendations": ["...", "..."]}}"""


def strip_code_fence(content: str) -> str:
    cleaned = content.strip()
    if cleaned.startswith("```"):
        cleaned = FENCE_CLOSE.sub("", FENCE_OPEN.sub("", cleaned))
    return cleaned


def parse_reply(content: str) -> AISummary:
    """
    Turn the model reply into an AISummary. A reply that is not a JSON
    object becomes the summary text as-is.
    """
    try:
        parsed = json.loads(strip_code_fence(content))
    except ValueError as e:
        logger.info(f"LLM content not valid JSON, using raw content: {str(e)}")
        return AISummary(summary=content, recommendations=[])

    if not isinstance(parsed, dict):
        return AISummary(summary=content, recommendations=[])

    summary = parsed.get("summary") or None
    recommendations = parsed.get("recommendations") or []
    if not isinstance(recommendations, list):
        recommendations = []

    return AISummary(
        summary=str(summary) if summary is not None else None,
        recommendations=[str(item) for item in recommendations],
    )


class ScanSummarizer:
    """
    Best-effort natural-language summary of a finished scan.

    Every public method returns an AISummary; a missing key, a failed call
    or an empty reply all yield AISummary(summary=None, recommendations=[]).
    """

    def __init__(self, config: ScanConfig, client_factory: Callable[..., Any] = OpenAI):
        self.config = config
        self.client_factory = client_factory

    @property
    def enabled(self) -> bool:
        return bool(self.config.llm_api_key)

    def summarize(
        self,
        url: str,
        results: ScanResults,
        top_issues: List[TopIssue],
        overall_score: int,
    ) -> AISummary:
        security = results.completed("security")
        accessibility = results.completed("accessibility")
        performance = results.completed("performance")

        return self.summarize_counts(
            url=url,
            overall_score=overall_score,
            security_issue_count=len(security.issues) if security is not None else 0,
            accessibility_issue_count=accessibility.total_issues if accessibility is not None else 0,
            performance_score=performance.score if performance is not None else 0,
            top_issues=top_issues,
        )

    def summarize_counts(
        self,
        url: str,
        overall_score: int,
        security_issue_count: int,
        accessibility_issue_count: int,
        performance_score: int,
        top_issues: Sequence[TopIssue],
    ) -> AISummary:
        if not self.enabled:
            logger.info("LLM API key not configured, skipping AI analysis")
            return AISummary()

        prompt = build_prompt(
            url,
            overall_score,
            security_issue_count,
            accessibility_issue_count,
            performance_score,
            top_issues,
        )

        try:
            content = self._complete(prompt)
        except Exception as e:
            logger.error(f"AI analysis error: {str(e)}")
            return AISummary()

        if not content:
            logger.info("LLM API returned no content")
            return AISummary()

        result = parse_reply(content)
        logger.info(f"AI analysis completed for {url}")
        return result

    def _complete(self, prompt: str) -> Optional[str]:
        client = self.client_factory(
            base_url=self.config.llm_base_url,
            api_key=self.config.llm_api_key,
        )

        completion = client.chat.completions.create(
            extra_headers={
                "HTTP-Referer": self.config.llm_referer,
                "X-Title": self.config.app_name,
            },
            model=self.config.llm_model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            temperature=0.7,
            max_tokens=500,
        )

        if not completion.choices:
            return None
        return completion.choices[0].message.content
