from dataclasses import dataclass
from typing import Optional

from app.platform.config import Settings, settings


@dataclass(frozen=True)
class ScanConfig:
    """
    Explicit configuration handed to the orchestrator, analyzers and
    summarizer. Built once from Settings at startup; scan code never reads
    the environment itself.
    """
    user_agent: str
    html_parser: str = "html.parser"
    pagespeed_api_key: Optional[str] = None
    llm_api_key: Optional[str] = None
    llm_base_url: str = "https://openrouter.ai/api/v1"
    llm_model: str = "google/gemini-2.0-flash-001"
    llm_referer: str = ""
    app_name: str = ""

    @classmethod
    def from_settings(cls, source: Settings = settings) -> "ScanConfig":
        return cls(
            user_agent=source.SCANNER_USER_AGENT,
            html_parser=source.HTML_PARSER,
            pagespeed_api_key=source.GOOGLE_PAGESPEED_API_KEY or None,
            llm_api_key=source.OPENROUTER_API_KEY or None,
            llm_base_url=source.LLM_BASE_URL,
            llm_model=source.LLM_MODEL,
            llm_referer=source.LANDING_PAGE_URL,
            app_name=source.APP_NAME,
        )
