import logging
from typing import Type

from pydantic import BaseModel

from app.features.scan.schemas.results import AnalyzerResult, Completed, Failed
from app.features.scan.services.fetch.fetcher import Fetcher

logger = logging.getLogger(__name__)


class AnalysisFailed(Exception):
    """Raised inside an analyzer when its own fetch produced nothing usable."""


class Analyzer:
    """
    One independent heuristic check.

    Subclasses implement analyze(url) and may raise freely; run(url) is the
    failure boundary and always returns a Completed or Failed result.
    """

    kind: str = ""
    label: str = ""
    payload_type: Type[BaseModel] = BaseModel

    def __init__(self, fetcher: Fetcher):
        self.fetcher = fetcher

    def analyze(self, url: str) -> BaseModel:
        raise NotImplementedError

    def run(self, url: str) -> AnalyzerResult:
        try:
            payload = self.analyze(url)
        except Exception as e:
            logger.error(f"{self.label} scan error for {url}: {str(e)}")
            return Failed(error=str(e) or f"{self.label} scan failed")

        return Completed[self.payload_type](payload=payload)
