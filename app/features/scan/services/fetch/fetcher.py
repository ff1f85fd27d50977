import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import requests
from requests.structures import CaseInsensitiveDict

from app.platform.config import settings

CONTENT_TIMEOUT = 10
PERFORMANCE_TIMEOUT = 15
PAGESPEED_TIMEOUT = 60
CHUNK_SIZE = 8192

DEFAULT_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"


class FetchError(Exception):
    """Network, DNS or TLS failure while fetching a URL."""


class FetchTimeoutError(FetchError):
    """The fetch did not complete before its deadline."""


@dataclass
class FetchResponse:
    status: int
    headers: CaseInsensitiveDict = field(default_factory=CaseInsensitiveDict)
    body: str = ""
    elapsed_ms: float = 0.0

    def __post_init__(self):
        if not isinstance(self.headers, CaseInsensitiveDict):
            self.headers = CaseInsensitiveDict(self.headers or {})

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def header(self, name: str) -> Optional[str]:
        return self.headers.get(name)


class Fetcher:
    """
    Bounded-time GET against a target with a fixed scanner identity.

    Any HTTP response comes back as a FetchResponse, whatever the status
    code; only transport failures raise. Every analyzer calls get() itself,
    nothing is cached between calls.

    The timeout is a total deadline for the whole call, body included. The
    download runs on a worker thread so a server that trickles bytes still
    ends in FetchTimeoutError once the deadline passes. elapsed_ms is the
    time until the response headers arrived.
    """

    def __init__(self, user_agent: Optional[str] = None, session: Optional[requests.Session] = None):
        self.user_agent = user_agent or settings.SCANNER_USER_AGENT
        self.session = session

    def get(
        self,
        url: str,
        timeout: float = CONTENT_TIMEOUT,
        params: Optional[Dict[str, Any]] = None,
        accept: str = DEFAULT_ACCEPT,
    ) -> FetchResponse:
        headers = {"User-Agent": self.user_agent, "Accept": accept}
        deadline = time.perf_counter() + timeout

        executor = ThreadPoolExecutor(max_workers=1)
        future = executor.submit(self._download, url, headers, params, timeout, deadline)
        try:
            return future.result(timeout=timeout)
        except FutureTimeoutError as e:
            raise FetchTimeoutError(f"Timeout after {timeout}s fetching {url}") from e
        except requests.exceptions.Timeout as e:
            raise FetchTimeoutError(f"Timeout after {timeout}s fetching {url}") from e
        except requests.exceptions.RequestException as e:
            raise FetchError(f"Request to {url} failed: {str(e)}") from e
        finally:
            executor.shutdown(wait=False)

    def _download(
        self,
        url: str,
        headers: Dict[str, str],
        params: Optional[Dict[str, Any]],
        timeout: float,
        deadline: float,
    ) -> FetchResponse:
        client = self.session or requests

        start_time = time.perf_counter()
        response = client.get(url, headers=headers, params=params, timeout=timeout, stream=True)
        elapsed_ms = (time.perf_counter() - start_time) * 1000

        try:
            chunks = []
            for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                if time.perf_counter() > deadline:
                    raise FetchTimeoutError(f"Timeout after {timeout}s fetching {url}")
                if chunk:
                    chunks.append(chunk)
        finally:
            response.close()

        return FetchResponse(
            status=response.status_code,
            headers=CaseInsensitiveDict(response.headers),
            body=_decode(b"".join(chunks), response.encoding),
            elapsed_ms=elapsed_ms,
        )


def _decode(content: bytes, encoding: Optional[str]) -> str:
    try:
        return content.decode(encoding or "utf-8", errors="replace")
    except LookupError:
        return content.decode("utf-8", errors="replace")
