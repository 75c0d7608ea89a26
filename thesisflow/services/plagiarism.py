"""Similarity oracle client.

The engine only sees ``score(file_ref) -> SimilarityResult``. Anything that
goes wrong on the way to a usable score (no endpoint, timeout, connection
error, 5xx, malformed body) is reported as ``TransientInfraError`` so it
never costs the student an attempt.
"""

import logging
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Optional, Protocol

import httpx

from thesisflow.config import get_settings
from thesisflow.errors import TransientInfraError
from thesisflow.utils.storage import FileStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SimilarityResult:
    score: float
    report_ref: Optional[str] = None


class SimilarityOracle(Protocol):
    def score(self, file_ref: str) -> SimilarityResult: ...


class HttpSimilarityOracle:
    """Posts the thesis file to an external checker.

    Expected response body: ``{"similarity_score": <0-100>, "report": "<text>"}``.
    The report, when present, is kept in the file store.
    """

    def __init__(
        self,
        store: FileStore,
        api_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        settings = get_settings()
        self.store = store
        self.api_url = api_url or settings.plagiarism_api_url
        self.api_key = api_key or settings.plagiarism_api_key
        self.timeout = timeout or settings.plagiarism_timeout_seconds
        self.transport = transport

    def _get_headers(self) -> dict:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def score(self, file_ref: str) -> SimilarityResult:
        if not self.api_url:
            raise TransientInfraError("Plagiarism service is not configured", service="plagiarism")

        data = self.store.fetch(file_ref)
        filename = PurePosixPath(file_ref).name
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                response = client.post(
                    self.api_url,
                    headers=self._get_headers(),
                    files={"file": (filename, data)},
                )
                response.raise_for_status()
                body = response.json()
        except httpx.HTTPStatusError as exc:
            logger.error("Plagiarism service HTTP error: %s", exc.response.status_code)
            raise TransientInfraError(
                f"Plagiarism service returned {exc.response.status_code}", service="plagiarism"
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("Plagiarism service unavailable: %s", exc)
            raise TransientInfraError("Plagiarism service is unavailable", service="plagiarism") from exc

        try:
            score = float(body["similarity_score"])
        except (KeyError, TypeError, ValueError) as exc:
            logger.error("Malformed plagiarism response: %r", body)
            raise TransientInfraError(
                "Plagiarism service returned a malformed response", service="plagiarism"
            ) from exc
        if not 0 <= score <= 100:
            raise TransientInfraError(
                "Plagiarism service returned an out-of-range score", service="plagiarism"
            )

        report_ref = None
        report = body.get("report")
        if report:
            report_ref = self.store.store(
                str(report).encode("utf-8"), category="plagiarism_reports", suffix=".txt"
            )
        return SimilarityResult(score=score, report_ref=report_ref)
