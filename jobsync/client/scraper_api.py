"""Scraper REST API interface and httpx implementation."""

import logging
from abc import ABC, abstractmethod
from typing import Any, List, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field

from jobsync.config import settings
from jobsync.jobs.errors import TransportError
from jobsync.jobs.models import ScraperJob

logger = logging.getLogger(__name__)


class StartJobResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    job_id: str = Field(alias="jobId")


class ScraperApi(ABC):
    """Abstract interface for the job submission, status and recent-jobs calls."""

    @abstractmethod
    async def start(
        self,
        url: str,
        currency_pair: str,
        target_sheet_id: Optional[str] = None,
    ) -> StartJobResponse:
        """Submit an exchange rate scraping job."""
        ...

    @abstractmethod
    async def get_status(self, job_id: str) -> Optional[ScraperJob]:
        """Fetch one job. Returns None if the server does not know it."""
        ...

    @abstractmethod
    async def get_recent(self) -> List[ScraperJob]:
        """Fetch the recent jobs, most recent first."""
        ...


def _response_message(response: httpx.Response) -> Optional[str]:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        message = body.get("message")
        if isinstance(message, str) and message:
            return message
    return None


def _job_or_none(body: Any) -> Optional[ScraperJob]:
    if not body:
        return None
    return ScraperJob.model_validate(body)


def _job_list(body: Any) -> List[ScraperJob]:
    if isinstance(body, dict):
        body = body.get("jobs") or []
    if not isinstance(body, list):
        raise ValueError(f"expected a list of jobs, got {type(body).__name__}")
    return [ScraperJob.model_validate(item) for item in body]


class HttpScraperApi(ScraperApi):
    """Talks to the scraper backend over HTTP.

    Every ``httpx`` failure surfaces as :class:`TransportError`.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._client = httpx.AsyncClient(
            base_url=(base_url or settings.scraper_api_url).rstrip("/"),
            timeout=timeout if timeout is not None else settings.request_timeout_s,
            headers={"Content-Type": "application/json"},
            transport=transport,
        )

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            response = await self._client.request(method, path, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.error(
                "Scraper API %s %s -> %d", method, path, exc.response.status_code
            )
            raise TransportError(
                str(exc),
                response_message=_response_message(exc.response),
                status_code=exc.response.status_code,
            ) from exc
        except httpx.HTTPError as exc:
            logger.error("Scraper API %s %s failed: %s", method, path, exc)
            raise TransportError(str(exc) or type(exc).__name__) from exc
        return response

    @staticmethod
    def _parse(response: httpx.Response, parse):
        try:
            return parse(response.json())
        except ValueError as exc:
            logger.error("Malformed scraper API response from %s: %s", response.url, exc)
            raise TransportError("Malformed response from scraper API") from exc

    async def start(self, url, currency_pair, target_sheet_id=None) -> StartJobResponse:
        payload = {"url": url, "currencyPair": currency_pair}
        if target_sheet_id:
            payload["targetSheetId"] = target_sheet_id
        response = await self._request("POST", "/scraper/exchange-rate", json=payload)
        return self._parse(response, StartJobResponse.model_validate)

    async def get_status(self, job_id: str) -> Optional[ScraperJob]:
        try:
            response = await self._request("GET", f"/scraper/jobs/{job_id}")
        except TransportError as exc:
            if exc.status_code == 404:
                return None
            raise
        return self._parse(response, _job_or_none)

    async def get_recent(self) -> List[ScraperJob]:
        response = await self._request("GET", "/scraper/jobs")
        return self._parse(response, _job_list)

    async def close(self) -> None:
        await self._client.aclose()
