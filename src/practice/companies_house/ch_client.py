"""
Companies House API Client

Thin async wrapper around the Companies House public data REST API.
Authentication is HTTP Basic with the API key as the username and an empty
password. Transient failures (timeouts, connection errors, 5xx and 429) are
retried with backoff; everything else is mapped to a CompaniesHouseError.
"""

import logging
from typing import Optional, Dict, Any, List

import httpx

from config.settings import get_settings
from resilience.retry import RetryConfig, RetryExhausted, retry_call
from security.api_errors import APIError, ErrorCode

logger = logging.getLogger(__name__)


# =============================================================================
# ERRORS
# =============================================================================

class CompaniesHouseError(APIError):
    """Any failed Companies House call (HTTP 400)."""

    def __init__(self, message: str, upstream_status: Optional[int] = None,
                 code: ErrorCode = ErrorCode.EXTERNAL_SERVICE_ERROR):
        details = {"upstream_status": upstream_status} if upstream_status else None
        super().__init__(code, message, details=details)
        self.upstream_status = upstream_status


class CompaniesHouseNotFound(CompaniesHouseError):
    def __init__(self, message: str):
        super().__init__(message, upstream_status=404, code=ErrorCode.EXTERNAL_NOT_FOUND)


class CompaniesHouseAuthError(CompaniesHouseError):
    def __init__(self, message: str = "Invalid Companies House API key"):
        super().__init__(message, upstream_status=401, code=ErrorCode.EXTERNAL_AUTH_FAILED)


class CompaniesHouseNotConfigured(CompaniesHouseError):
    def __init__(self):
        super().__init__("Companies House API key not configured", code=ErrorCode.EXTERNAL_NOT_CONFIGURED)


class _TransientResponse(Exception):
    """5xx / 429 response; retried."""

    def __init__(self, response: httpx.Response):
        super().__init__(f"HTTP {response.status_code}")
        self.response = response


TRANSIENT_ERRORS = (httpx.TimeoutException, httpx.TransportError, _TransientResponse)


# =============================================================================
# CLIENT
# =============================================================================

class CompaniesHouseClient:
    """
    Companies House REST client.

    ``transport`` lets tests plug in an ``httpx.MockTransport``.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        retry_config: Optional[RetryConfig] = None,
    ):
        settings = get_settings()
        ch = settings.companies_house
        self.api_key = api_key if api_key is not None else ch.api_key
        self.base_url = (base_url or ch.base_url).rstrip("/")
        self.timeout = httpx.Timeout(ch.timeout_seconds, connect=ch.connect_timeout_seconds)
        self.transport = transport
        self.retry_config = retry_config or RetryConfig.from_settings(
            settings.resilience,
            retryable_exceptions=TRANSIENT_ERRORS,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key and self.api_key.strip())

    async def _send(self, path: str, params: Optional[Dict[str, Any]]) -> httpx.Response:
        async with httpx.AsyncClient(
            base_url=self.base_url,
            auth=(self.api_key, ""),
            timeout=self.timeout,
            transport=self.transport,
        ) as client:
            response = await client.get(path, params=params)
        if response.status_code >= 500 or response.status_code == 429:
            raise _TransientResponse(response)
        return response

    async def _get(self, path: str, what: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        if not self.is_configured:
            raise CompaniesHouseNotConfigured()

        logger.info(f"Companies House request: {path}")
        try:
            response = await retry_call(self._send, path, params, config=self.retry_config)
        except RetryExhausted as e:
            last = e.last_exception
            status = last.response.status_code if isinstance(last, _TransientResponse) else None
            logger.error(f"Companies House request failed after {e.attempts} attempts: {path} ({last})")
            raise CompaniesHouseError(f"Failed to fetch {what}: {last}", upstream_status=status)

        if response.status_code == 401:
            raise CompaniesHouseAuthError()
        if response.status_code == 404:
            raise CompaniesHouseNotFound(f"{what[0].upper()}{what[1:]} not found")
        if response.status_code >= 400:
            logger.error(f"Companies House error {response.status_code} for {path}: {response.text[:200]}")
            raise CompaniesHouseError(
                f"Failed to fetch {what}: HTTP {response.status_code}",
                upstream_status=response.status_code,
            )
        return response.json()

    # =========================================================================
    # ENDPOINTS
    # =========================================================================

    async def search_companies(self, q: str, items_per_page: int = 20, start_index: int = 0) -> List[Dict[str, Any]]:
        data = await self._get(
            "/search/companies",
            "company search results",
            params={"q": q, "items_per_page": items_per_page, "start_index": start_index},
        )
        return data.get("items", [])

    async def get_company(self, company_number: str) -> Dict[str, Any]:
        return await self._get(f"/company/{company_number}", f"company {company_number}")

    async def get_officers(self, company_number: str) -> List[Dict[str, Any]]:
        data = await self._get(f"/company/{company_number}/officers", f"officers for company {company_number}")
        return data.get("items", [])

    async def get_filing_history(self, company_number: str, items_per_page: int = 20) -> Dict[str, Any]:
        return await self._get(
            f"/company/{company_number}/filing-history",
            f"filing history for company {company_number}",
            params={"items_per_page": items_per_page},
        )

    async def get_persons_with_significant_control(self, company_number: str) -> Dict[str, Any]:
        return await self._get(
            f"/company/{company_number}/persons-with-significant-control",
            f"PSCs for company {company_number}",
        )

    async def get_charges(self, company_number: str) -> Dict[str, Any]:
        return await self._get(f"/company/{company_number}/charges", f"charges for company {company_number}")


_ch_client: Optional[CompaniesHouseClient] = None


def get_companies_house_client() -> CompaniesHouseClient:
    global _ch_client
    if _ch_client is None:
        _ch_client = CompaniesHouseClient()
    return _ch_client
