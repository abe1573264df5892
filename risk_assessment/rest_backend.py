"""
Risk Assessment Core - HTTP Backend.

============================================================
PURPOSE
============================================================
AdviceBackend over a PostgREST-style HTTP API.

Endpoints:
- GET  /rest/v1/risk_assessment_advice?order=min_score.asc
- POST /rest/v1/risk_assessment_advice?on_conflict=risk_level
- GET  /rest/v1/risk_assessment_config?question_id=eq.<id>
- POST /rest/v1/rpc/get_risk_assessment_advice
- POST /rest/v1/rpc/update_risk_assessment_advice

HTTP status codes are mapped onto error categories here so
the retry policy never has to parse response bodies.

============================================================
"""

import logging
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional

import aiohttp

from .backend import AdviceBackend, advice_from_row, advice_to_row
from .errors import StoreError
from .types import AdviceRecord, ErrorCategory, ScoreConfigEntry


logger = logging.getLogger(__name__)


TokenRefresher = Callable[[], Awaitable[str]]


def category_for_status(status: int) -> ErrorCategory:
    if status >= 500:
        return ErrorCategory.SERVER
    if status in (401, 403):
        return ErrorCategory.AUTH
    return ErrorCategory.UNKNOWN


class RestAdviceBackend(AdviceBackend):
    """
    aiohttp client for the advice and weight endpoints.

    The session is created lazily and owned by the backend unless
    one is passed in.
    """

    name = "rest"

    DEFAULT_TIMEOUT = 30.0
    ADVICE_TABLE = "risk_assessment_advice"
    CONFIG_TABLE = "risk_assessment_config"
    FETCH_PROCEDURE = "get_risk_assessment_advice"
    UPDATE_PROCEDURE = "update_risk_assessment_advice"

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        access_token: Optional[str] = None,
        use_procedures: bool = False,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[aiohttp.ClientSession] = None,
        token_refresher: Optional[TokenRefresher] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._access_token = access_token or api_key
        self._use_procedures = use_procedures
        self._timeout = timeout
        self._session = session
        self._owns_session = session is None
        self._token_refresher = token_refresher

    # --------------------------------------------------------
    # HTTP HELPERS
    # --------------------------------------------------------

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._timeout),
            )
            self._owns_session = True
        return self._session

    def _get_default_headers(self) -> Dict[str, str]:
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        if self._api_key:
            headers["apikey"] = self._api_key
        if self._access_token:
            headers["Authorization"] = f"Bearer {self._access_token}"
        return headers

    async def _make_request(
        self,
        method: str,
        path: str,
        operation: str,
        params: Optional[Dict[str, str]] = None,
        json_body: Any = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        """Make HTTP request with error handling."""
        session = await self._get_session()
        url = f"{self._base_url}{path}"

        request_headers = self._get_default_headers()
        if headers:
            request_headers.update(headers)

        start_time = time.time()
        try:
            async with session.request(
                method,
                url,
                params=params,
                json=json_body,
                headers=request_headers,
            ) as response:
                latency_ms = (time.time() - start_time) * 1000
                logger.debug(
                    f"[{self.name}] {method} {path} -> {response.status} "
                    f"({latency_ms:.0f}ms)"
                )

                if response.status >= 400:
                    body = await response.text()
                    raise StoreError(
                        message=f"HTTP {response.status}: {body[:200]}",
                        operation=operation,
                        category=category_for_status(response.status),
                        status_code=response.status,
                        context={"url": url},
                    )

                if response.status == 204:
                    return None
                return await response.json()

        except aiohttp.ClientError as e:
            raise StoreError(
                message=f"Connection error: {e}",
                operation=operation,
                category=ErrorCategory.NETWORK,
                original_error=e,
                context={"url": url},
            ) from e

    # --------------------------------------------------------
    # ADVICE
    # --------------------------------------------------------

    async def fetch_advice(self) -> List[AdviceRecord]:
        if self._use_procedures:
            rows = await self._make_request(
                "POST",
                f"/rest/v1/rpc/{self.FETCH_PROCEDURE}",
                operation="fetch_advice",
                json_body={},
            )
        else:
            rows = await self._make_request(
                "GET",
                f"/rest/v1/{self.ADVICE_TABLE}",
                operation="fetch_advice",
                params={"select": "*", "order": "min_score.asc"},
            )

        records = [advice_from_row(row) for row in rows or []]
        return sorted(records, key=lambda r: r.min_score)

    async def upsert_advice(self, record: AdviceRecord) -> Optional[AdviceRecord]:
        if self._use_procedures:
            rows = await self._make_request(
                "POST",
                f"/rest/v1/rpc/{self.UPDATE_PROCEDURE}",
                operation="upsert_advice",
                json_body={
                    "p_min_score": record.min_score,
                    "p_max_score": record.max_score,
                    "p_advice": record.advice_text,
                    "p_risk_level": record.risk_level,
                },
            )
        else:
            rows = await self._make_request(
                "POST",
                f"/rest/v1/{self.ADVICE_TABLE}",
                operation="upsert_advice",
                params={"on_conflict": "risk_level"},
                json_body=advice_to_row(record),
                headers={"Prefer": "resolution=merge-duplicates,return=representation"},
            )

        row = _first_row(rows)
        return advice_from_row(row) if row is not None else None

    async def relabel_advice(self, old_risk_level: str, new_risk_level: str) -> bool:
        rows = await self._make_request(
            "PATCH",
            f"/rest/v1/{self.ADVICE_TABLE}",
            operation="relabel_advice",
            params={"risk_level": f"eq.{old_risk_level}"},
            json_body={"risk_level": new_risk_level},
            headers={"Prefer": "return=representation"},
        )
        return bool(rows)

    # --------------------------------------------------------
    # WEIGHTS
    # --------------------------------------------------------

    async def get_weight(self, question_id: str, option_value: str) -> Optional[int]:
        # Option values are compared here; ilike would treat "_" as a wildcard.
        rows = await self._make_request(
            "GET",
            f"/rest/v1/{self.CONFIG_TABLE}",
            operation="get_weight",
            params={
                "select": "question_id,option_value,score",
                "question_id": f"eq.{question_id}",
            },
        )
        wanted = option_value.lower()
        for row in rows or []:
            if str(row.get("option_value", "")).lower() == wanted:
                return int(row.get("score") or 0)
        return None

    async def list_weights(self) -> List[ScoreConfigEntry]:
        rows = await self._make_request(
            "GET",
            f"/rest/v1/{self.CONFIG_TABLE}",
            operation="list_weights",
            params={"select": "question_id,option_value,score"},
        )
        return [
            ScoreConfigEntry(
                question_id=row["question_id"],
                option_value=row["option_value"],
                score=int(row.get("score") or 0),
            )
            for row in rows or []
        ]

    # --------------------------------------------------------
    # LIFECYCLE
    # --------------------------------------------------------

    async def refresh_credentials(self) -> None:
        if self._token_refresher is None:
            logger.info(f"[{self.name}] No token refresher configured")
            return
        self._access_token = await self._token_refresher()
        logger.info(f"[{self.name}] Access token refreshed")

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None


def _first_row(rows: Any) -> Optional[Dict[str, Any]]:
    if isinstance(rows, list):
        return rows[0] if rows else None
    if isinstance(rows, dict):
        return rows
    return None
