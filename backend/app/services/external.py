"""
External collaborators.

Interfaces for the ERP document lookup, ERP status sync, SMS gateway and
ETA provider, with their httpx implementations. Every outbound call carries
a bounded timeout; callers treat failures as "not available".
"""

import json
import logging
import time
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Protocol

import httpx
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.background import fire_and_forget
from backend.app.core.clock import utcnow
from backend.app.core.config import settings
from backend.app.core.reliability import CircuitBreaker, CircuitOpenError
from backend.app.models.api_outbound_log import ApiOutboundLog
from backend.app.models.enums import DocStatus
from backend.app.schemas.auth import CurrentUser
from backend.app.services.settings_cache import SettingsCache

logger = logging.getLogger(__name__)


class SourceDocument(BaseModel):
    """Document record as returned by the ERP (or the mock source)."""
    model_config = ConfigDict(populate_by_name=True)

    doc_id: str = Field(..., alias="docId")
    status: Optional[str] = ""
    route_id: str = Field(..., alias="routeId")
    lot_nbr: Optional[str] = Field(None, alias="lotNbr")
    warehouse_location: Optional[str] = Field(None, alias="whseLocationName")
    customer_id: str = Field(..., alias="customerId")
    customer_name: str = Field(..., alias="customerName")
    customer_address: Optional[str] = Field(None, alias="customerAddress")
    customer_city: Optional[str] = Field(None, alias="customerCity")
    customer_pincode: Optional[str] = Field(None, alias="customerPinCode")
    customer_phone: Optional[str] = Field(None, alias="customerPhone")
    doc_date: datetime = Field(..., alias="docDate")
    doc_amount: Decimal = Field(..., alias="docAmount")


# Interfaces

class DocumentSource(Protocol):
    async def resolve(self, doc_id: str, user: CurrentUser) -> Optional[SourceDocument]: ...


class StatusSync(Protocol):
    async def notify(self, doc_id: str, status: DocStatus, user_id: str) -> None: ...


class SmsSender(Protocol):
    async def send_tracking_link(self, phone: str, doc_id: str, token: str) -> None: ...


class EtaProvider(Protocol):
    async def estimate(self, origin_lat: float, origin_lng: float, dest_lat: float, dest_lng: float) -> Optional[int]: ...


def erp_headers() -> Dict[str, str]:
    return {
        "x-api-prod-code": settings.erp_api_prod_code,
        "x-api-token": settings.erp_api_token,
    }


# ERP call log

# Larger response bodies are replaced by a size marker
MAX_LOGGED_BODY_CHARS = 10000


def _loggable_body(response: httpx.Response) -> Any:
    try:
        body = response.json()
    except ValueError:
        body = response.text or None
    if body is None:
        return None
    size = len(json.dumps(body, default=str))
    if size > MAX_LOGGED_BODY_CHARS:
        return {"_truncated": True, "_original_length": size}
    return body


class ErpCallLog:
    """
    Records every ERP call in `api_outbound_logs`.

    Each row is written in its own session so a failed insert never touches
    the caller's transaction; failures are logged and dropped.
    """

    def __init__(self, session_factory: Callable[[], AsyncSession]):
        self.session_factory = session_factory

    async def record(
        self,
        endpoint: str,
        method: str,
        started_at: float,
        request_body: Any = None,
        response: Optional[httpx.Response] = None,
        error: Optional[Exception] = None
    ) -> None:
        entry = ApiOutboundLog(
            fired_at=utcnow(),
            endpoint=endpoint,
            method=method,
            response_time_ms=int((time.time() - started_at) * 1000),
            request_body=request_body,
            success=False,
        )
        if response is not None:
            entry.http_status = response.status_code
            entry.response_body = _loggable_body(response)
            entry.success = response.is_success
            if not response.is_success:
                entry.error_message = f"HTTP {response.status_code}: {response.reason_phrase}"
        if error is not None:
            entry.error_message = str(error) or type(error).__name__

        try:
            async with self.session_factory() as session:
                session.add(entry)
                await session.commit()
        except SQLAlchemyError as exc:
            logger.error("Failed to log ERP call %s %s: %s", method, endpoint, exc)


# Document sources

class ErpDocumentSource:
    """Looks documents up in the ERP; disabled when no ERP base URL is configured."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        call_log: Optional[ErpCallLog] = None
    ):
        self.base_url = base_url if base_url is not None else settings.erp_api_base_url
        self.timeout = timeout or settings.outbound_timeout_seconds
        self.call_log = call_log

    async def resolve(self, doc_id: str, user: CurrentUser) -> Optional[SourceDocument]:
        if not self.base_url:
            return None
        url = f"{self.base_url.rstrip('/')}/document/{doc_id}"
        started_at = time.time()
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(url, headers=erp_headers(), params={"userId": user.id})
        except httpx.HTTPError as exc:
            logger.error("ERP lookup for doc %s failed: %s", doc_id, exc)
            if self.call_log:
                await self.call_log.record(url, "GET", started_at, error=exc)
            return None

        if self.call_log:
            await self.call_log.record(url, "GET", started_at, response=response)

        if response.status_code != 200:
            logger.warning("ERP lookup for doc %s returned %s", doc_id, response.status_code)
            return None

        try:
            return SourceDocument.model_validate(response.json())
        except ValueError as exc:
            logger.error("ERP returned an unreadable record for doc %s: %s", doc_id, exc)
            return None


class MockDocumentSource:
    """In-memory source documents used for demos and training."""

    def __init__(self):
        self._docs: Dict[str, SourceDocument] = {}

    async def resolve(self, doc_id: str, user: CurrentUser) -> Optional[SourceDocument]:
        return self._docs.get(doc_id)

    def add_docs(self, docs: List[SourceDocument]) -> None:
        for doc in docs:
            self._docs[doc.doc_id] = doc

    def clear(self) -> None:
        self._docs.clear()

    def __len__(self) -> int:
        return len(self._docs)


class ChainedDocumentSource:
    """Tries each source in order and returns the first match."""

    def __init__(self, *sources: DocumentSource):
        self.sources = sources

    async def resolve(self, doc_id: str, user: CurrentUser) -> Optional[SourceDocument]:
        for source in self.sources:
            found = await source.resolve(doc_id, user)
            if found is not None:
                return found
        return None


# Status sync

class ErpStatusSync:
    """Pushes document status changes to the ERP status hook."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        call_log: Optional[ErpCallLog] = None
    ):
        self.base_url = base_url if base_url is not None else settings.erp_api_base_url
        self.timeout = timeout or settings.outbound_timeout_seconds
        self.call_log = call_log

    async def notify(self, doc_id: str, status: DocStatus, user_id: str) -> None:
        if not self.base_url:
            logger.debug("ERP base URL not configured; skipping status sync for doc %s", doc_id)
            return
        url = f"{self.base_url.rstrip('/')}/document/status"
        payload = {"docId": doc_id, "status": status.value, "userId": user_id}
        started_at = time.time()
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(url, json=payload, headers=erp_headers())
        except httpx.HTTPError as exc:
            if self.call_log:
                await self.call_log.record(url, "POST", started_at, request_body=payload, error=exc)
            raise

        if self.call_log:
            await self.call_log.record(url, "POST", started_at, request_body=payload, response=response)
        response.raise_for_status()
        logger.info("ERP status for doc %s updated to %s", doc_id, status.value)


def notify_status_change(
    status_sync: StatusSync,
    settings_cache: SettingsCache,
    doc_ids: List[str],
    status: DocStatus,
    user_id: str
) -> None:
    """
    Spawn one background status sync per document.

    Called after the local transaction commits. Does nothing when ERP sync
    is switched off in settings.
    """
    if not settings_cache.get_update_status_to_external_system():
        return
    for doc_id in doc_ids:
        fire_and_forget(
            status_sync.notify(doc_id, status, user_id),
            f"ERP status sync doc={doc_id} status={status.value}",
        )


# SMS

class TwoFactorSmsSender:
    """Sends the tracking-link SMS through the 2Factor transactional template API."""

    def __init__(self, api_key: Optional[str] = None, template: Optional[str] = None, timeout: Optional[float] = None):
        self.api_key = api_key if api_key is not None else settings.sms_api_key
        self.template = template or settings.sms_tracking_template
        self.timeout = timeout or settings.outbound_timeout_seconds

    def build_url(self, phone: str) -> str:
        return settings.sms_send_url_template.format(
            apikey=self.api_key,
            recipient=phone,
            template=self.template,
        )

    async def send_tracking_link(self, phone: str, doc_id: str, token: str) -> None:
        if not self.api_key:
            logger.debug("SMS API key not configured; skipping tracking SMS for doc %s", doc_id)
            return
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.get(self.build_url(phone), params={"var1": doc_id, "var2": token})
            response.raise_for_status()
        logger.info("Tracking SMS for doc %s sent to %s", doc_id, phone)


# ETA

class DistanceMatrixEtaProvider:
    """
    Driving-time estimate from a distance-matrix style API.

    Expects the response shape rows[0].elements[0].duration.value (seconds).
    Calls go through a circuit breaker so a failing provider is skipped
    instead of slowing every tracking request.
    """

    def __init__(
        self,
        api_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        breaker: Optional[CircuitBreaker] = None
    ):
        self.api_url = api_url if api_url is not None else settings.eta_api_url
        self.api_key = api_key if api_key is not None else settings.eta_api_key
        self.timeout = timeout or settings.outbound_timeout_seconds
        self.breaker = breaker or CircuitBreaker(failure_threshold=3, reset_timeout=60)

    async def _fetch_minutes(self, origin_lat: float, origin_lng: float, dest_lat: float, dest_lng: float) -> Optional[int]:
        params = {
            "origins": f"{origin_lat},{origin_lng}",
            "destinations": f"{dest_lat},{dest_lng}",
            "key": self.api_key,
        }
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.get(self.api_url, params=params)
            response.raise_for_status()
            body = response.json()
        element = body["rows"][0]["elements"][0]
        if element.get("status", "OK") != "OK":
            return None
        return round(element["duration"]["value"] / 60)

    async def estimate(self, origin_lat: float, origin_lng: float, dest_lat: float, dest_lng: float) -> Optional[int]:
        if not self.api_url:
            return None
        try:
            return await self.breaker.call(self._fetch_minutes, origin_lat, origin_lng, dest_lat, dest_lng)
        except CircuitOpenError:
            logger.warning("ETA provider circuit is open; skipping estimate")
            return None
        except (httpx.HTTPError, KeyError, IndexError, TypeError, ValueError) as exc:
            logger.error("ETA lookup failed: %s", exc)
            return None
