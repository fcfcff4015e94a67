"""
Failure Injection Tests.

Validates resilience against outbound component failures: the ETA
provider, the ERP and background notifications.
"""

import base64
import time

import httpx
import pytest
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from backend.app.core.background import fire_and_forget, drain
from backend.app.core.reliability import CircuitBreaker, CircuitOpenError
from backend.app.models.api_outbound_log import ApiOutboundLog
from backend.app.models.doc import Doc
from backend.app.models.enums import DocStatus
from backend.app.schemas.auth import CurrentUser
from backend.app.schemas.doc import MarkDeliveryRequest
from backend.app.services.external import (
    DistanceMatrixEtaProvider, ErpCallLog, ErpDocumentSource, ErpStatusSync, TwoFactorSmsSender
)
from backend.tests.factories import make_source_doc

SCANNER = CurrentUser(id="9000000001", username="Scanner One", roles=[])


def _response(status_code, json=None, url="http://test.invalid/api"):
    return httpx.Response(status_code, json=json, request=httpx.Request("GET", url))


# TEST 1: Circuit breaker
@pytest.mark.asyncio
async def test_circuit_breaker_activates():
    """Test that circuit breaker opens after threshold failures."""
    cb = CircuitBreaker(failure_threshold=2, reset_timeout=60)

    async def failing_func():
        raise ValueError("Boom")

    # Fail 1
    with pytest.raises(ValueError):
        await cb.call(failing_func)

    # Fail 2 (Threshold reached)
    with pytest.raises(ValueError):
        await cb.call(failing_func)

    # Call 3 (Should be CircuitOpenError)
    with pytest.raises(CircuitOpenError):
        await cb.call(failing_func)


@pytest.mark.asyncio
async def test_circuit_breaker_recovers_after_timeout():
    cb = CircuitBreaker(failure_threshold=1, reset_timeout=60)

    async def failing_func():
        raise ValueError("Boom")

    async def working_func():
        return "ok"

    with pytest.raises(ValueError):
        await cb.call(failing_func)
    assert cb.state == "OPEN"

    cb.last_failure_time = time.monotonic() - 61
    assert await cb.call(working_func) == "ok"
    assert cb.state == "CLOSED"
    assert cb.failures == 0


@pytest.mark.asyncio
async def test_circuit_breaker_half_open_failure_reopens():
    cb = CircuitBreaker(failure_threshold=3, reset_timeout=60)
    cb.state = "OPEN"
    cb.last_failure_time = time.monotonic() - 61

    async def failing_func():
        raise ValueError("Boom")

    with pytest.raises(ValueError):
        await cb.call(failing_func)
    assert cb.state == "OPEN"


# TEST 2: ETA provider
@pytest.mark.asyncio
async def test_eta_provider_parses_duration(mocker):
    get = mocker.patch.object(
        httpx.AsyncClient, "get",
        new=mocker.AsyncMock(return_value=_response(200, {"rows": [{"elements": [{"status": "OK", "duration": {"value": 900}}]}]})),
    )
    provider = DistanceMatrixEtaProvider(api_url="http://eta.invalid/matrix", api_key="k")

    minutes = await provider.estimate(9.9, 76.2, 10.0, 76.4)

    assert minutes == 15
    assert get.await_args.kwargs["params"]["origins"] == "9.9,76.2"


@pytest.mark.asyncio
async def test_eta_provider_failure_returns_none_and_opens_circuit(mocker):
    get = mocker.patch.object(
        httpx.AsyncClient, "get",
        new=mocker.AsyncMock(side_effect=httpx.ConnectError("provider down")),
    )
    provider = DistanceMatrixEtaProvider(
        api_url="http://eta.invalid/matrix", api_key="k",
        breaker=CircuitBreaker(failure_threshold=2, reset_timeout=60),
    )

    assert await provider.estimate(9.9, 76.2, 10.0, 76.4) is None
    assert await provider.estimate(9.9, 76.2, 10.0, 76.4) is None
    assert await provider.estimate(9.9, 76.2, 10.0, 76.4) is None

    assert get.await_count == 2
    assert provider.breaker.state == "OPEN"


@pytest.mark.asyncio
async def test_eta_provider_unexpected_payload(mocker):
    mocker.patch.object(httpx.AsyncClient, "get", new=mocker.AsyncMock(return_value=_response(200, {"rows": []})))
    provider = DistanceMatrixEtaProvider(api_url="http://eta.invalid/matrix", api_key="k")

    assert await provider.estimate(9.9, 76.2, 10.0, 76.4) is None


@pytest.mark.asyncio
async def test_eta_provider_disabled_without_url(mocker):
    get = mocker.patch.object(httpx.AsyncClient, "get", new=mocker.AsyncMock())
    provider = DistanceMatrixEtaProvider(api_url="", api_key="")

    assert await provider.estimate(9.9, 76.2, 10.0, 76.4) is None
    get.assert_not_awaited()


# TEST 3: ERP and SMS gateways
@pytest.mark.asyncio
async def test_erp_lookup_returns_none_on_error_status(mocker):
    mocker.patch.object(httpx.AsyncClient, "get", new=mocker.AsyncMock(return_value=_response(404, {"error": "missing"})))
    source = ErpDocumentSource(base_url="http://erp.invalid")

    assert await source.resolve("INV-1", SCANNER) is None


@pytest.mark.asyncio
async def test_erp_lookup_returns_none_on_timeout(mocker):
    mocker.patch.object(httpx.AsyncClient, "get", new=mocker.AsyncMock(side_effect=httpx.ReadTimeout("slow")))
    source = ErpDocumentSource(base_url="http://erp.invalid")

    assert await source.resolve("INV-1", SCANNER) is None


@pytest.mark.asyncio
async def test_erp_lookup_parses_record(mocker):
    record = make_source_doc("INV-1", route="R9", lot="L3").model_dump(by_alias=True, mode="json")
    get = mocker.patch.object(httpx.AsyncClient, "get", new=mocker.AsyncMock(return_value=_response(200, record)))
    source = ErpDocumentSource(base_url="http://erp.invalid/")

    found = await source.resolve("INV-1", SCANNER)

    assert found.route_id == "R9"
    assert found.lot_nbr == "L3"
    assert get.await_args.args[0] == "http://erp.invalid/document/INV-1"


@pytest.mark.asyncio
async def test_erp_status_sync_raises_on_error(mocker):
    mocker.patch.object(
        httpx.AsyncClient, "post",
        new=mocker.AsyncMock(return_value=httpx.Response(503, request=httpx.Request("POST", "http://erp.invalid/document/status"))),
    )
    sync = ErpStatusSync(base_url="http://erp.invalid")

    with pytest.raises(httpx.HTTPStatusError):
        await sync.notify("INV-1", DocStatus.DELIVERED, SCANNER.id)


@pytest.mark.asyncio
async def test_sms_sender_skipped_without_api_key(mocker):
    get = mocker.patch.object(httpx.AsyncClient, "get", new=mocker.AsyncMock())
    sender = TwoFactorSmsSender(api_key="")

    await sender.send_tracking_link("9811111111", "INV-1", "SU5WLTE=")

    get.assert_not_awaited()


def test_sms_url_template():
    sender = TwoFactorSmsSender(api_key="KEY", template="TRACKING")

    url = sender.build_url("9811111111")

    assert "KEY" in url
    assert "9811111111" in url
    assert "TRACKING" in url


# TEST 4: ERP call log
async def logged_calls(db):
    return (await db.execute(select(ApiOutboundLog).order_by(ApiOutboundLog.id))).scalars().all()


@pytest.mark.asyncio
async def test_erp_lookup_is_logged(mocker, session_factory, db_session):
    record = make_source_doc("INV-1").model_dump(by_alias=True, mode="json")
    mocker.patch.object(httpx.AsyncClient, "get", new=mocker.AsyncMock(return_value=_response(200, record)))
    source = ErpDocumentSource(base_url="http://erp.invalid", call_log=ErpCallLog(session_factory))

    await source.resolve("INV-1", SCANNER)

    calls = await logged_calls(db_session)
    assert len(calls) == 1
    assert calls[0].method == "GET"
    assert calls[0].endpoint == "http://erp.invalid/document/INV-1"
    assert calls[0].http_status == 200
    assert calls[0].success is True
    assert calls[0].response_body["docId"] == "INV-1"
    assert calls[0].response_time_ms >= 0
    assert calls[0].error_message is None


@pytest.mark.asyncio
async def test_erp_lookup_timeout_is_logged(mocker, session_factory, db_session):
    mocker.patch.object(httpx.AsyncClient, "get", new=mocker.AsyncMock(side_effect=httpx.ReadTimeout("slow")))
    source = ErpDocumentSource(base_url="http://erp.invalid", call_log=ErpCallLog(session_factory))

    assert await source.resolve("INV-1", SCANNER) is None

    calls = await logged_calls(db_session)
    assert len(calls) == 1
    assert calls[0].success is False
    assert calls[0].http_status is None
    assert calls[0].error_message == "slow"


@pytest.mark.asyncio
async def test_erp_status_sync_error_is_logged(mocker, session_factory, db_session):
    mocker.patch.object(
        httpx.AsyncClient, "post",
        new=mocker.AsyncMock(return_value=httpx.Response(503, request=httpx.Request("POST", "http://erp.invalid/document/status"))),
    )
    sync = ErpStatusSync(base_url="http://erp.invalid", call_log=ErpCallLog(session_factory))

    with pytest.raises(httpx.HTTPStatusError):
        await sync.notify("INV-1", DocStatus.DELIVERED, SCANNER.id)

    calls = await logged_calls(db_session)
    assert len(calls) == 1
    assert calls[0].method == "POST"
    assert calls[0].http_status == 503
    assert calls[0].request_body == {"docId": "INV-1", "status": "DELIVERED", "userId": SCANNER.id}
    assert calls[0].error_message.startswith("HTTP 503")
    assert calls[0].success is False


@pytest.mark.asyncio
async def test_call_log_failure_does_not_break_lookup(mocker, caplog):
    record = make_source_doc("INV-1").model_dump(by_alias=True, mode="json")
    mocker.patch.object(httpx.AsyncClient, "get", new=mocker.AsyncMock(return_value=_response(200, record)))

    def broken_session_factory():
        raise SQLAlchemyError("database unavailable")

    source = ErpDocumentSource(base_url="http://erp.invalid", call_log=ErpCallLog(broken_session_factory))

    found = await source.resolve("INV-1", SCANNER)

    assert found.doc_id == "INV-1"
    assert "Failed to log ERP call" in caplog.text


# TEST 5: Background notifications
@pytest.mark.asyncio
async def test_background_failure_is_logged_not_raised(caplog):
    async def explode():
        raise RuntimeError("gateway timeout")

    fire_and_forget(explode(), "test notification")
    await drain()

    assert "Background task failed: test notification" in caplog.text


@pytest.mark.asyncio
async def test_status_sync_failure_does_not_undo_delivery(services, mock_source, users, db_session, mocker, caplog):
    """The local transaction stands even when the ERP rejects the status update."""
    mock_source.add_docs([make_source_doc("INV-1")])
    await services.docs.scan_and_add(db_session, "INV-1", users["scanner"])
    services.docs.status_sync.notify = mocker.AsyncMock(side_effect=httpx.ConnectError("erp down"))

    result = await services.docs.mark_delivery(
        db_session, "INV-1", MarkDeliveryRequest(signature=base64.b64encode(b"sig").decode()), users["driver"]
    )
    await drain()

    assert result.success is True
    doc = await db_session.get(Doc, "INV-1")
    assert doc.status == DocStatus.DELIVERED
    assert "Background task failed" in caplog.text
