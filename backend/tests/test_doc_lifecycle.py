"""
Document lifecycle tests.

Scan-in, route cooldown, re-scan rules, undo, delivery recording,
dispatch queue and mock data.
"""

import base64
from datetime import timedelta

import pytest
from sqlalchemy import select

from backend.app.core.background import drain
from backend.app.core.clock import utcnow
from backend.app.core.exceptions import BadRequestError, ResourceNotFoundError
from backend.app.models.customer import Customer
from backend.app.models.doc import Doc
from backend.app.models.enums import DocStatus, SettingName
from backend.app.models.signature import Signature
from backend.app.schemas.doc import MarkDeliveryRequest, MarkDeliveryFailedRequest, MockDataRequest
from backend.tests.factories import make_source_doc, assert_trip_invariant

SIGNATURE = base64.b64encode(b"\x89PNG fake signature").decode("ascii")


@pytest.fixture
def source_docs(mock_source):
    mock_source.add_docs([
        make_source_doc("INV-1001", route="R1", customer_id="C1"),
        make_source_doc("INV-1002", route="R1", customer_id="C2", lot="L1"),
        make_source_doc("INV-2001", route="R2", customer_id="C3"),
    ])
    return mock_source


# TEST 1: Scanning new documents
@pytest.mark.asyncio
async def test_scan_new_document(services, source_docs, users, db_session):
    """A document found in the source joins the dispatch queue with its customer."""
    result = await services.docs.scan_and_add(db_session, "INV-1001", users["scanner"])

    assert result.success is True
    assert result.status_code == 200
    assert result.message == "Scanned and added to Dispatch Queue"

    doc = await db_session.get(Doc, "INV-1001")
    assert doc.status == DocStatus.READY_FOR_DISPATCH
    assert doc.last_scanned_by == users["scanner"].id
    assert doc.route == "R1"
    assert doc.trip_id is None

    customer = await db_session.get(Customer, "C1")
    assert customer.firm_name == "Customer C1"
    assert customer.geo_latitude is None


@pytest.mark.asyncio
async def test_scan_strips_whitespace(services, source_docs, users, db_session):
    result = await services.docs.scan_and_add(db_session, "  INV-1001 ", users["scanner"])

    assert result.success is True
    assert result.doc_id == "INV-1001"


@pytest.mark.asyncio
async def test_scan_unknown_document(services, source_docs, users, db_session):
    result = await services.docs.scan_and_add(db_session, "NOPE-1", users["scanner"])

    assert result.success is False
    assert result.status_code == 400
    assert result.message == "Doc ID not found in ERP"
    assert await db_session.get(Doc, "NOPE-1") is None


@pytest.mark.asyncio
async def test_rescan_of_queued_document_is_idempotent(services, source_docs, users, db_session):
    """Scanning the same document twice keeps one row and reports a conflict."""
    await services.docs.scan_and_add(db_session, "INV-1001", users["scanner"])
    result = await services.docs.scan_and_add(db_session, "INV-1001", users["scanner2"])

    assert result.success is True
    assert result.status_code == 409
    assert "re-scanned" in result.message

    rows = (await db_session.execute(select(Doc).where(Doc.id == "INV-1001"))).scalars().all()
    assert len(rows) == 1
    assert rows[0].status == DocStatus.READY_FOR_DISPATCH
    assert rows[0].last_scanned_by == users["scanner2"].id


@pytest.mark.asyncio
@pytest.mark.parametrize("status,expected_code", [
    (DocStatus.DELIVERED, 400),
    (DocStatus.TRIP_SCHEDULED, 409),
    (DocStatus.ON_TRIP, 409),
])
async def test_rescan_rejected_for_locked_statuses(services, source_docs, users, db_session, status, expected_code):
    await services.docs.scan_and_add(db_session, "INV-1001", users["scanner"])
    doc = await db_session.get(Doc, "INV-1001")
    doc.status = status
    await db_session.commit()

    result = await services.docs.scan_and_add(db_session, "INV-1001", users["scanner"])

    assert result.success is False
    assert result.status_code == expected_code
    assert doc.status == status


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [DocStatus.UNDELIVERED, DocStatus.AT_TRANSIT_HUB])
async def test_rescan_returns_document_to_queue(services, source_docs, users, db_session, status):
    """Undelivered and transit-hub documents go back to the dispatch queue."""
    await services.docs.scan_and_add(db_session, "INV-1001", users["scanner"])
    doc = await db_session.get(Doc, "INV-1001")
    doc.status = status
    await db_session.commit()

    result = await services.docs.scan_and_add(db_session, "INV-1001", users["scanner2"])

    assert result.success is True
    assert result.status_code == 200
    assert doc.status == DocStatus.READY_FOR_DISPATCH
    assert doc.last_scanned_by == users["scanner2"].id
    await assert_trip_invariant(db_session)


# TEST 2: Route cooldown
@pytest.mark.asyncio
async def test_route_cooldown_blocks_other_route(services, source_docs, users, db_session):
    """A scanner switching routes inside the cooldown window is rejected."""
    await services.docs.scan_and_add(db_session, "INV-1001", users["scanner"])

    result = await services.docs.scan_and_add(db_session, "INV-2001", users["scanner"])

    assert result.success is False
    assert result.status_code == 400
    assert "Previous scan route: R1" in result.message
    assert "Current scan route: R2" in result.message
    assert "cooling off period" in result.message
    assert await db_session.get(Doc, "INV-2001") is None


@pytest.mark.asyncio
async def test_route_cooldown_allows_same_route_and_other_users(services, source_docs, users, db_session):
    await services.docs.scan_and_add(db_session, "INV-1001", users["scanner"])

    same_route = await services.docs.scan_and_add(db_session, "INV-1002", users["scanner"])
    other_user = await services.docs.scan_and_add(db_session, "INV-2001", users["scanner2"])

    assert same_route.success is True
    assert other_user.success is True


@pytest.mark.asyncio
async def test_route_cooldown_expires(services, source_docs, users, db_session, settings_cache):
    await services.docs.scan_and_add(db_session, "INV-1001", users["scanner"])
    doc = await db_session.get(Doc, "INV-1001")
    doc.last_updated_at = utcnow() - timedelta(seconds=settings_cache.get_cool_off_seconds() + 5)
    await db_session.commit()

    result = await services.docs.scan_and_add(db_session, "INV-2001", users["scanner"])

    assert result.success is True


# TEST 3: Undo
@pytest.mark.asyncio
async def test_undo_all_scans_only_touches_own_queue(services, source_docs, users, db_session):
    await services.docs.scan_and_add(db_session, "INV-1001", users["scanner"])
    await services.docs.scan_and_add(db_session, "INV-1002", users["scanner"])
    await services.docs.scan_and_add(db_session, "INV-2001", users["scanner2"])

    result = await services.docs.undo_all_scans(db_session, users["scanner"])

    assert result.success is True
    assert result.deleted_docs == 2
    remaining = (await db_session.execute(select(Doc.id))).scalars().all()
    assert remaining == ["INV-2001"]


@pytest.mark.asyncio
async def test_undo_with_nothing_scanned(services, users, db_session):
    result = await services.docs.undo_all_scans(db_session, users["scanner"])

    assert result.success is True
    assert result.deleted_docs == 0
    assert result.message == "No documents found to undo"


# TEST 4: Delivery recording
@pytest.mark.asyncio
async def test_mark_delivery_requires_signature(services, source_docs, users, db_session):
    await services.docs.scan_and_add(db_session, "INV-1001", users["scanner"])

    with pytest.raises(BadRequestError) as exc_info:
        await services.docs.mark_delivery(db_session, "INV-1001", MarkDeliveryRequest(), users["driver"])

    assert exc_info.value.message == "Signature is required for successful delivery"
    doc = await db_session.get(Doc, "INV-1001")
    assert doc.status == DocStatus.READY_FOR_DISPATCH


@pytest.mark.asyncio
async def test_mark_delivery_rejects_invalid_signature(services, source_docs, users, db_session):
    await services.docs.scan_and_add(db_session, "INV-1001", users["scanner"])

    with pytest.raises(BadRequestError):
        await services.docs.mark_delivery(
            db_session, "INV-1001", MarkDeliveryRequest(signature="not base64!"), users["driver"]
        )


@pytest.mark.asyncio
async def test_mark_delivery_unknown_document(services, users, db_session):
    with pytest.raises(ResourceNotFoundError):
        await services.docs.mark_delivery(
            db_session, "INV-9999", MarkDeliveryRequest(signature=SIGNATURE), users["driver"]
        )


@pytest.mark.asyncio
async def test_mark_delivery_success(services, source_docs, users, db_session, status_sync):
    """Delivery stores the signature, learns the customer location and notifies the ERP."""
    await services.docs.scan_and_add(db_session, "INV-1001", users["scanner"])

    result = await services.docs.mark_delivery(
        db_session,
        "INV-1001",
        MarkDeliveryRequest(signature=SIGNATURE, comment="Left at counter", latitude=9.9312, longitude=76.2673),
        users["driver"],
    )

    assert result.success is True
    assert result.status == DocStatus.DELIVERED

    doc = await db_session.get(Doc, "INV-1001")
    assert doc.status == DocStatus.DELIVERED
    assert doc.trip_id is None
    assert doc.comment == "Left at counter"

    signature = await db_session.get(Signature, "INV-1001")
    assert signature.signature == b"\x89PNG fake signature"

    customer = await db_session.get(Customer, "C1")
    assert float(customer.geo_latitude) == pytest.approx(9.9312)
    assert float(customer.geo_longitude) == pytest.approx(76.2673)

    await drain()
    assert status_sync.calls == [("INV-1001", DocStatus.DELIVERED, users["driver"].id)]


@pytest.mark.asyncio
async def test_mark_delivery_without_coordinates_keeps_customer_location(services, source_docs, users, db_session):
    await services.docs.scan_and_add(db_session, "INV-1001", users["scanner"])
    customer = await db_session.get(Customer, "C1")
    customer.geo_latitude, customer.geo_longitude = "10.0", "76.0"
    await db_session.commit()

    await services.docs.mark_delivery(
        db_session, "INV-1001", MarkDeliveryRequest(signature=SIGNATURE, latitude=9.5), users["driver"]
    )

    assert customer.geo_latitude == "10.0"
    assert customer.geo_longitude == "76.0"


@pytest.mark.asyncio
async def test_mark_delivery_failed(services, source_docs, users, db_session, status_sync):
    await services.docs.scan_and_add(db_session, "INV-1001", users["scanner"])

    result = await services.docs.mark_delivery_failed(
        db_session, "INV-1001", MarkDeliveryFailedRequest(comment="Shop closed"), users["driver"]
    )

    assert result.status == DocStatus.UNDELIVERED
    doc = await db_session.get(Doc, "INV-1001")
    assert doc.status == DocStatus.UNDELIVERED
    assert doc.comment == "Shop closed"

    await drain()
    assert status_sync.calls == [("INV-1001", DocStatus.UNDELIVERED, users["driver"].id)]


@pytest.mark.asyncio
async def test_delivered_document_cannot_be_marked_failed(services, source_docs, users, db_session):
    await services.docs.scan_and_add(db_session, "INV-1001", users["scanner"])
    await services.docs.mark_delivery(db_session, "INV-1001", MarkDeliveryRequest(signature=SIGNATURE), users["driver"])

    with pytest.raises(BadRequestError):
        await services.docs.mark_delivery_failed(
            db_session, "INV-1001", MarkDeliveryFailedRequest(comment="Oops"), users["driver"]
        )

    doc = await db_session.get(Doc, "INV-1001")
    assert doc.status == DocStatus.DELIVERED


@pytest.mark.asyncio
async def test_status_sync_skipped_when_disabled(services, source_docs, users, db_session, status_sync, settings_cache):
    settings_cache.update_in_cache(SettingName.UPDATE_DOC_STATUS_TO_ERP.value, "false")
    await services.docs.scan_and_add(db_session, "INV-1001", users["scanner"])

    await services.docs.mark_delivery(db_session, "INV-1001", MarkDeliveryRequest(signature=SIGNATURE), users["driver"])
    await drain()

    assert status_sync.calls == []


# TEST 5: Read views
@pytest.mark.asyncio
async def test_dispatch_queue_groups_by_route_and_user(services, source_docs, users, db_session):
    await services.docs.scan_and_add(db_session, "INV-1001", users["scanner"])
    await services.docs.scan_and_add(db_session, "INV-1002", users["scanner"])
    await services.docs.scan_and_add(db_session, "INV-2001", users["scanner2"])

    queue = await services.docs.get_dispatch_queue_for_user(db_session, users["creator"])

    assert queue.total_docs == 3
    assert [route.route for route in queue.routes] == ["R1", "R2"]
    r1 = queue.routes[0]
    assert r1.doc_count == 2
    assert [(u.user_id, u.person_name, u.doc_count) for u in r1.users] == [
        (users["scanner"].id, "Scanner One", 2)
    ]


@pytest.mark.asyncio
async def test_dispatch_queue_is_scoped_to_base_location(services, source_docs, users, db_session):
    await services.docs.scan_and_add(db_session, "INV-1001", users["scanner"])

    queue = await services.docs.get_dispatch_queue_for_user(db_session, users["creator_remote"])

    assert queue.total_docs == 0
    assert queue.routes == []


@pytest.mark.asyncio
async def test_doc_trip_info_by_fragment(services, source_docs, users, db_session):
    await services.docs.scan_and_add(db_session, "INV-1001", users["scanner"])
    await services.docs.scan_and_add(db_session, "INV-1002", users["scanner"])

    info = await services.docs.get_doc_trip_info(db_session, "1001")
    assert info.doc_id == "INV-1001"
    assert info.doc_status == DocStatus.READY_FOR_DISPATCH
    assert info.trip_id is None

    with pytest.raises(BadRequestError):
        await services.docs.get_doc_trip_info(db_session, "INV-100")
    with pytest.raises(BadRequestError):
        await services.docs.get_doc_trip_info(db_session, "XYZ")


# TEST 6: Mock data
@pytest.mark.asyncio
async def test_mock_data_can_be_scanned_and_purged(services, users, db_session, mock_source):
    created = await services.docs.create_mock_data(
        MockDataRequest(count=3, real_phone_number="9811111111", real_route="R1")
    )

    assert created.count == 3
    assert len(mock_source) == 3

    first = created.doc_ids[0]
    scan = await services.docs.scan_and_add(db_session, first, users["scanner"])
    assert scan.success is True
    doc = await db_session.get(Doc, first)
    assert doc.route == "R1"
    customer = await db_session.get(Customer, doc.customer_id)
    assert customer.phone == "9811111111"

    purged = await services.docs.purge_mock_data(db_session)

    assert purged.deleted_docs == 1
    assert purged.deleted_customers == 1
    assert len(mock_source) == 0
    assert (await db_session.execute(select(Doc.id))).scalars().all() == []
