"""
Location heartbeat tests.
"""

from datetime import timedelta

import pytest

from backend.app.core.clock import utcnow
from backend.app.core.exceptions import BadRequestError, ResourceNotFoundError
from backend.app.models.location_heartbeat import LocationHeartbeat
from backend.app.schemas.location import LocationRegisterRequest
from backend.app.services.location_service import LocationService, parse_start_epoch
from backend.tests.factories import auth_headers


@pytest.mark.asyncio
async def test_register_and_list_locations(users, db_session):
    first = await LocationService.register_location(
        db_session, LocationRegisterRequest(latitude=9.93, longitude=76.26), users["driver"]
    )
    await LocationService.register_location(
        db_session, LocationRegisterRequest(latitude=9.94, longitude=76.27), users["driver"]
    )

    assert first.success is True
    assert first.location_id

    history = await LocationService.get_user_locations(db_session, users["driver"].id)

    assert history.person_name == "Driver Local"
    assert len(history.locations) == 2
    assert history.locations[0].geo_latitude == "9.94"


@pytest.mark.asyncio
async def test_locations_before_start_are_excluded(users, db_session):
    db_session.add(LocationHeartbeat(
        app_user_id=users["driver"].id,
        geo_latitude="9.0",
        geo_longitude="76.0",
        received_at=utcnow() - timedelta(days=5),
    ))
    await db_session.commit()

    default_window = await LocationService.get_user_locations(db_session, users["driver"].id)
    assert default_window.locations == []

    since = int((utcnow() - timedelta(days=6)).timestamp() * 1000)
    explicit = await LocationService.get_user_locations(db_session, users["driver"].id, str(since))
    assert len(explicit.locations) == 1


@pytest.mark.asyncio
async def test_locations_for_unknown_user(users, db_session):
    with pytest.raises(ResourceNotFoundError):
        await LocationService.get_user_locations(db_session, "1234567890")


@pytest.mark.parametrize("value", ["yesterday", "0", "946684799999", "4102444800000"])
def test_parse_start_epoch_rejects_out_of_range(value):
    with pytest.raises(BadRequestError):
        parse_start_epoch(value)


def test_parse_start_epoch():
    assert parse_start_epoch(None) is None
    assert parse_start_epoch("1760000000000").year == 2025


@pytest.mark.asyncio
async def test_latest_for_user(users, db_session):
    now = utcnow()
    db_session.add_all([
        LocationHeartbeat(app_user_id=users["driver"].id, geo_latitude="1", geo_longitude="1", received_at=now - timedelta(minutes=30)),
        LocationHeartbeat(app_user_id=users["driver"].id, geo_latitude="2", geo_longitude="2", received_at=now - timedelta(minutes=5)),
    ])
    await db_session.commit()

    latest = await LocationService.latest_for_user(db_session, users["driver"].id)
    assert latest.geo_latitude == "2"

    assert await LocationService.latest_for_user(db_session, users["driver"].id, since=now) is None
    assert await LocationService.latest_for_user(db_session, users["driver_remote"].id) is None


@pytest.mark.asyncio
async def test_location_endpoints(client, services, users):
    created = await client.post(
        "/v1/locations", json={"latitude": 9.93, "longitude": 76.26}, headers=auth_headers(users["driver"])
    )
    assert created.status_code == 201

    invalid = await client.post(
        "/v1/locations", json={"latitude": 123, "longitude": 76.26}, headers=auth_headers(users["driver"])
    )
    assert invalid.status_code == 422

    listed = await client.get(f"/v1/locations/users/{users['driver'].id}", headers=auth_headers(users["creator"]))
    assert listed.status_code == 200
    assert len(listed.json()["locations"]) == 1

    bad_start = await client.get(
        f"/v1/locations/users/{users['driver'].id}", params={"start": "abc"}, headers=auth_headers(users["creator"])
    )
    assert bad_start.status_code == 400

    forbidden = await client.get(f"/v1/locations/users/{users['driver'].id}", headers=auth_headers(users["driver"]))
    assert forbidden.status_code == 403
