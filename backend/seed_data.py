"""
Database seeding script.

Creates the default settings, a base location and one user per role for
development. Prints a bearer token for each user.
Run this script after the database is set up but before first use.
"""

import asyncio
import sys
import uuid
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from backend.app.db.session import AsyncSessionLocal, engine, Base
from backend.app.core.jwt import create_access_token
from backend.app.models.base_location import BaseLocation
from backend.app.models.enums import SettingName, UserRole
from backend.app.models.setting import Setting
from backend.app.models.user import AppUser, AppUserRole
# Registered so create_all builds every table
from backend.app.models import (  # noqa: F401
    api_outbound_log, audit_log, customer, doc, doc_tracking_access, location_heartbeat, signature, trip
)
from sqlalchemy import select
from datetime import timedelta

DEFAULT_SETTINGS = {
    SettingName.MINS_BETWEEN_LOCATION_HEARTBEATS: "5",
    SettingName.COOL_OFF_SECONDS_BTWN_DIFF_ROUTE_SCANS: "120",
    SettingName.UPDATE_DOC_STATUS_TO_ERP: "false",
    SettingName.SEND_TRACKING_SMS: "false",
}

SEED_USERS = [
    ("9000000100", "Admin", [UserRole.APP_ADMIN]),
    ("9000000101", "Warehouse Scanner", [UserRole.APP_SCANNER]),
    ("9000000102", "Trip Creator", [UserRole.APP_TRIP_CREATOR, UserRole.APP_SCANNER]),
    ("9000000103", "Driver One", [UserRole.APP_TRIP_DRIVER]),
]


async def seed():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as db:
        print("🌱 Starting seeding...")

        for name, value in DEFAULT_SETTINGS.items():
            result = await db.execute(select(Setting).where(Setting.setting_name == name.value))
            if result.scalar_one_or_none() is None:
                db.add(Setting(id=str(uuid.uuid4()), setting_name=name.value, setting_value=value))
                print(f"✅ Created setting {name.value}={value}")

        if await db.get(BaseLocation, "WH-KOCHI") is None:
            db.add(BaseLocation(id="WH-KOCHI", name="Kochi Warehouse"))
            await db.flush()
            print("✅ Created base location WH-KOCHI")

        for mobile, person_name, roles in SEED_USERS:
            if await db.get(AppUser, mobile) is not None:
                print(f"ℹ️  User {mobile} already exists, skipping")
                continue
            db.add(AppUser(id=mobile, person_name=person_name, base_location_id="WH-KOCHI", is_active=True))
            await db.flush()
            for role in roles:
                db.add(AppUserRole(app_user_id=mobile, role_name=role))
            print(f"✅ Created user {person_name} ({mobile})")

        await db.commit()

    print("\n🔑 Development tokens (valid 7 days):")
    for mobile, person_name, _ in SEED_USERS:
        token = create_access_token({"sub": mobile}, expires_delta=timedelta(days=7))
        print(f"   {person_name}: {token}")


if __name__ == "__main__":
    asyncio.run(seed())
