#!/usr/bin/env python3
"""
Seed script to create a demo restaurant, floor plan and reservations
"""

import asyncio
import uuid
from datetime import datetime, timedelta


async def seed_demo_data():
    """Seed demo data for development"""
    from sqlalchemy import select

    from tablebook.database import SessionLocal, engine, Base
    from tablebook.models import FloorPlan, Restaurant, ReservationSource, ReservationStatus, Table
    from tablebook.schemas.reservation import ReservationCreate
    from tablebook.services.notifications import NotificationOrchestrator
    from tablebook.services.reservations import ReservationService

    # Create tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with SessionLocal() as db:
        # Check if demo restaurant already exists
        result = await db.execute(
            select(Restaurant).where(Restaurant.name == "Chez Marcel")
        )
        existing = result.scalar_one_or_none()

        if existing:
            print("Demo data already exists. Skipping...")
            return

        print("Creating demo restaurant...")

        restaurant = Restaurant(
            id=uuid.uuid4(),
            name="Chez Marcel",
            seating_capacity=60,
            tables_count=6,
        )
        db.add(restaurant)
        await db.flush()

        print(f"Created restaurant: {restaurant.name} (ID: {restaurant.id})")

        floor_plan = FloorPlan(restaurant_id=restaurant.id, name="Main room")
        db.add(floor_plan)
        await db.flush()

        tables = [
            Table(floor_plan_id=floor_plan.id, number="T1", capacity=2, shape="square"),
            Table(floor_plan_id=floor_plan.id, number="T2", capacity=2, shape="square"),
            Table(floor_plan_id=floor_plan.id, number="T3", capacity=4, shape="round"),
            Table(floor_plan_id=floor_plan.id, number="T4", capacity=4, shape="round"),
            Table(floor_plan_id=floor_plan.id, number="T5", capacity=6, shape="rectangle"),
            Table(floor_plan_id=floor_plan.id, number="T6", capacity=8, shape="rectangle"),
        ]
        for table in tables:
            db.add(table)
        await db.commit()

        print(f"Created floor plan '{floor_plan.name}' with {len(tables)} tables")

        # No transports: confirmations are recorded as undeliverable
        service = ReservationService(db, NotificationOrchestrator(db, []))
        tomorrow = (datetime.utcnow() + timedelta(days=1)).replace(minute=0, second=0, microsecond=0)

        demo_bookings = [
            ("Alice Martin", "alice@example.com", 2, 19, tables[0]),
            ("Bruno Petit", "bruno@example.com", 4, 20, tables[2]),
            ("Claire Dubois", None, 6, 20, None),
        ]
        for name, email, party_size, hour, table in demo_bookings:
            reservation = await service.create(
                restaurant.id,
                ReservationCreate(
                    customer_name=name,
                    customer_email=email,
                    customer_phone="+33600000000",
                    party_size=party_size,
                    reservation_datetime=tomorrow.replace(hour=hour),
                    source=ReservationSource.STAFF,
                    auto_confirm=table is not None,
                ),
            )
            if table is not None:
                await service.assign_table(restaurant.id, reservation.id, floor_plan.id, table.id)
            print(f"Created reservation {reservation.reservation_number} ({reservation.status.value})")

        pending = [b for b in demo_bookings if b[4] is None]
        print("\n" + "=" * 50)
        print("Demo data created successfully!")
        print("=" * 50)
        print(f"\nRestaurant ID: {restaurant.id}")
        print(f"Floor plan ID: {floor_plan.id}")
        print(f"Pending reservations to confirm: {len(pending)} ({ReservationStatus.PENDING.value})")


if __name__ == "__main__":
    asyncio.run(seed_demo_data())
