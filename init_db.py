import datetime
from decimal import Decimal

from sqlalchemy import select

from salon_booking.extensions import db
from salon_booking.models import Base, Coupon, SchedulingLock
from salon_booking.services.scheduling.repository import BOOKING_LOCK
from salon_booking.services.scheduling.settings import SalonSettings

DEFAULT_COUPONS = [
    ("WELCOME10", "percentage", "10", "0", "2026-12-31", "Welcome coupon - 10% off for new customers"),
    ("SAVE20", "percentage", "20", "500000", "2026-12-31", "20% off orders from 500,000"),
    ("FIXED50K", "fixed", "50000", "200000", "2026-12-31", "50,000 off orders from 200,000"),
    ("NEWYEAR2026", "percentage", "15", "300000", "2026-02-28", "New Year 2026 - 15% off orders from 300,000"),
    ("FREESHIP", "fixed", "30000", "0", "2026-12-31", "30,000 off any order"),
    ("VIP30", "percentage", "30", "1000000", "2026-12-31", "VIP - 30% off orders from 1,000,000"),
]


def seed_coupons(session):
    added = 0
    for code, type_, value, min_amount, expiry, description in DEFAULT_COUPONS:
        if session.scalar(select(Coupon).where(Coupon.code == code)) is not None:
            continue
        session.add(
            Coupon(
                code=code,
                type=type_,
                value=Decimal(value),
                min_amount=Decimal(min_amount),
                expiry_date=datetime.date.fromisoformat(expiry),
                description=description,
            )
        )
        added += 1
    return added


def init_db(app):
    """Create tables and seed settings, coupons and the booking lock row."""
    with app.app_context():
        Base.metadata.create_all(bind=db.engine)

        settings_added = SalonSettings(db.session).seed_defaults()
        coupons_added = seed_coupons(db.session)
        if db.session.get(SchedulingLock, BOOKING_LOCK) is None:
            db.session.add(SchedulingLock(name=BOOKING_LOCK))
        db.session.commit()

        print(f"Tables ready; seeded {settings_added} setting(s) and {coupons_added} coupon(s)")


if __name__ == "__main__":
    from main import app

    init_db(app)
