"""Pytest configuration: in-memory database and entity factories."""

import os

# Set test settings BEFORE any imports from src
# This ensures the SessionLocal engine and the locale constants use test values
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["LOCALE"] = "en_US"

from datetime import date  # noqa: E402
from decimal import Decimal  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from src.models import Base  # noqa: E402
from src.models.fixed_utility import FixedUtility, SplitMethod  # noqa: E402
from src.models.meter import Meter, MeterReading, MeterStatus, MeterType, ReadingType  # noqa: E402
from src.models.payment import Payment, PaymentStatus, PaymentType  # noqa: E402
from src.models.property import Property  # noqa: E402
from src.models.tenant import Tenant  # noqa: E402
from src.models.utility_rate import UtilityRate  # noqa: E402

OWNER_ID = 1
OTHER_OWNER_ID = 2


@pytest.fixture
def db_session():
    """Create test database session."""
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine)
    session = SessionLocal()
    yield session
    session.close()
    engine.dispose()


@pytest.fixture
def make_property(db_session):
    """Factory for properties owned by OWNER_ID unless told otherwise."""

    def _make(name="Flat 1", owner_id=OWNER_ID, address=None):
        prop = Property(owner_id=owner_id, name=name, address=address)
        db_session.add(prop)
        db_session.commit()
        return prop

    return _make


@pytest.fixture
def make_tenant(db_session):
    """Factory for tenants with a lease period."""

    def _make(property_id, move_in_date, move_out_date=None, first_name="Jan", last_name="Kowalski"):
        tenant = Tenant(
            property_id=property_id,
            first_name=first_name,
            last_name=last_name,
            move_in_date=move_in_date,
            move_out_date=move_out_date,
        )
        db_session.add(tenant)
        db_session.commit()
        return tenant

    return _make


@pytest.fixture
def make_meter(db_session):
    """Factory for active meters."""

    def _make(
        property_id,
        meter_type=MeterType.ELECTRICITY,
        meter_number="E-001",
        unit="kWh",
        price_per_unit=None,
        status=MeterStatus.ACTIVE,
    ):
        meter = Meter(
            property_id=property_id,
            meter_type=meter_type,
            meter_number=meter_number,
            unit=unit,
            price_per_unit=price_per_unit,
            status=status,
        )
        db_session.add(meter)
        db_session.commit()
        return meter

    return _make


@pytest.fixture
def add_reading(db_session):
    """Factory for meter readings."""

    def _add(meter_id, value, reading_date, reading_type=ReadingType.REGULAR):
        reading = MeterReading(
            meter_id=meter_id,
            value=Decimal(str(value)),
            reading_date=reading_date,
            reading_type=reading_type,
        )
        db_session.add(reading)
        db_session.commit()
        return reading

    return _add


@pytest.fixture
def add_rate(db_session):
    """Factory for utility rates."""

    def _add(property_id, price, effective_from, meter_type=MeterType.ELECTRICITY, effective_to=None):
        rate = UtilityRate(
            property_id=property_id,
            meter_type=meter_type,
            price_per_unit=Decimal(str(price)),
            effective_from=effective_from,
            effective_to=effective_to,
        )
        db_session.add(rate)
        db_session.commit()
        return rate

    return _add


@pytest.fixture
def make_fixed_utility(db_session):
    """Factory for fixed period costs."""

    def _make(property_id, name, period_cost, is_per_person=False, split_method=SplitMethod.BY_DAYS):
        utility = FixedUtility(
            property_id=property_id,
            name=name,
            period_cost=Decimal(str(period_cost)),
            is_per_person=is_per_person,
            split_method=split_method,
            is_active=True,
        )
        db_session.add(utility)
        db_session.commit()
        return utility

    return _make


@pytest.fixture
def make_payment(db_session):
    """Factory for tenant payments (PAID utility advances by default)."""

    def _make(
        tenant,
        amount,
        paid_date,
        payment_type=PaymentType.UTILITIES,
        status=PaymentStatus.PAID,
    ):
        payment = Payment(
            tenant_id=tenant.id,
            property_id=tenant.property_id,
            payment_type=payment_type,
            status=status,
            amount=Decimal(str(amount)),
            paid_date=paid_date,
        )
        db_session.add(payment)
        db_session.commit()
        return payment

    return _make


@pytest.fixture
def january_property(make_property, make_tenant, make_meter, add_reading, add_rate, make_fixed_utility):
    """Property with two consecutive January 2024 tenants, one meter and internet.

    Tenant A: 01-01..01-15, tenant B: 01-16..open. Electricity 100 -> 350 at
    1.00/unit (250.00) plus internet 60.00 gives 310.00 for the month.
    """
    prop = make_property()
    tenant_a = make_tenant(prop.id, date(2024, 1, 1), date(2024, 1, 15), first_name="Anna")
    tenant_b = make_tenant(prop.id, date(2024, 1, 16), first_name="Bartek")
    meter = make_meter(prop.id)
    add_reading(meter.id, 100, date(2023, 12, 31))
    add_reading(meter.id, 350, date(2024, 1, 31))
    add_rate(prop.id, "1.00", date(2023, 1, 1))
    make_fixed_utility(prop.id, "Internet", "60.00")
    return {"property": prop, "tenant_a": tenant_a, "tenant_b": tenant_b, "meter": meter}
