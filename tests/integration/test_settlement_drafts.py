"""Integration tests for the editable part of the settlement lifecycle."""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import select

from src.models.settlement import (
    BillingApproach,
    SettlementItem,
    SettlementShare,
    SettlementStatus,
    UtilitySettlement,
)
from src.services.errors import InvalidStateError, NotFoundError, ValidationError
from src.services.settlement_service import SettlementService

OWNER_ID = 1
OTHER_OWNER_ID = 2

JAN_START = date(2024, 1, 1)
JAN_END = date(2024, 1, 31)


@pytest.fixture
def service(db_session):
    return SettlementService(db_session)


@pytest.fixture
def draft(service, january_property):
    """January 2024 DRAFT settlement for the two-tenant property."""
    return service.create_settlement(OWNER_ID, january_property["property"].id, JAN_START, JAN_END)


class TestCreateSettlement:
    """Test creating settlement headers."""

    def test_create_draft(self, draft):
        assert draft.id is not None
        assert draft.status == SettlementStatus.DRAFT
        assert draft.approach == BillingApproach.COST_ONLY
        assert draft.total_amount == Decimal("0.00")
        assert draft.items == []
        assert draft.shares == []

    def test_inverted_period_rejected(self, service, january_property):
        with pytest.raises(ValidationError):
            service.create_settlement(OWNER_ID, january_property["property"].id, JAN_END, JAN_START)

    def test_foreign_property_rejected(self, service, january_property):
        with pytest.raises(NotFoundError):
            service.create_settlement(OTHER_OWNER_ID, january_property["property"].id, JAN_START, JAN_END)


class TestCalculateSettlement:
    """Test storing a calculation on a settlement."""

    def test_calculation_stored(self, service, draft):
        """Test items, shares and total are persisted and status moves to CALCULATED."""
        settlement, warnings = service.calculate_settlement(draft.id, OWNER_ID)

        assert warnings == []
        assert settlement.status == SettlementStatus.CALCULATED
        assert settlement.total_amount == Decimal("310.00")

        electricity, internet = settlement.items
        assert electricity.snapshot_rate == Decimal("1.00")
        assert electricity.consumption == Decimal("250.00")
        assert internet.period_cost == Decimal("60.00")

        assert [s.calculated_amount for s in settlement.shares] == [Decimal("150.00"), Decimal("160.00")]
        assert [s.final_amount for s in settlement.shares] == [Decimal("150.00"), Decimal("160.00")]
        assert [s.balance_due for s in settlement.shares] == [Decimal("150.00"), Decimal("160.00")]
        assert [s.advances_paid for s in settlement.shares] == [Decimal("0.00"), Decimal("0.00")]
        assert settlement.shares[0].share_ratio == Decimal("0.4839")

    def test_recalculation_replaces_rows(self, db_session, service, draft):
        """Test a second calculation replaces items and shares instead of adding to them."""
        settlement, _ = service.calculate_settlement(draft.id, OWNER_ID)
        service.adjust_share(draft.id, settlement.shares[0].id, OWNER_ID, adjusted_amount=Decimal("1.00"))

        settlement, _ = service.calculate_settlement(draft.id, OWNER_ID)

        assert len(db_session.execute(select(SettlementItem)).scalars().all()) == 2
        assert len(db_session.execute(select(SettlementShare)).scalars().all()) == 2
        assert settlement.shares[0].adjusted_amount is None
        assert settlement.shares[0].final_amount == Decimal("150.00")

    def test_warnings_returned(self, service, make_property, make_meter, add_reading):
        prop = make_property()
        meter = make_meter(prop.id, meter_number="E-9")
        add_reading(meter.id, 1, JAN_END)
        draft = service.create_settlement(OWNER_ID, prop.id, JAN_START, JAN_END)

        settlement, warnings = service.calculate_settlement(draft.id, OWNER_ID)

        assert settlement.status == SettlementStatus.CALCULATED
        assert warnings == ["No active tenants in period", "Not enough readings for Electricity (E-9)"]

    def test_finalized_settlement_cannot_be_recalculated(self, service, draft):
        service.calculate_settlement(draft.id, OWNER_ID)
        service.finalize_settlement(draft.id, OWNER_ID)

        with pytest.raises(InvalidStateError):
            service.calculate_settlement(draft.id, OWNER_ID)


class TestAdjustShare:
    """Test owner overrides of tenant amounts."""

    @pytest.fixture
    def calculated(self, service, draft):
        settlement, _ = service.calculate_settlement(draft.id, OWNER_ID)
        return settlement

    def test_adjust_and_reset(self, service, calculated):
        share_id = calculated.shares[0].id

        share = service.adjust_share(
            calculated.id, share_id, OWNER_ID, adjusted_amount=Decimal("140"), owner_notes="Away 3 days"
        )
        assert share.adjusted_amount == Decimal("140.00")
        assert share.final_amount == Decimal("140.00")
        assert share.balance_due == Decimal("140.00")
        assert share.owner_notes == "Away 3 days"

        share = service.adjust_share(calculated.id, share_id, OWNER_ID, adjusted_amount=None)
        assert share.adjusted_amount is None
        assert share.final_amount == Decimal("150.00")
        assert share.owner_notes == "Away 3 days"

    def test_adjust_does_not_change_total(self, db_session, service, calculated):
        service.adjust_share(calculated.id, calculated.shares[0].id, OWNER_ID, adjusted_amount=Decimal("0"))

        assert db_session.get(UtilitySettlement, calculated.id).total_amount == Decimal("310.00")

    def test_negative_adjustment_rejected(self, service, calculated):
        with pytest.raises(ValidationError):
            service.adjust_share(calculated.id, calculated.shares[0].id, OWNER_ID, adjusted_amount=Decimal("-1"))

    def test_unknown_share_rejected(self, service, calculated):
        with pytest.raises(NotFoundError):
            service.adjust_share(calculated.id, 9999, OWNER_ID, adjusted_amount=Decimal("1"))

    def test_adjust_after_finalize_rejected(self, service, calculated):
        share_id = calculated.shares[0].id
        service.finalize_settlement(calculated.id, OWNER_ID)

        with pytest.raises(InvalidStateError):
            service.adjust_share(calculated.id, share_id, OWNER_ID, adjusted_amount=Decimal("1"))


class TestUpdateDeleteAndQueries:
    """Test update, delete, get and list."""

    def test_update_title_and_notes(self, service, draft):
        settlement = service.update_settlement(draft.id, OWNER_ID, title="January", notes="Checked")

        assert settlement.title == "January"
        assert settlement.notes == "Checked"

        settlement = service.update_settlement(draft.id, OWNER_ID, notes="Rechecked")
        assert settlement.title == "January"

    def test_delete_calculated_settlement(self, db_session, service, draft):
        service.calculate_settlement(draft.id, OWNER_ID)

        service.delete_settlement(draft.id, OWNER_ID)

        assert db_session.get(UtilitySettlement, draft.id) is None
        assert db_session.execute(select(SettlementShare)).scalars().all() == []
        assert db_session.execute(select(SettlementItem)).scalars().all() == []

    def test_delete_finalized_rejected(self, service, draft):
        service.calculate_settlement(draft.id, OWNER_ID)
        service.finalize_settlement(draft.id, OWNER_ID)

        with pytest.raises(InvalidStateError):
            service.delete_settlement(draft.id, OWNER_ID)

    def test_get_foreign_settlement(self, service, draft):
        with pytest.raises(NotFoundError):
            service.get_settlement(draft.id, OTHER_OWNER_ID)

    def test_list_settlements_filters(self, service, draft, january_property, make_property):
        february = service.create_settlement(
            OWNER_ID, january_property["property"].id, date(2024, 2, 1), date(2024, 2, 29)
        )
        service.calculate_settlement(february.id, OWNER_ID)
        foreign_prop = make_property(name="Other", owner_id=OTHER_OWNER_ID)
        service.create_settlement(OTHER_OWNER_ID, foreign_prop.id, JAN_START, JAN_END)

        assert [s.id for s in service.list_settlements(OWNER_ID)] == [february.id, draft.id]
        assert [s.id for s in service.list_settlements(OWNER_ID, status=SettlementStatus.DRAFT)] == [draft.id]
        assert service.list_settlements(OWNER_ID, property_id=foreign_prop.id) == []
