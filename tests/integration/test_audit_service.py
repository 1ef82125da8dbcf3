"""Integration tests for the audit trail."""

from datetime import date

import pytest
from sqlalchemy import select

from src.models.audit_log import AuditAction, AuditEntity, AuditLog
from src.services.audit_service import AuditService
from src.services.settlement_service import SettlementService

OWNER_ID = 1


class TestLog:
    """Test writing audit entries."""

    def test_stores_plain_values(self, db_session):
        AuditService.log(
            db_session,
            entity_type=AuditEntity.UTILITY_RATE,
            entity_id=3,
            action=AuditAction.CREATE,
            actor_id=OWNER_ID,
            changes={"price_per_unit": "0.85"},
        )
        db_session.commit()

        audit = db_session.execute(select(AuditLog)).scalar_one()
        assert audit.entity_type == "utility_rate"
        assert audit.action == "create"
        assert audit.changes == {"price_per_unit": "0.85"}

    def test_accepts_enum_values_as_strings(self, db_session):
        audit = AuditService.log(db_session, "meter", 1, "exchange")

        assert audit.entity_type == AuditEntity.METER.value
        assert audit.action == AuditAction.EXCHANGE.value

    def test_unknown_entity_rejected(self, db_session):
        with pytest.raises(ValueError):
            AuditService.log(db_session, "invoice", 1, AuditAction.CREATE)

    def test_unknown_action_rejected(self, db_session):
        with pytest.raises(ValueError):
            AuditService.log(db_session, AuditEntity.SETTLEMENT, 1, "archive")

    def test_not_committed_with_rolled_back_change(self, db_session):
        AuditService.log(db_session, AuditEntity.SETTLEMENT, 1, AuditAction.DELETE)
        db_session.rollback()

        assert AuditService.history(db_session, AuditEntity.SETTLEMENT, 1) == []


class TestHistory:
    """Test reading a record's audit trail."""

    def test_settlement_lifecycle(self, db_session, january_property):
        """Test every lifecycle step of a settlement leaves one entry, in order."""
        prop = january_property["property"]
        service = SettlementService(db_session)

        settlement = service.create_settlement(OWNER_ID, prop.id, date(2024, 1, 1), date(2024, 1, 31))
        service.calculate_settlement(settlement.id, OWNER_ID)
        service.finalize_settlement(settlement.id, OWNER_ID)
        service.void_settlement(settlement.id, OWNER_ID, "Wrong tariff")

        history = AuditService.history(db_session, AuditEntity.SETTLEMENT, settlement.id)

        assert [entry.action for entry in history] == ["create", "calculate", "finalize", "void"]
        assert all(entry.actor_id == OWNER_ID for entry in history)

    def test_scoped_to_entity(self, db_session):
        AuditService.log(db_session, AuditEntity.SETTLEMENT, 1, AuditAction.CREATE)
        AuditService.log(db_session, AuditEntity.SETTLEMENT_SHARE, 1, AuditAction.ADJUST)
        AuditService.log(db_session, AuditEntity.SETTLEMENT, 2, AuditAction.CREATE)
        db_session.commit()

        history = AuditService.history(db_session, AuditEntity.SETTLEMENT, 1)

        assert [(entry.entity_type, entry.entity_id) for entry in history] == [("settlement", 1)]
