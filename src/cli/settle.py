"""CLI entry point for running utility settlements.

Usage:
    python -m src.cli.settle init-db
    python -m src.cli.settle calculate --owner-id 1 --property-id 1 \\
        --start 2024-01-01 --end 2024-01-31 [--approach advance_payment] [--dry-run]
    python -m src.cli.settle finalize --owner-id 1 --settlement-id 5
    python -m src.cli.settle void --owner-id 1 --settlement-id 5 --reason "Wrong reading"
    python -m src.cli.settle reading --owner-id 1 --meter-id 3 --value 1520.5 [--date 2024-02-01]

Exit Codes:
    0 - Success
    1 - Failure: settlement error or unexpected exception; database state unchanged

Logging:
    LOG_LEVEL level logs to both stdout and LOG_FILE (default: logs/settlement.log)
"""

import argparse
import logging
import sys
from datetime import date

from src.models.settlement import BillingApproach
from src.schemas.meter import MeterReadingPayload
from src.schemas.settlement import CalculateSettlementRequest
from src.services.errors import SettlementError
from src.services.locale_service import format_amount, format_period_label
from src.services.logging import SETTLEMENT_LOGGER, setup_logging

logger = logging.getLogger(SETTLEMENT_LOGGER)


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with one sub-command per operation."""
    parser = argparse.ArgumentParser(description="Utility settlement engine")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("init-db", help="Create database tables")

    calculate = commands.add_parser("calculate", help="Calculate a settlement for a period")
    calculate.add_argument("--owner-id", type=int, required=True)
    calculate.add_argument("--property-id", type=int, required=True)
    calculate.add_argument("--start", type=date.fromisoformat, required=True, help="YYYY-MM-DD")
    calculate.add_argument("--end", type=date.fromisoformat, required=True, help="YYYY-MM-DD")
    calculate.add_argument(
        "--approach",
        choices=[approach.value for approach in BillingApproach],
        default=BillingApproach.COST_ONLY.value,
    )
    calculate.add_argument("--title", default=None)
    calculate.add_argument(
        "--dry-run",
        action="store_true",
        help="Only print the calculation, do not store a settlement",
    )

    finalize = commands.add_parser("finalize", help="Post a settlement to the tenant ledger")
    finalize.add_argument("--owner-id", type=int, required=True)
    finalize.add_argument("--settlement-id", type=int, required=True)

    reading = commands.add_parser("reading", help="Record a regular meter reading")
    reading.add_argument("--owner-id", type=int, required=True)
    reading.add_argument("--meter-id", type=int, required=True)
    reading.add_argument("--value", required=True)
    reading.add_argument("--date", type=date.fromisoformat, default=None, help="YYYY-MM-DD (default: today)")
    reading.add_argument("--notes", default=None)

    void = commands.add_parser("void", help="Reverse a finalized settlement")
    void.add_argument("--owner-id", type=int, required=True)
    void.add_argument("--settlement-id", type=int, required=True)
    void.add_argument("--reason", required=True)

    return parser


def _log_calculation(items, shares, total, warnings) -> None:
    for item in items:
        logger.info(f"  {item.label}: {format_amount(item.total_cost)}")
    logger.info(f"  Total: {format_amount(total)}")
    for share in shares:
        logger.info(
            f"  Tenant {share.tenant_id}: {share.active_days}/{share.total_days} days, "
            f"ratio {share.share_ratio}, amount {format_amount(share.amount)}"
        )
    for warning in warnings:
        logger.warning(f"  {warning}")


def run_calculate(db, args) -> None:
    """Calculate a period; store it as a settlement unless --dry-run."""
    from src.services.settlement_calculator import SettlementCalculator
    from src.services.settlement_service import SettlementService

    approach = BillingApproach(args.approach)
    label = format_period_label(args.start, args.end)

    if args.dry_run:
        request = CalculateSettlementRequest(
            property_id=args.property_id,
            period_start=args.start,
            period_end=args.end,
            approach=approach,
        )
        result = SettlementCalculator(db).calculate(request)
        logger.info(f"Settlement preview for {label}:")
        _log_calculation(result.items, result.shares, result.total_amount, result.warnings)
        return

    service = SettlementService(db)
    settlement = service.create_settlement(
        owner_id=args.owner_id,
        property_id=args.property_id,
        period_start=args.start,
        period_end=args.end,
        approach=approach,
        title=args.title,
    )
    try:
        settlement, warnings = service.calculate_settlement(settlement.id, args.owner_id)
    except Exception:
        # A failed calculation leaves no draft behind
        logger.warning(f"Calculation failed, removing draft settlement {settlement.id}")
        service.delete_settlement(settlement.id, args.owner_id)
        raise
    logger.info(f"Settlement {settlement.id} for {label} ({settlement.status.value}):")
    for item in settlement.items:
        logger.info(f"  {item.label}: {format_amount(item.total_cost)}")
    logger.info(f"  Total: {format_amount(settlement.total_amount)}")
    for share in settlement.shares:
        logger.info(
            f"  Tenant {share.tenant_id}: {share.active_days}/{share.total_days} days, "
            f"amount {format_amount(share.final_amount)}, due {format_amount(share.balance_due)}"
        )
    for warning in warnings:
        logger.warning(f"  {warning}")


def run_finalize(db, args) -> None:
    from src.services.settlement_service import SettlementService

    result = SettlementService(db).finalize_settlement(args.settlement_id, args.owner_id)
    logger.info(
        f"Settlement {result.settlement.id} finalized, "
        f"{len(result.ledger_entries)} ledger entries posted"
    )


def run_void(db, args) -> None:
    from src.services.settlement_service import SettlementService

    result = SettlementService(db).void_settlement(args.settlement_id, args.owner_id, args.reason)
    logger.info(
        f"Settlement {result.settlement.id} voided, "
        f"{len(result.ledger_entries)} adjustment entries posted"
    )


def run_reading(db, args) -> None:
    from src.services.meter_service import MeterService

    payload = MeterReadingPayload(value=args.value, reading_date=args.date, notes=args.notes)
    reading, warning = MeterService(db).record_reading(
        args.meter_id,
        args.owner_id,
        payload.value,
        reading_date=payload.reading_date,
        notes=payload.notes,
    )
    logger.info(f"Reading {reading.value} recorded on meter {reading.meter_id} ({reading.reading_date})")
    if warning:
        logger.warning(f"  {warning}")


COMMANDS = {
    "calculate": run_calculate,
    "reading": run_reading,
    "finalize": run_finalize,
    "void": run_void,
}


def main(argv: list[str] | None = None) -> int:
    """
    Main entry point for the settlement CLI.

    Returns:
        Exit code: 0 for success, 1 for failure
    """
    args = build_parser().parse_args(argv)
    setup_logging()

    try:
        from src.services import get_db, init_db

        if args.command == "init-db":
            init_db()
            logger.info("Database tables created")
            return 0

        for db in get_db():
            COMMANDS[args.command](db, args)
        return 0

    except SettlementError as e:
        logger.error(f"{args.command} failed [{e.code}]: {e.message}")
        return 1
    except KeyboardInterrupt:
        logger.warning(f"{args.command} interrupted by user")
        return 1
    except Exception as e:
        logger.error(f"{args.command} failed: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
