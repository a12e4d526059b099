"""Entry point para la facturación masiva de un periodo.

Usage:
    python scripts/run_period_invoicing.py <config.yaml> <YYYY-MM> [YYYY-MM-DD]
"""

import sys
from datetime import date
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import structlog

from aquabill.application.config import load_config
from aquabill.application.use_cases.create_invoice import CreateInvoiceUseCase
from aquabill.application.use_cases.generate_period_invoices import (
    GenerateInvoicesForPeriodUseCase,
)
from aquabill.application.use_cases.rate_consumption import TariffRatingEngine
from aquabill.domain.exceptions import BillingError
from aquabill.infrastructure.event_publishers import LoggingPublisher
from aquabill.infrastructure.logging_config import close_log_file, setup_logging
from aquabill.infrastructure.sqlite_store import SqliteBillingStore


def main() -> int:
    if len(sys.argv) < 3:
        print(__doc__)
        return 2
    config_path = sys.argv[1]
    period = sys.argv[2]
    issue_date = sys.argv[3] if len(sys.argv) > 3 else date.today().isoformat()

    config = load_config(config_path)
    setup_logging(
        log_level=config.logging.level,
        log_dir=Path(config.logging.log_dir) if config.logging.log_to_file else None,
    )
    logger = structlog.get_logger()
    logger.info("period_invoicing_starting", config_path=config_path, period=period)

    store = SqliteBillingStore(db_path=config.database.path)
    publisher = LoggingPublisher() if config.notifications.enabled else None

    try:
        create_invoice = CreateInvoiceUseCase(
            store=store,
            rating=TariffRatingEngine(store),
            publisher=publisher,
            due_days=config.billing.due_days,
        )
        use_case = GenerateInvoicesForPeriodUseCase(
            store=store,
            create_invoice=create_invoice,
            publisher=publisher,
        )
        report = use_case.execute(period=period, issue_date=issue_date)
    except BillingError as e:
        logger.error("period_invoicing_rejected", **e.to_dict())
        return 2
    finally:
        store.close()

    logger.info(
        "period_invoicing_finished",
        run_id=report.run_id,
        generated=len(report.generated),
        failed=len(report.failed),
        total_amount=str(report.total_amount),
    )
    return 0 if not report.failed else 1


if __name__ == "__main__":
    try:
        sys.exit(main())
    finally:
        close_log_file()
