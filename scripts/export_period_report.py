"""Exporta las facturas de un periodo a XLSX.

Usage:
    python scripts/export_period_report.py <config.yaml> <YYYY-MM>
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import structlog

from aquabill.application.config import load_config
from aquabill.application.use_cases.billing_reports import BillingReportService
from aquabill.domain.exceptions import BillingError
from aquabill.infrastructure.excel_handler import OpenpyxlExcelHandler
from aquabill.infrastructure.logging_config import close_log_file, setup_logging
from aquabill.infrastructure.sqlite_store import SqliteBillingStore


def main() -> int:
    if len(sys.argv) < 3:
        print(__doc__)
        return 2
    config_path = sys.argv[1]
    period = sys.argv[2]

    config = load_config(config_path)
    setup_logging(
        log_level=config.logging.level,
        log_dir=Path(config.logging.log_dir) if config.logging.log_to_file else None,
    )
    logger = structlog.get_logger()

    store = SqliteBillingStore(db_path=config.database.path)
    try:
        service = BillingReportService(
            store=store,
            writer=OpenpyxlExcelHandler(),
            sheet_name=config.reports.sheet_name,
        )
        output = Path(config.reports.output_dir) / f"facturas_{period}.xlsx"
        service.export_invoices(period, output)
    except BillingError as e:
        logger.error("report_export_rejected", **e.to_dict())
        return 2
    finally:
        store.close()

    logger.info("report_export_finished", period=period, path=str(output))
    return 0


if __name__ == "__main__":
    try:
        sys.exit(main())
    finally:
        close_log_file()
