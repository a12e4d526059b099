from pathlib import Path

import openpyxl
import pandas as pd
import structlog

from openpyxl.styles import Alignment, Font
from openpyxl.utils import get_column_letter

logger = structlog.get_logger()

_MONEY_FORMAT = '_ "$"* #,##0.00_ ;_ "$"* \\-#,##0.00_ ;_ "$"* "-"_ ;_ @_ '

COLUMN_FORMATS = {
    "N° Factura": {"number_format": "0", "alignment": Alignment(horizontal="center")},
    "Medidor": {"alignment": Alignment(horizontal="center")},
    "Periodo": {"alignment": Alignment(horizontal="center")},
    "Consumo (m3)": {"number_format": "#,##0.00", "alignment": Alignment(horizontal="right")},
    "Fecha Emisión": {"number_format": "dd/mm/yyyy", "alignment": Alignment(horizontal="center")},
    "Fecha Vencimiento": {
        "number_format": "dd/mm/yyyy",
        "alignment": Alignment(horizontal="center"),
    },
    "Total ($)": {"number_format": _MONEY_FORMAT},
    "Saldo Pendiente ($)": {"number_format": _MONEY_FORMAT},
    "Estado": {"alignment": Alignment(horizontal="center")},
}


class OpenpyxlExcelHandler:
    def write(self, df: pd.DataFrame, file_path: Path, sheet_name: str = "Sheet1") -> None:
        """Escribe el DataFrame en la hoja indicada, reemplazándola si ya existe."""
        if file_path.exists():
            wb = openpyxl.load_workbook(file_path)
            if sheet_name in wb.sheetnames:
                del wb[sheet_name]
            ws = wb.create_sheet(sheet_name)
        else:
            wb = openpyxl.Workbook()
            ws = wb.active
            ws.title = sheet_name

        try:
            column_names = list(df.columns)
            for col_idx, col_name in enumerate(column_names, start=1):
                cell = ws.cell(row=1, column=col_idx, value=col_name)
                cell.font = Font(bold=True)
                cell.alignment = Alignment(horizontal="center")

            for row_idx, row in enumerate(df.itertuples(index=False), start=2):
                for col_idx, value in enumerate(row, start=1):
                    cell = ws.cell(row=row_idx, column=col_idx)
                    cell.value = None if pd.isna(value) else value

                    fmt = COLUMN_FORMATS.get(column_names[col_idx - 1])
                    if fmt:
                        if "number_format" in fmt:
                            cell.number_format = fmt["number_format"]
                        if "alignment" in fmt:
                            cell.alignment = fmt["alignment"]

            for col_idx, col_name in enumerate(column_names, start=1):
                letter = get_column_letter(col_idx)
                ws.column_dimensions[letter].width = max(12, len(str(col_name)) + 4)

            wb.save(file_path)
            logger.info(
                "excel_written",
                path=str(file_path),
                sheet=sheet_name,
                rows=len(df),
            )
        finally:
            wb.close()
