"""Workbook helpers: pandas writes the frames, openpyxl styles the sheets."""
from decimal import ROUND_HALF_UP, Decimal
from pathlib import Path
from typing import Iterable, Optional, Sequence

import pandas as pd
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

HEADER_FILL = "4472C4"
SUMMARY_FILL = "E7E6E6"

CENTER = Alignment(horizontal="center", vertical="center")

# (fill, font colour) pairs
GREEN = ("C6EFCE", "006100")
YELLOW = ("FFEB9C", "9C6500")
RED = ("FFC7CE", "9C0006")
DARK_GREEN = ("00B050", "FFFFFF")
LIGHT_YELLOW = ("FFF2CC", "806000")


def solid(color: str) -> PatternFill:
    return PatternFill(patternType="solid", fgColor=color)


def paint(cell, style: tuple[str, str], bold: bool = True) -> None:
    fill, font = style
    cell.fill = solid(fill)
    cell.font = Font(color=font, bold=bold)


def percent_style(percentage: float) -> tuple[str, str]:
    """Green at 80% and above, yellow from 50%, red below."""
    if percentage >= 80:
        return GREEN
    if percentage >= 50:
        return YELLOW
    return RED


def high_attendance_style(percentage: float) -> tuple[str, str]:
    if percentage >= 100:
        return DARK_GREEN
    if percentage >= 90:
        return GREEN
    if percentage >= 80:
        return YELLOW
    return LIGHT_YELLOW


def mean2(values: Sequence[float]) -> float:
    """Arithmetic mean rounded half-up to 2 decimals; 0.0 for no values."""
    if not values:
        return 0.0
    total = sum(Decimal(str(v)) for v in values)
    return float((total / len(values)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def style_header(ws: Worksheet, row: int = 1, fill: Optional[str] = HEADER_FILL) -> None:
    for cell in ws[row]:
        cell.font = Font(bold=True, color="FFFFFF" if fill else None)
        if fill:
            cell.fill = solid(fill)
        cell.alignment = CENTER


def set_widths(ws: Worksheet, widths: Iterable[float]) -> None:
    for i, width in enumerate(widths, start=1):
        ws.column_dimensions[get_column_letter(i)].width = width


def write_frame(
    writer: pd.ExcelWriter,
    df: pd.DataFrame,
    sheet_name: str,
    widths: Optional[Iterable[float]] = None,
    header_fill: Optional[str] = HEADER_FILL,
) -> Worksheet:
    """Write ``df`` without the index and return the styled openpyxl sheet."""
    df.to_excel(writer, index=False, sheet_name=sheet_name)
    ws = writer.sheets[sheet_name]
    style_header(ws, fill=header_fill)
    if widths:
        set_widths(ws, widths)
    return ws


def column_cells(ws: Worksheet, col: int, first_row: int = 2):
    for (cell,) in ws.iter_rows(min_row=first_row, max_row=ws.max_row, min_col=col, max_col=col):
        yield cell


def open_writer(path: Path) -> pd.ExcelWriter:
    path.parent.mkdir(parents=True, exist_ok=True)
    return pd.ExcelWriter(path, engine="openpyxl")
