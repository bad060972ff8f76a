"""
Excel Reporter

Generates a single Excel workbook with the cleaning, collinearity,
selection and validation details of one run.
"""

from typing import Any, Dict, Optional, Sequence
from pathlib import Path
import logging

import numpy as np
import pandas as pd
from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill, Alignment, Border, Side


logger = logging.getLogger(__name__)


# Styles
HEADER_FONT = Font(bold=True, color="FFFFFF", size=11)
HEADER_FILL = PatternFill(start_color="2F5496", end_color="2F5496", fill_type="solid")
KEPT_FILL = PatternFill(start_color="E2EFDA", end_color="E2EFDA", fill_type="solid")
ELIM_FILL = PatternFill(start_color="FCE4EC", end_color="FCE4EC", fill_type="solid")
FLAG_FILL = PatternFill(start_color="FFF9C4", end_color="FFF9C4", fill_type="solid")
THIN_BORDER = Border(
    left=Side(style='thin'), right=Side(style='thin'),
    top=Side(style='thin'), bottom=Side(style='thin'),
)

MAX_SHEET_NAME = 31


def generate_report(
    output_path: str,
    summary: Dict[str, Any],
    row_counts_df: pd.DataFrame,
    missing_df: Optional[pd.DataFrame] = None,
    status_summary_df: Optional[pd.DataFrame] = None,
    corr_matrix: Optional[pd.DataFrame] = None,
    corr_pairs_df: Optional[pd.DataFrame] = None,
    vif_df: Optional[pd.DataFrame] = None,
    decisions_df: Optional[pd.DataFrame] = None,
    selection_results: Sequence[Any] = (),
    agreement_df: Optional[pd.DataFrame] = None,
    lasso_results: Sequence[Any] = (),
    validation_df: Optional[pd.DataFrame] = None,
    coefficients_df: Optional[pd.DataFrame] = None,
) -> str:
    """
    Generate the full Excel report.

    Args:
        output_path: Path for the output Excel file.
        summary: Dict of summary key-value pairs.
        row_counts_df: Raw vs clean rows per stratum.
        missing_df: Per-column missingness.
        status_summary_df: Descriptive statistics per status level.
        corr_matrix: Correlation matrix (written with its index).
        corr_pairs_df: Pairs at or above the correlation threshold.
        vif_df: Variance inflation factors.
        decisions_df: Applied collinearity decision table.
        selection_results: SelectionResult objects, one sheet each.
        agreement_df: Predictor x method membership table.
        lasso_results: LassoCheckResult objects (combined into one sheet).
        validation_df: Train/test metrics.
        coefficients_df: Coefficients of the validated model.

    Returns:
        Path to the generated Excel file.
    """
    wb = Workbook()
    _write_summary_sheet(wb, summary)

    tables = [
        ("01_Row_Counts", row_counts_df),
        ("02_Missingness", missing_df),
        ("03_Status_Summary", status_summary_df),
        ("04_Correlation", _matrix_table(corr_matrix)),
        ("05_Corr_Pairs", corr_pairs_df),
        ("06_VIF", vif_df),
        ("07_Decisions", decisions_df),
    ]
    tables += [
        (f"08_{res.stratum}_{res.method}", res.details_df) for res in selection_results
    ]
    tables += [
        ("09_Agreement", agreement_df),
        ("10_Lasso", _lasso_table(lasso_results)),
        ("11_Validation", validation_df),
        ("12_Coefficients", coefficients_df),
    ]
    for name, df in tables:
        if df is not None:
            _write_df_sheet(wb, name, df)

    if "Sheet" in wb.sheetnames:
        del wb["Sheet"]

    Path(output_path).parent.mkdir(parents=True, exist_ok=True)
    wb.save(output_path)
    logger.info(f"COMPLETE | Excel saved: {output_path} ({len(wb.sheetnames)} sheets)")
    return output_path


def _matrix_table(corr_matrix: Optional[pd.DataFrame]) -> Optional[pd.DataFrame]:
    if corr_matrix is None:
        return None
    return corr_matrix.round(4).rename_axis('Variable').reset_index()


def _lasso_table(lasso_results: Sequence[Any]) -> Optional[pd.DataFrame]:
    """Stack the per-stratum LASSO coefficient tables."""
    if not lasso_results:
        return None
    frames = []
    for lr in lasso_results:
        df = lr.coefficients_df.copy()
        df.insert(0, 'Stratum', lr.stratum)
        df['Alpha'] = round(lr.alpha, 6)
        df['Degenerate'] = lr.is_degenerate
        frames.append(df)
    return pd.concat(frames, ignore_index=True)


def _sheet_name(name: str) -> str:
    """Excel caps sheet names at 31 characters."""
    return name[:MAX_SHEET_NAME]


def _write_summary_sheet(wb: Workbook, summary: Dict[str, Any]) -> None:
    ws = wb.create_sheet("00_Summary")
    ws.column_dimensions['A'].width = 35
    ws.column_dimensions['B'].width = 60

    ws['A1'] = "Life Expectancy Determinants Report"
    ws['A1'].font = Font(bold=True, size=14, color="2F5496")
    ws.merge_cells('A1:B1')

    for row, (key, value) in enumerate(summary.items(), 3):
        label = ws.cell(row=row, column=1, value=key)
        label.font = Font(bold=True)
        label.border = THIN_BORDER
        ws.cell(row=row, column=2, value=str(value)).border = THIN_BORDER


def _cell_value(value: Any) -> Any:
    """Convert numpy scalars and lists into values openpyxl accepts."""
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value)
    if pd.isna(value):
        return None
    if isinstance(value, (bool, np.bool_)):
        return bool(value)
    if isinstance(value, np.integer):
        return int(value)
    if isinstance(value, (float, np.floating)):
        return float(value) if np.isfinite(value) else str(value)
    return value


def _row_fill(df: pd.DataFrame, row_data: pd.Series) -> Optional[PatternFill]:
    """Pick a row colour from the status-like columns a table carries."""
    if 'Status' in df.columns:
        status = row_data['Status']
        if status in ('Zeroed', 'Dropped'):
            return ELIM_FILL
        if status == 'Kept':
            return KEPT_FILL
    if 'Action' in df.columns:
        if row_data['Action'] == 'Add':
            return KEPT_FILL
        if row_data['Action'] == 'Drop':
            return ELIM_FILL
    if 'Consensus' in df.columns and not bool(row_data['Consensus']):
        return FLAG_FILL
    if 'High_VIF' in df.columns and bool(row_data['High_VIF']):
        return FLAG_FILL
    return None


def _write_header(ws, columns) -> None:
    for col_idx, col_name in enumerate(columns, 1):
        cell = ws.cell(row=1, column=col_idx, value=str(col_name))
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        cell.alignment = Alignment(horizontal='center')
        cell.border = THIN_BORDER


def _autofit(ws, n_rows: int, n_cols: int, sample: int = 100) -> None:
    # Widths are estimated from the header plus the first rows only
    for col_idx in range(1, n_cols + 1):
        widths = [
            len(str(ws.cell(row=r, column=col_idx).value))
            for r in range(1, min(n_rows, sample) + 2)
            if ws.cell(row=r, column=col_idx).value is not None
        ]
        letter = ws.cell(row=1, column=col_idx).column_letter
        ws.column_dimensions[letter].width = min(max(widths, default=8) + 3, 40)


def _write_df_sheet(wb: Workbook, sheet_name: str, df: Optional[pd.DataFrame]) -> None:
    """Write a DataFrame to a styled, filterable sheet."""
    ws = wb.create_sheet(_sheet_name(sheet_name))
    if df is None or len(df) == 0:
        ws['A1'] = "No data"
        return

    _write_header(ws, df.columns)
    for row_idx, (_, row_data) in enumerate(df.iterrows(), 2):
        fill = _row_fill(df, row_data)
        for col_idx, value in enumerate(row_data, 1):
            cell = ws.cell(row=row_idx, column=col_idx, value=_cell_value(value))
            cell.border = THIN_BORDER
            if fill:
                cell.fill = fill

    _autofit(ws, len(df), len(df.columns))
    ws.freeze_panes = 'A2'
    ws.auto_filter.ref = ws.dimensions
