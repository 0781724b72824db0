"""
Spreadsheet helpers shared by the import/export endpoints.

Exports are built with openpyxl (styled header row, auto column widths) or
the csv module; imports accept ``.xlsx`` and ``.csv`` uploads and yield one
dict per data row keyed by the header cells.
"""
import csv
import io
import logging

import openpyxl
from openpyxl.styles import Alignment, Font, PatternFill
from django.http import HttpResponse

logger = logging.getLogger(__name__)

XLSX_CONTENT_TYPE = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'


class SpreadsheetError(ValueError):
    """Raised when an uploaded file cannot be read as a spreadsheet"""


def _style_header(worksheet):
    header_font = Font(bold=True, color='FFFFFF')
    header_fill = PatternFill(start_color='366092', end_color='366092', fill_type='solid')
    header_alignment = Alignment(horizontal='center', vertical='center')
    for cell in worksheet[1]:
        cell.font = header_font
        cell.fill = header_fill
        cell.alignment = header_alignment

    # Auto-adjust column widths
    for column in worksheet.columns:
        max_length = max(len(str(cell.value)) if cell.value is not None else 0 for cell in column)
        worksheet.column_dimensions[column[0].column_letter].width = min(max_length + 2, 50)


def build_workbook(headers, rows, title='Sheet1'):
    """Workbook with one styled sheet holding ``headers`` and ``rows``"""
    workbook = openpyxl.Workbook()
    worksheet = workbook.active
    worksheet.title = title
    worksheet.append(list(headers))
    for row in rows:
        worksheet.append(list(row))
    _style_header(worksheet)
    return workbook


def xlsx_response(headers, rows, filename, title='Sheet1'):
    output = io.BytesIO()
    build_workbook(headers, rows, title).save(output)
    response = HttpResponse(output.getvalue(), content_type=XLSX_CONTENT_TYPE)
    response['Content-Disposition'] = f'attachment; filename="{filename}"'
    return response


def csv_response(headers, rows, filename):
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(headers)
    writer.writerows(rows)
    response = HttpResponse(buffer.getvalue(), content_type='text/csv')
    response['Content-Disposition'] = f'attachment; filename="{filename}"'
    return response


def tabular_response(export_format, headers, rows, basename, title='Sheet1'):
    """CSV or xlsx download depending on ``export_format``"""
    if export_format == 'csv':
        return csv_response(headers, rows, f'{basename}.csv')
    return xlsx_response(headers, rows, f'{basename}.xlsx', title)


def _cell_text(value):
    if value is None:
        return ''
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def read_rows(upload, allow_csv=True):
    """
    Read an uploaded spreadsheet.

    Returns:
        (headers, rows) where ``rows`` is a list of ``(row_number, dict)``
        pairs; row numbers are the 1-based spreadsheet rows, blank rows are
        skipped.
    """
    name = (getattr(upload, 'name', '') or '').lower()
    if name.endswith('.csv'):
        if not allow_csv:
            raise SpreadsheetError('Only .xlsx files are accepted')
        raw_rows = _read_csv(upload)
    elif name.endswith('.xlsx'):
        raw_rows = _read_xlsx(upload)
    else:
        raise SpreadsheetError('Unsupported file type, upload a .xlsx' + (' or .csv' if allow_csv else '') + ' file')

    if not raw_rows:
        raise SpreadsheetError('The file is empty')

    headers = [_cell_text(value) for value in raw_rows[0]]
    rows = []
    for index, values in enumerate(raw_rows[1:], start=2):
        cells = [_cell_text(value) for value in values]
        if not any(cells):
            continue
        rows.append((index, {header: cells[i] if i < len(cells) else '' for i, header in enumerate(headers) if header}))
    return headers, rows


def _read_csv(upload):
    try:
        content = upload.read().decode('utf-8-sig')
    except UnicodeDecodeError as e:
        raise SpreadsheetError('CSV files must be UTF-8 encoded') from e
    return [row for row in csv.reader(io.StringIO(content))]


def _read_xlsx(upload):
    try:
        workbook = openpyxl.load_workbook(io.BytesIO(upload.read()), read_only=True, data_only=True)
    except Exception as e:
        logger.warning(f"Failed to open uploaded workbook {getattr(upload, 'name', '')}: {str(e)}")
        raise SpreadsheetError('Could not read the Excel file') from e
    try:
        worksheet = workbook.active
        return [list(row) for row in worksheet.iter_rows(values_only=True)]
    finally:
        workbook.close()


def missing_columns(headers, required):
    present = {header.strip().lower() for header in headers}
    return [column for column in required if column.lower() not in present]


def get_column(row, name, default=''):
    """Case-insensitive lookup of a column value"""
    lowered = name.lower()
    for header, value in row.items():
        if header.strip().lower() == lowered:
            return value
    return default
