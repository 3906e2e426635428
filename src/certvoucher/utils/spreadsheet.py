"""Spreadsheet parsing for voucher code uploads."""

from __future__ import annotations

from io import BytesIO
from typing import Any
from zipfile import BadZipFile

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from ..errors import ValidationError


def read_rows(file_bytes: bytes) -> tuple[list[str], list[dict[str, Any]]]:
    """Return the header and data rows of the first worksheet.

    Header cells are stripped; columns without a header are ignored. A sheet
    with no cells at all yields an empty header.
    """

    try:
        workbook = load_workbook(BytesIO(file_bytes), read_only=True, data_only=True)
    except (InvalidFileException, BadZipFile, KeyError) as exc:
        raise ValidationError("Uploaded file is not a readable .xlsx workbook") from exc

    try:
        sheet = workbook.worksheets[0]
        rows = sheet.iter_rows(values_only=True)
        header = next(rows, None)
        if header is None:
            return [], []

        columns = [str(cell).strip() if cell is not None else "" for cell in header]
        parsed = []
        for values in rows:
            parsed.append(
                {column: value for column, value in zip(columns, values) if column}
            )
        return [column for column in columns if column], parsed
    finally:
        workbook.close()
