"""Decoding of organizer uploads (CSV or Excel) into rows of named string fields."""

import csv
import io
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from openpyxl import load_workbook

from errors import InvalidUploadError

SUPPORTED_EXTENSIONS = {".csv", ".xlsx"}


def norm_header(value) -> str:
    return str(value or "").strip().lower().replace("_", " ").replace("-", " ")


def _dedupe_headers(headers: Iterable[str]) -> List[str]:
    # Repeated columns become "name", "name.1", "name.2" so none of them is lost.
    seen: Dict[str, int] = {}
    result = []
    for header in headers:
        count = seen.get(header, 0)
        result.append(header if count == 0 else f"{header}.{count}")
        seen[header] = count + 1
    return result


def _cell_to_str(value) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def _rows_from_matrix(matrix: List[List]) -> List[Dict[str, str]]:
    if not matrix:
        return []
    headers = _dedupe_headers(norm_header(h) for h in matrix[0])
    rows = []
    for raw in matrix[1:]:
        values = [_cell_to_str(v) for v in raw]
        if not any(values):
            continue
        values += [""] * (len(headers) - len(values))
        rows.append(dict(zip(headers, values)))
    return rows


def _read_csv(content: bytes, delimiter: str) -> List[List]:
    try:
        text_value = content.decode("utf-8-sig")
    except UnicodeDecodeError:
        raise InvalidUploadError("CSV file must be UTF-8 encoded")
    return [row for row in csv.reader(io.StringIO(text_value), delimiter=delimiter)]


def _read_xlsx(content: bytes) -> List[List]:
    try:
        wb = load_workbook(filename=io.BytesIO(content), read_only=True, data_only=True)
    except Exception as exc:
        raise InvalidUploadError("Could not read Excel file") from exc
    try:
        return [list(row) for row in wb.active.iter_rows(values_only=True)]
    finally:
        wb.close()


def decode_table(filename: Optional[str], content: bytes, delimiter: str = ",") -> List[Dict[str, str]]:
    """Decode an uploaded file into ordered rows keyed by normalized header.

    ``.csv`` files are read with ``delimiter``; ``.xlsx`` files use the active
    sheet. The first row is the header row.
    """
    extension = Path(filename or "").suffix.lower()
    if extension not in SUPPORTED_EXTENSIONS:
        raise InvalidUploadError("Only .csv and .xlsx files are supported")
    if extension == ".xlsx":
        matrix = _read_xlsx(content)
    else:
        matrix = _read_csv(content, delimiter)
    return _rows_from_matrix(matrix)


def map_columns(row: Dict[str, str], aliases: Dict[str, Tuple[str, ...]]) -> Dict[str, str]:
    """Pick canonical fields out of a decoded row; missing fields map to ``""``.

    Aliases are tried in order and the first non-empty column wins.
    """
    mapped = {}
    for canonical, names in aliases.items():
        value = ""
        for name in names:
            if row.get(name):
                value = row[name]
                break
        mapped[canonical] = value
    return mapped
