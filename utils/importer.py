from __future__ import annotations

import csv
import logging
from dataclasses import dataclass, field
from io import BytesIO, StringIO
from typing import Any, Dict, Iterable, List, Optional

from openpyxl import load_workbook

from models import Student
from utils.students import StudentRoster, new_id, positive_amount

logger = logging.getLogger(__name__)

# Normalised header -> ImportRow field
HEADER_MAP = {
    "name": "name",
    "rollnumber": "roll_number",
    "rollno": "roll_number",
    "class": "class_name",
    "grade": "grade",
    "totalfees": "total_fees",
}


class ImportFileError(ValueError):
    pass


@dataclass
class ImportRow:
    name: str
    roll_number: str
    class_name: str = ""
    grade: str = ""
    total_fees: float = 0.0


@dataclass
class ImportSummary:
    new_count: int = 0
    updated_count: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {"newCount": self.new_count, "updatedCount": self.updated_count}


@dataclass
class ParsedImport:
    rows: List[ImportRow] = field(default_factory=list)
    skipped: int = 0


def import_students(roster: StudentRoster, rows: Iterable[ImportRow]) -> ImportSummary:
    """Merge ``rows`` into the roster keyed by lowercased roll number.

    A matching roll number overwrites name, class, grade and total fees only;
    the existing id, payments and discounts are kept. Unknown roll numbers
    become new students with empty transaction lists. Rows without a roll
    number are skipped and not counted.
    """
    summary = ImportSummary()
    by_roll: Dict[str, Student] = {s.roll_number.strip().lower(): s for s in roster.list_students()}

    for row in rows:
        roll = (row.roll_number or "").strip()
        if not roll:
            continue
        key = roll.lower()
        existing = by_roll.get(key)
        if existing is not None:
            existing.name = row.name
            existing.class_name = row.class_name
            existing.grade = row.grade
            existing.total_fees = row.total_fees
            summary.updated_count += 1
        else:
            by_roll[key] = Student(
                id=new_id("S"),
                name=row.name,
                roll_number=roll,
                class_name=row.class_name,
                grade=row.grade,
                total_fees=row.total_fees,
            )
            summary.new_count += 1

    roster.replace_all(list(by_roll.values()))
    logger.info("Import finished: %s new, %s updated", summary.new_count, summary.updated_count)
    return summary


def _normalise_header(value: Any) -> str:
    return "".join(str(value or "").split()).lower()


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def rows_from_records(records: Iterable[Dict[str, Any]]) -> ParsedImport:
    """Map header-keyed records to ImportRows, discarding incomplete ones.

    A row needs a name, a roll number and a positive total fee.
    """
    parsed = ParsedImport()
    for record in records:
        values: Dict[str, Any] = {}
        for header, value in record.items():
            target = HEADER_MAP.get(_normalise_header(header))
            if target and target not in values:
                values[target] = value
        name = _cell_text(values.get("name"))
        roll = _cell_text(values.get("roll_number"))
        fees = positive_amount(values.get("total_fees"))
        if not name or not roll or fees is None:
            parsed.skipped += 1
            continue
        parsed.rows.append(
            ImportRow(
                name=name,
                roll_number=roll,
                class_name=_cell_text(values.get("class_name")),
                grade=_cell_text(values.get("grade")),
                total_fees=fees,
            )
        )
    return parsed


def _xlsx_records(data: bytes) -> List[Dict[str, Any]]:
    try:
        wb = load_workbook(BytesIO(data), read_only=True, data_only=True)
    except Exception as exc:
        raise ImportFileError("Could not read the spreadsheet. Upload a valid .xlsx file.") from exc
    try:
        rows = list(wb.active.iter_rows(values_only=True))
    finally:
        wb.close()
    if not rows:
        return []
    headers = [str(h) if h is not None else "" for h in rows[0]]
    records = []
    for row in rows[1:]:
        if row is None or all(v is None or str(v).strip() == "" for v in row):
            continue
        records.append(dict(zip(headers, row)))
    return records


def _csv_records(data: bytes) -> List[Dict[str, Any]]:
    try:
        raw = data.decode("utf-8-sig")
    except UnicodeDecodeError:
        raw = data.decode("latin-1")
    return list(csv.DictReader(StringIO(raw)))


def read_import_file(data: bytes, filename: Optional[str]) -> ParsedImport:
    """Parse an uploaded .xlsx or .csv file into ImportRows."""
    name = (filename or "").lower()
    if name.endswith(".xlsx"):
        records = _xlsx_records(data)
    elif name.endswith(".csv"):
        records = _csv_records(data)
    else:
        raise ImportFileError("Unsupported file type. Upload a .xlsx or .csv file.")
    return rows_from_records(records)
