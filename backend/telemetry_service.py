import logging
import re
from typing import Dict, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from errors import InternalError
from models import Telemetry
from schemas import TelemetryRow
from tabular import map_columns

logger = logging.getLogger(__name__)

TELEMETRY_COLUMN_ALIASES: Dict[str, Tuple[str, ...]] = {
    "group": ("group", "группа"),
    "start_number": ("start number", "номер участника"),
    "points": ("points", "баллы"),
}

# Plain ASCII digits with an optional sign and fraction; no exponents or separators.
POINTS_PATTERN = re.compile(r"[+-]?\d+(\.\d+)?", re.ASCII)


def telemetry_rows_from_table(rows: List[Dict[str, str]]) -> List[TelemetryRow]:
    return [TelemetryRow(**map_columns(row, TELEMETRY_COLUMN_ALIASES)) for row in rows]


def parse_points(raw: str) -> Optional[int]:
    """Integer points from an upload cell, or ``None`` when not numeric.

    Decimal values are truncated toward zero.
    """
    value = (raw or "").strip()
    if not POINTS_PATTERN.fullmatch(value):
        return None
    return int(value.split(".")[0])


def replace_telemetry(db: Session, rows: List[TelemetryRow]) -> int:
    """Replace all telemetry with the valid subset of ``rows``.

    Rows without a start number, without a group, or with non-numeric points
    are dropped. Returns the number of stored records.
    """
    records = []
    for row in rows:
        points = parse_points(row.points)
        if points is None or not row.start_number.strip() or not row.group.strip():
            continue
        records.append(Telemetry(start_number=row.start_number, group=row.group, points=points))

    dropped = len(rows) - len(records)
    if dropped:
        logger.warning("Dropped %d invalid telemetry rows out of %d", dropped, len(rows))

    try:
        db.query(Telemetry).delete(synchronize_session=False)
        db.add_all(records)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Telemetry replace failed: %s", exc)
        raise InternalError("Failed to replace telemetry") from exc

    logger.info("Telemetry replaced: %d records stored", len(records))
    return len(records)
