from __future__ import annotations

from dataclasses import dataclass, field
import json
import logging
import math
from pathlib import Path
from typing import Iterable, Mapping
import uuid

import numpy as np
import pandas as pd


logger = logging.getLogger(__name__)

METHODS = ("U-Pb", "Ar-Ar", "K-Ar", "FT")
MINERALS = ("Zircon", "Muscovite", "Biotite", "Apatite", "Monazite", "Hornblende")

_RAW_METHOD_ALIASES = {
    "U-Pb": "U-Pb",
    "UPb": "U-Pb",
    "U/Pb": "U-Pb",
    "Ar-Ar": "Ar-Ar",
    "ArAr": "Ar-Ar",
    "40Ar/39Ar": "Ar-Ar",
    "Ar/Ar": "Ar-Ar",
    "K-Ar": "K-Ar",
    "KAr": "K-Ar",
    "K/Ar": "K-Ar",
    "FT": "FT",
    "Fission Track": "FT",
    "Fission-Track": "FT",
}
METHOD_ALIASES = {key.lower(): value for key, value in _RAW_METHOD_ALIASES.items()}

# Header name -> record field. "uncertainty" is an alias for "error".
HEADER_FIELDS = {
    "mineral": "mineral",
    "method": "method",
    "age": "age",
    "error": "error",
    "uncertainty": "error",
}

DELIMITER = ","
FORMATS = {".json": "json", ".csv": "csv", ".txt": "csv"}


class IngestError(ValueError):
    """The uploaded document as a whole could not be parsed."""


@dataclass(frozen=True)
class AgeRecord:
    id: str
    mineral: str
    method: str
    age: float
    error: float


@dataclass(frozen=True)
class SkippedRow:
    position: int
    reasons: tuple[str, ...]


@dataclass(frozen=True)
class IngestResult:
    records: tuple[AgeRecord, ...] = ()
    skipped: tuple[SkippedRow, ...] = ()

    @property
    def accepted_count(self) -> int:
        return len(self.records)

    @property
    def skipped_count(self) -> int:
        return len(self.skipped)


@dataclass(frozen=True)
class IngestOutcome:
    records: tuple[AgeRecord, ...]
    result: IngestResult | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class AgeSummary:
    count: int
    min_age: float
    max_age: float
    correlation: str


@dataclass
class _FieldParse:
    values: dict[str, object] = field(default_factory=dict)
    reasons: list[str] = field(default_factory=list)


def new_record_id() -> str:
    return uuid.uuid4().hex


def canonical_method(value: str) -> str:
    cleaned = value.strip()
    return METHOD_ALIASES.get(cleaned.lower(), cleaned)


def _coerce_number(value: object) -> float | None:
    if value is None or isinstance(value, (bool, np.bool_)):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    elif not isinstance(value, (int, float, np.number)):
        return None
    number = pd.to_numeric(value, errors="coerce")
    if pd.isna(number):
        return None
    try:
        number = float(number)
    except (OverflowError, TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _coerce_text(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and math.isnan(value):
        return ""
    return str(value).strip()


def _parse_fields(raw: Mapping[str, object]) -> _FieldParse:
    parsed = _FieldParse()
    parsed.values["mineral"] = _coerce_text(raw.get("mineral"))
    parsed.values["method"] = canonical_method(_coerce_text(raw.get("method")))

    for name in ("age", "error"):
        value = raw.get(name)
        number = _coerce_number(value)
        if number is None:
            missing = value is None or (isinstance(value, str) and not value.strip())
            parsed.reasons.append(f"{name}: {'missing' if missing else 'not numeric'}")
        else:
            parsed.values[name] = number

    error = parsed.values.get("error")
    if isinstance(error, float) and error < 0.0:
        parsed.reasons.append("error: negative")
    return parsed


def _build_result(rows: Iterable[tuple[int, Mapping[str, object]]]) -> IngestResult:
    records: list[AgeRecord] = []
    skipped: list[SkippedRow] = []
    for position, raw in rows:
        parsed = _parse_fields(raw)
        if parsed.reasons:
            skipped.append(SkippedRow(position, tuple(parsed.reasons)))
            continue
        records.append(
            AgeRecord(
                id=new_record_id(),
                mineral=str(parsed.values["mineral"]),
                method=str(parsed.values["method"]),
                age=float(parsed.values["age"]),
                error=float(parsed.values["error"]),
            )
        )
    return IngestResult(records=tuple(records), skipped=tuple(skipped))


def parse_age_json(text: str) -> IngestResult:
    """Parse a JSON array of age objects, or a single object.

    Any ``id`` present in the source is ignored; every accepted record gets a
    fresh one. Elements that are not objects are skipped.
    """
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as exc:
        raise IngestError(f"Invalid JSON: {exc.msg} (line {exc.lineno}, column {exc.colno}).") from exc
    except (ValueError, RecursionError) as exc:
        raise IngestError(f"Invalid JSON: {exc}") from exc

    items = parsed if isinstance(parsed, list) else [parsed]
    rows: list[tuple[int, Mapping[str, object]]] = []
    skipped: list[SkippedRow] = []
    for position, item in enumerate(items):
        if isinstance(item, dict):
            rows.append((position, item))
        else:
            skipped.append(SkippedRow(position, ("not an object",)))

    result = _build_result(rows)
    if not skipped:
        return result
    ordered = tuple(sorted(result.skipped + tuple(skipped), key=lambda row: row.position))
    return IngestResult(records=result.records, skipped=ordered)


def parse_age_delimited(text: str) -> IngestResult:
    """Parse comma-separated age rows with a required header line.

    Header names are matched case-insensitively; unrecognized columns are
    ignored. Blank lines are skipped and not reported. Positions in
    ``skipped`` are 1-based line numbers of the data rows (header is line 1).
    """
    lines = text.splitlines()
    if not lines:
        return IngestResult()

    headers = [name.strip().lstrip("\ufeff").lower() for name in lines[0].split(DELIMITER)]
    columns = [(idx, HEADER_FIELDS[name]) for idx, name in enumerate(headers) if name in HEADER_FIELDS]

    rows: list[tuple[int, Mapping[str, object]]] = []
    for line_number, line in enumerate(lines[1:], start=2):
        if not line.strip():
            continue
        values = line.split(DELIMITER)
        raw: dict[str, object] = {}
        for idx, name in columns:
            value = values[idx].strip() if idx < len(values) else None
            # A later duplicate column must not blank out an earlier value.
            if name in raw and (value is None or value == ""):
                continue
            raw[name] = value
        rows.append((line_number, raw))
    return _build_result(rows)


def detect_format(filename: str) -> str:
    suffix = Path(filename).suffix.lower()
    if suffix not in FORMATS:
        raise IngestError(f"Unsupported file type: {suffix or '(none)'}. Use CSV or JSON.")
    return FORMATS[suffix]


def parse_age_text(text: str, fmt: str) -> IngestResult:
    if fmt == "json":
        return parse_age_json(text)
    if fmt == "csv":
        return parse_age_delimited(text)
    raise IngestError(f"Unsupported age data format: {fmt!r}.")


def append_records(existing: Iterable[AgeRecord], records: Iterable[AgeRecord]) -> tuple[AgeRecord, ...]:
    return tuple(existing) + tuple(records)


def remove_record(records: Iterable[AgeRecord], record_id: str) -> tuple[AgeRecord, ...]:
    return tuple(record for record in records if record.id != record_id)


def ingest_ages(existing: Iterable[AgeRecord], text: str, fmt: str) -> IngestOutcome:
    """Parse ``text`` and append the accepted records to ``existing``.

    A malformed document leaves the collection unchanged and is reported
    through ``IngestOutcome.error`` instead of raising.
    """
    current = tuple(existing)
    try:
        result = parse_age_text(text, fmt)
    except IngestError as exc:
        logger.warning("Failed to parse geochronology data: %s", exc)
        return IngestOutcome(records=current, error=str(exc))

    if result.skipped:
        logger.info("Skipped %d malformed age rows", result.skipped_count)
    logger.debug("Ingested %d age records", result.accepted_count)
    return IngestOutcome(records=append_records(current, result.records), result=result)


def make_age_record(mineral: str, method: str, age: object, error: object) -> AgeRecord | None:
    age_value = _coerce_number(age)
    error_value = _coerce_number(error)
    if age_value is None or error_value is None:
        return None
    if age_value <= 0.0 or error_value <= 0.0:
        return None
    return AgeRecord(
        id=new_record_id(),
        mineral=_coerce_text(mineral),
        method=canonical_method(_coerce_text(method)),
        age=age_value,
        error=error_value,
    )


def summarize_ages(records: Iterable[AgeRecord]) -> AgeSummary | None:
    ages = [record.age for record in records]
    if not ages:
        return None
    correlation = "Proterozoic Basement" if any(age > 1000.0 for age in ages) else "Phanerozoic Orogeny"
    return AgeSummary(count=len(ages), min_age=min(ages), max_age=max(ages), correlation=correlation)


def records_to_frame(records: Iterable[AgeRecord]) -> pd.DataFrame:
    rows = [
        {
            "id": record.id,
            "mineral": record.mineral,
            "method": record.method,
            "age_ma": record.age,
            "error_ma": record.error,
        }
        for record in records
    ]
    return pd.DataFrame(rows, columns=["id", "mineral", "method", "age_ma", "error_ma"])
