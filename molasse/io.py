from __future__ import annotations

from io import BytesIO, StringIO
import logging
import mimetypes
from pathlib import Path
from typing import Iterable

import pandas as pd

from molasse.advisor import ImagePayload
from molasse.geochron import (
    AgeRecord,
    IngestError,
    IngestOutcome,
    IngestResult,
    append_records,
    detect_format,
    parse_age_text,
)


logger = logging.getLogger(__name__)

POINT_COUNT_EXTENSIONS = [".csv", ".xlsx", ".xls"]
AGE_EXTENSIONS = [".csv", ".json"]
IMAGE_EXTENSIONS = [".png", ".jpg", ".jpeg", ".webp", ".gif"]


def _decode_text(filename: str, data: bytes) -> str:
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise IngestError(f"{filename} is not UTF-8 text.") from exc


def read_uploaded_table(filename: str, data: bytes) -> pd.DataFrame:
    """Read a point-count table from CSV or Excel bytes.

    Header names are stripped and rows with no values at all are dropped.
    """
    suffix = Path(filename).suffix.lower()
    if suffix not in POINT_COUNT_EXTENSIONS:
        raise ValueError(f"Unsupported point-count file: {suffix or '(none)'}. Use CSV or Excel.")

    if suffix == ".csv":
        frame = pd.read_csv(StringIO(_decode_text(filename, data)))
    else:
        frame = pd.read_excel(BytesIO(data))
    frame.columns = [str(column).strip() for column in frame.columns]
    return frame.dropna(how="all").reset_index(drop=True)


def read_uploaded_ages(filename: str, data: bytes) -> IngestResult:
    fmt = detect_format(filename)
    return parse_age_text(_decode_text(filename, data), fmt)


def ingest_uploaded_ages(existing: Iterable[AgeRecord], filename: str, data: bytes) -> IngestOutcome:
    """Read an uploaded age file and append its accepted records.

    Unsupported, undecodable or malformed uploads leave ``existing``
    unchanged and come back with ``error`` set.
    """
    current = tuple(existing)
    try:
        result = read_uploaded_ages(filename, data)
    except IngestError as exc:
        logger.warning("Failed to import %s: %s", filename, exc)
        return IngestOutcome(records=current, error=str(exc))

    if result.skipped:
        logger.info("Skipped %d malformed age rows in %s", result.skipped_count, filename)
    return IngestOutcome(records=append_records(current, result.records), result=result)


def read_uploaded_image(filename: str, data: bytes, mime_type: str | None = None) -> ImagePayload:
    resolved = mime_type or mimetypes.guess_type(filename)[0] or "image/jpeg"
    if not resolved.startswith("image/"):
        raise ValueError(f"Unsupported image type: {resolved}")
    return ImagePayload(mime_type=resolved, data=data)
