from __future__ import annotations

import io
import json
import logging
from pathlib import Path
from typing import Any, Dict, List

import pandas as pd

from .errors import UnsupportedFormatError

logger = logging.getLogger(__name__)

SUPPORTED_SUFFIXES = {".csv", ".json"}


def parse_json_text(text: str) -> List[Dict[str, Any]]:
    try:
        loaded = json.loads(text)
    except json.JSONDecodeError as error:
        raise UnsupportedFormatError(f"Invalid JSON: {error}") from error

    records = loaded if isinstance(loaded, list) else [loaded]
    for position, record in enumerate(records):
        if not isinstance(record, dict):
            raise UnsupportedFormatError(
                f"JSON input must be an object or an array of objects; item {position} is {type(record).__name__}."
            )
    return records


def parse_csv_text(text: str) -> List[Dict[str, Any]]:
    try:
        frame = pd.read_csv(io.StringIO(text), dtype=str, keep_default_na=False, skip_blank_lines=True)
    except pd.errors.EmptyDataError as error:
        raise UnsupportedFormatError("CSV input is empty; a header row is required.") from error
    except pd.errors.ParserError as error:
        raise UnsupportedFormatError(f"Invalid CSV: {error}") from error

    return frame.to_dict(orient="records")


def load_raw_records(path: str | Path) -> List[Dict[str, Any]]:
    input_path = Path(path)
    suffix = input_path.suffix.lower()
    if suffix not in SUPPORTED_SUFFIXES:
        raise UnsupportedFormatError(
            f"Unsupported file type '{suffix or input_path.name}'. Expected one of {sorted(SUPPORTED_SUFFIXES)}."
        )

    text = input_path.read_text(encoding="utf-8")
    records = parse_json_text(text) if suffix == ".json" else parse_csv_text(text)
    logger.debug("Decoded %d raw records from %s", len(records), input_path)
    return records
