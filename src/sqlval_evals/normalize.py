from __future__ import annotations

import logging
import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError

from .errors import MalformedRecordError, UnsupportedFormatError
from .schema import TestCase

logger = logging.getLogger(__name__)

REQUIRED_TEXT_FIELDS = ("id", "user_prompt", "expected_sql", "true_label")
REQUIRED_SCORE_FIELDS = ("syntax_score",)
OPTIONAL_SCORE_FIELDS = (
    "codebert_intent_score",
    "codebert_sqlsim_score",
    "flane5_intent_score",
    "flane5_sqlsim_score",
    "ngram1_precision",
    "ngram1_recall",
    "ngram1_f1",
    "ngram2_precision",
    "ngram2_recall",
    "ngram2_f1",
    "n_gram_score",
    "edit_similarity",
    "bleu_score",
    "rouge_score",
    "execution_accuracy",
    "precision",
    "recall",
    "f1_score",
    "vocab_unknown_count",
    "vocab_unknown_ratio",
    "token_count",
)
OPTIONAL_FLAG_FIELDS = (
    "has_limit",
    "has_offset",
    "has_result_type",
    "has_cte",
    "has_order_by",
    "has_group_by",
    "has_join",
    "exact_match",
)
MALFORMED_POLICIES = {"abort", "skip"}


@dataclass
class NormalizationResult:
    test_cases: Tuple[TestCase, ...]
    errors: List[MalformedRecordError] = field(default_factory=list)


def _is_missing(raw_value: Any) -> bool:
    if raw_value is None:
        return True
    if isinstance(raw_value, float) and math.isnan(raw_value):
        return True
    return False


def _safe_float(raw_value: Any) -> Optional[float]:
    if _is_missing(raw_value) or isinstance(raw_value, bool):
        return None
    if isinstance(raw_value, str):
        raw_value = raw_value.strip()
        if not raw_value:
            return None
    try:
        value = float(raw_value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(value):
        return None
    return value


def _coerce_flag(raw_value: Any) -> Optional[bool]:
    if _is_missing(raw_value):
        return None
    if isinstance(raw_value, bool):
        return raw_value
    if isinstance(raw_value, (int, float)):
        return raw_value != 0
    if isinstance(raw_value, str):
        text_value = raw_value.strip()
        if not text_value:
            return None
        if text_value.lower() == "true":
            return True
        numeric_value = _safe_float(text_value)
        return numeric_value is not None and numeric_value != 0
    return False


def _coerce_unknown_tokens(raw_value: Any) -> Tuple[str, ...]:
    if isinstance(raw_value, str):
        parts = raw_value.split(";")
    elif isinstance(raw_value, (list, tuple)):
        parts = [str(item) for item in raw_value if not _is_missing(item)]
    else:
        return ()
    return tuple(part.strip() for part in parts if part.strip())


def _coerce_text(raw_value: Any) -> Optional[str]:
    if _is_missing(raw_value):
        return None
    if isinstance(raw_value, str):
        return raw_value
    if isinstance(raw_value, (bool, int, float)):
        return str(raw_value)
    return None


def normalize(raw: Mapping[str, Any], position: Optional[int] = None) -> TestCase:
    if not isinstance(raw, Mapping):
        raise MalformedRecordError(
            f"Record must be an object, got {type(raw).__name__}.",
            position=position,
        )

    record_id = _coerce_text(raw.get("id"))
    text_fields: Dict[str, str] = {}
    for field_name in REQUIRED_TEXT_FIELDS:
        text_value = _coerce_text(raw.get(field_name))
        if text_value is None:
            raise MalformedRecordError(
                f"Required field '{field_name}' is missing or not text.",
                position=position,
                record_id=record_id,
                field=field_name,
            )
        text_fields[field_name] = text_value

    fields: Dict[str, Any] = dict(text_fields)
    fields["generated_sql"] = _coerce_text(raw.get("generated_sql")) or ""

    for field_name in REQUIRED_SCORE_FIELDS:
        fields[field_name] = _safe_float(raw.get(field_name)) or 0.0

    # Our own exports carry the stored value under semantic_score_legacy and the
    # recomputed composite under semantic_score.
    legacy_value = raw.get("semantic_score_legacy")
    if _safe_float(legacy_value) is None:
        legacy_value = raw.get("semantic_score")
    fields["semantic_score_legacy"] = _safe_float(legacy_value) or 0.0

    for field_name in OPTIONAL_SCORE_FIELDS:
        fields[field_name] = _safe_float(raw.get(field_name))

    for field_name in OPTIONAL_FLAG_FIELDS:
        fields[field_name] = _coerce_flag(raw.get(field_name))

    fields["unknown_tokens"] = _coerce_unknown_tokens(raw.get("unknown_tokens"))

    try:
        return TestCase.model_validate(fields)
    except ValidationError as error:
        raise MalformedRecordError(
            f"Record failed validation: {error}",
            position=position,
            record_id=record_id,
        ) from error


def normalize_records(raw_records: Sequence[Mapping[str, Any]], on_malformed: str = "abort") -> NormalizationResult:
    if on_malformed not in MALFORMED_POLICIES:
        raise ValueError(f"on_malformed must be one of {sorted(MALFORMED_POLICIES)}, got: {on_malformed}")
    if isinstance(raw_records, (str, bytes, Mapping)) or not isinstance(raw_records, Sequence):
        raise UnsupportedFormatError(
            f"Expected a sequence of record objects, got {type(raw_records).__name__}."
        )

    test_cases: List[TestCase] = []
    errors: List[MalformedRecordError] = []
    for position, raw in enumerate(raw_records):
        try:
            test_cases.append(normalize(raw, position=position))
        except MalformedRecordError as error:
            if on_malformed == "abort":
                raise
            logger.warning("Skipping malformed record: %s", error)
            errors.append(error)

    logger.debug("Normalized %d of %d records", len(test_cases), len(raw_records))
    return NormalizationResult(test_cases=tuple(test_cases), errors=errors)
