"""Tabular review helpers for a normalized result set."""

from __future__ import annotations

from functools import cached_property
from typing import Dict, List, Sequence, Tuple

import pandas as pd

from . import metrics
from .export import failed_cases
from .schema import ConfusionMatrix, Scorer, Summary, TestCase

PASS_FILTERS = {"all", "pass", "fail"}
SEARCH_COLUMNS = ["id", "user_prompt", "true_label"]
PREVIEW_COLUMNS = [
    "id",
    "user_prompt",
    "true_label",
    "syntax_score",
    "semantic_score",
    "semantic_bucket",
    "confidence",
    "codebert_passed",
    "flane5_passed",
    "overall_passed",
    "needs_review",
]


def build_results_frame(test_cases: Sequence[TestCase]) -> pd.DataFrame:
    rows: List[Dict[str, object]] = []
    for test_case in test_cases:
        row: Dict[str, object] = test_case.model_dump()
        semantic_value = metrics.semantic_score_or_none(test_case)
        row["semantic_score"] = float("nan") if semantic_value is None else semantic_value
        row["semantic_bucket"] = metrics.bucket(metrics.semantic_score(test_case)).value
        row["syntax_bucket"] = metrics.bucket(test_case.syntax_score).value
        row["confidence"] = metrics.confidence(test_case)
        row["needs_review"] = metrics.needs_review(test_case)
        for scorer in Scorer:
            row[f"{scorer.value}_passed"] = metrics.scorer_verdict(test_case, scorer)
        row["overall_passed"] = metrics.overall_pass(test_case)
        rows.append(row)

    columns = list(TestCase.model_fields) + [
        "semantic_score",
        "semantic_bucket",
        "syntax_bucket",
        "confidence",
        "needs_review",
        "codebert_passed",
        "flane5_passed",
        "overall_passed",
    ]
    return pd.DataFrame(rows, columns=columns)


def apply_filters(
    results_frame: pd.DataFrame,
    search_text: str = "",
    pass_filter: str = "all",
    score_range: Tuple[float, float] = (0.0, 1.0),
) -> pd.DataFrame:
    if pass_filter not in PASS_FILTERS:
        raise ValueError(f"pass_filter must be one of {sorted(PASS_FILTERS)}, got: {pass_filter}")

    filtered_frame = results_frame.copy()

    normalized_search = search_text.strip().lower()
    if normalized_search:
        search_mask = pd.Series(False, index=filtered_frame.index)
        for column_name in SEARCH_COLUMNS:
            search_mask = search_mask | filtered_frame[column_name].astype(str).str.lower().str.contains(
                normalized_search, regex=False
            )
        filtered_frame = filtered_frame[search_mask]

    if pass_filter == "pass":
        filtered_frame = filtered_frame[filtered_frame["overall_passed"].astype(bool)]
    elif pass_filter == "fail":
        filtered_frame = filtered_frame[~filtered_frame["overall_passed"].astype(bool)]

    low, high = score_range
    semantic_values = filtered_frame["semantic_score"].fillna(0.0)
    filtered_frame = filtered_frame[(semantic_values >= low) & (semantic_values <= high)]

    return filtered_frame.reset_index(drop=True)


def sort_results(results_frame: pd.DataFrame, column: str = "id", descending: bool = False) -> pd.DataFrame:
    if column not in results_frame.columns:
        raise ValueError(f"Unknown sort column: {column}")
    return results_frame.sort_values(
        column, ascending=not descending, kind="mergesort", na_position="last"
    ).reset_index(drop=True)


class ResultSet:
    """Immutable snapshot of normalized test cases with memoized derived views."""

    def __init__(self, test_cases: Sequence[TestCase], top_token_limit: int = metrics.TOP_UNKNOWN_TOKEN_COUNT):
        self.test_cases: Tuple[TestCase, ...] = tuple(test_cases)
        self.top_token_limit = top_token_limit

    def __len__(self) -> int:
        return len(self.test_cases)

    @cached_property
    def summary(self) -> Summary:
        return metrics.summarize(self.test_cases, top_token_limit=self.top_token_limit)

    @cached_property
    def confusion_matrix(self) -> ConfusionMatrix:
        return metrics.confusion_matrix(self.test_cases)

    @cached_property
    def frame(self) -> pd.DataFrame:
        return build_results_frame(self.test_cases)

    def failures(self) -> List[TestCase]:
        return failed_cases(self.test_cases)
