from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd

from . import metrics
from .schema import ScoreBucket, Scorer, TestCase

logger = logging.getLogger(__name__)

UNKNOWN_TOKEN_SEPARATOR = "; "
DEFAULT_PROMPT_CHARS = 60

BUCKET_RANGE_LABELS = {
    ScoreBucket.EXCELLENT: "Excellent (>=0.9)",
    ScoreBucket.GOOD: "Good (0.7-0.9)",
    ScoreBucket.FAIR: "Fair (0.5-0.7)",
    ScoreBucket.POOR: "Poor (<0.5)",
}


def export_rows(test_cases: Sequence[TestCase]) -> List[Dict[str, Any]]:
    rows: List[Dict[str, Any]] = []
    for test_case in test_cases:
        row = test_case.model_dump()
        row["unknown_tokens"] = list(test_case.unknown_tokens)
        row["semantic_score"] = metrics.semantic_score(test_case)
        rows.append(row)
    return rows


def failed_cases(test_cases: Sequence[TestCase]) -> List[TestCase]:
    return [test_case for test_case in test_cases if not metrics.overall_pass(test_case)]


def to_json_text(test_cases: Sequence[TestCase]) -> str:
    return json.dumps(export_rows(test_cases), indent=2, ensure_ascii=False)


def _format_csv_value(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, list):
        return UNKNOWN_TOKEN_SEPARATOR.join(value)
    return value


def to_csv_text(test_cases: Sequence[TestCase]) -> str:
    rows = [
        {column_name: _format_csv_value(value) for column_name, value in row.items()}
        for row in export_rows(test_cases)
    ]
    columns = list(TestCase.model_fields) + ["semantic_score"]
    return pd.DataFrame(rows, columns=columns).to_csv(index=False)


def _truncate(text: str, max_chars: int) -> str:
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + "..."


def summary_report(
    test_cases: Sequence[TestCase],
    generated_at: Optional[datetime] = None,
    prompt_chars: int = DEFAULT_PROMPT_CHARS,
) -> str:
    generated_at = generated_at or datetime.now(timezone.utc)
    summary = metrics.summarize(test_cases)

    report_lines = [
        "SQL Validation Pipeline Report",
        f"Generated: {generated_at.isoformat()}",
        "",
        "SUMMARY STATISTICS:",
        f"- Total Test Cases: {summary.total_tests}",
        f"- Overall Pass Rate: {summary.pass_rate:.1f}%",
        f"- Average Semantic Score: {summary.average_semantic_score:.3f}",
        f"- Average Syntax Score: {summary.average_syntax_score:.3f}",
        "",
        "DETAILED BREAKDOWN:",
    ]
    for scorer in Scorer:
        report_lines.append(
            f"- {scorer.display_name} Matches: {summary.scorer_pass_count(scorer)} "
            f"({summary.scorer_pass_rate(scorer):.1f}%)"
        )
    report_lines.append(f"- Overall Passes: {summary.pass_count} ({summary.pass_rate:.1f}%)")

    report_lines.append("")
    report_lines.append("SCORE DISTRIBUTION:")
    for score_bucket in ScoreBucket:
        report_lines.append(f"- {BUCKET_RANGE_LABELS[score_bucket]}: {summary.score_distribution[score_bucket]} tests")

    report_lines.append("")
    report_lines.append("FAILED TESTS:")
    failures = failed_cases(test_cases)
    if not failures:
        report_lines.append("- None")
    for test_case in failures:
        report_lines.append(f"- {test_case.id}: {_truncate(test_case.user_prompt, prompt_chars)}")

    return "\n".join(report_lines) + "\n"


def write_exports(
    test_cases: Sequence[TestCase],
    output_dir: Path,
    prefix: str,
    generated_at: Optional[datetime] = None,
    prompt_chars: int = DEFAULT_PROMPT_CHARS,
) -> Dict[str, Path]:
    generated_at = generated_at or datetime.now(timezone.utc)
    date_stamp = generated_at.date().isoformat()
    output_dir.mkdir(parents=True, exist_ok=True)

    paths = {
        "csv": output_dir / f"{prefix}_{date_stamp}.csv",
        "json": output_dir / f"{prefix}_{date_stamp}.json",
        "report": output_dir / f"{prefix}_report_{date_stamp}.txt",
    }
    paths["csv"].write_text(to_csv_text(test_cases), encoding="utf-8")
    paths["json"].write_text(to_json_text(test_cases), encoding="utf-8")
    paths["report"].write_text(
        summary_report(test_cases, generated_at=generated_at, prompt_chars=prompt_chars),
        encoding="utf-8",
    )
    logger.info("Wrote %d records to %s", len(test_cases), output_dir)
    return paths
