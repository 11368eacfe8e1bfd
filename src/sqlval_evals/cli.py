import argparse
import logging
import sys
from pathlib import Path

from . import export, review
from .config import ReportConfig, load_config
from .io import load_raw_records
from .normalize import normalize_records
from .schema import ScoreBucket, Scorer


def _add_common_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--input", required=True, help="Path to a CSV or JSON results file.")
    parser.add_argument("--config", default=None, help="Optional YAML/JSON config file.")


def _load_result_set(args: argparse.Namespace, config: ReportConfig) -> review.ResultSet:
    raw_records = load_raw_records(Path(args.input))
    normalization = normalize_records(raw_records, on_malformed=config.on_malformed)
    for error in normalization.errors:
        print(f"skipped_record={error}", file=sys.stderr)
    return review.ResultSet(normalization.test_cases, top_token_limit=config.top_unknown_tokens)


def _cmd_summarize(args: argparse.Namespace, config: ReportConfig) -> None:
    result_set = _load_result_set(args, config)
    summary = result_set.summary
    matrix = result_set.confusion_matrix

    print(f"total_tests={summary.total_tests}")
    print(f"pass_rate={summary.pass_rate:.1f}")
    print(f"average_semantic_score={summary.average_semantic_score:.3f}")
    print(f"average_syntax_score={summary.average_syntax_score:.3f}")
    for scorer in Scorer:
        print(f"{scorer.value}_pass_rate={summary.scorer_pass_rate(scorer):.1f}")
    print(f"needs_review={summary.review_count}")
    print(
        "score_distribution="
        + ",".join([f"{score_bucket.value}:{summary.score_distribution[score_bucket]}" for score_bucket in ScoreBucket])
    )
    print("top_unknown_tokens=" + ",".join([f"{item.token}:{item.count}" for item in summary.top_unknown_tokens]))
    print(f"confusion_matrix={[list(row) for row in matrix.matrix]}")
    print(f"confusion_accuracy={matrix.accuracy:.3f}")


def _cmd_export(args: argparse.Namespace, config: ReportConfig) -> None:
    result_set = _load_result_set(args, config)
    test_cases = result_set.failures() if args.failed_only else result_set.test_cases
    prefix = f"{config.export_prefix}_failures" if args.failed_only else config.export_prefix
    output_dir = Path(args.output_dir) if args.output_dir else config.output_root

    paths = export.write_exports(
        test_cases,
        output_dir=output_dir,
        prefix=prefix,
        prompt_chars=config.failure_prompt_chars,
    )
    print(f"exported_records={len(test_cases)}")
    for kind, path in paths.items():
        print(f"{kind}_path={path}")


def _cmd_review(args: argparse.Namespace, config: ReportConfig) -> None:
    result_set = _load_result_set(args, config)
    filtered_frame = review.apply_filters(
        result_set.frame,
        search_text=args.search,
        pass_filter=args.status,
        score_range=(args.min_score, args.max_score),
    )
    sorted_frame = review.sort_results(filtered_frame, column=args.sort, descending=args.desc)

    print(f"matched_rows={sorted_frame.shape[0]}")
    if not sorted_frame.empty:
        print(sorted_frame[review.PREVIEW_COLUMNS].to_string(index=False))


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="SQL validation results summary and export CLI.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    summarize_parser = subparsers.add_parser("summarize", help="Print summary statistics and the confusion matrix.")
    _add_common_args(summarize_parser)
    summarize_parser.set_defaults(handler=_cmd_summarize)

    export_parser = subparsers.add_parser("export", help="Write CSV, JSON and text report exports.")
    _add_common_args(export_parser)
    export_parser.add_argument("--output-dir", default=None, help="Overrides output_root from the config.")
    export_parser.add_argument("--failed-only", action="store_true", help="Export only failing test cases.")
    export_parser.set_defaults(handler=_cmd_export)

    review_parser = subparsers.add_parser("review", help="Print a filtered and sorted results table.")
    _add_common_args(review_parser)
    review_parser.add_argument("--search", default="", help="Case-insensitive match on id, prompt or label.")
    review_parser.add_argument("--status", default="all", choices=sorted(review.PASS_FILTERS))
    review_parser.add_argument("--min-score", type=float, default=0.0)
    review_parser.add_argument("--max-score", type=float, default=1.0)
    review_parser.add_argument("--sort", default="id", help="Column to sort by.")
    review_parser.add_argument("--desc", action="store_true", help="Sort descending.")
    review_parser.set_defaults(handler=_cmd_review)

    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    try:
        config = load_config(Path(args.config) if args.config else None)
    except ValueError as error:
        print(f"error={error}", file=sys.stderr)
        return 1

    logging.basicConfig(level=config.log_level, format="%(asctime)s %(name)s %(levelname)s %(message)s")
    try:
        args.handler(args, config)
    except ValueError as error:
        print(f"error={error}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
