import json
from pathlib import Path

from sqlval_evals.cli import main


def _write_results(tmp_path: Path) -> Path:
    records = [
        {
            "id": "q1",
            "user_prompt": "Count orders",
            "expected_sql": "SELECT COUNT(*) FROM orders",
            "generated_sql": "SELECT COUNT(*) FROM orders",
            "syntax_score": 1,
            "semantic_score": 0.9,
            "true_label": "pass",
            "codebert_intent_score": 0.95,
            "codebert_sqlsim_score": 0.85,
            "precision": 1,
            "unknown_tokens": "orders",
        },
        {
            "id": "q2",
            "user_prompt": "Average basket size",
            "expected_sql": "SELECT AVG(total) FROM baskets",
            "generated_sql": "",
            "syntax_score": 1,
            "semantic_score": 0.2,
            "true_label": "fail",
        },
    ]
    input_path = tmp_path / "results.json"
    input_path.write_text(json.dumps(records), encoding="utf-8")
    return input_path


def test_cli_summarize_prints_key_value_lines(tmp_path: Path, capsys):
    exit_code = main(["summarize", "--input", str(_write_results(tmp_path))])

    output = capsys.readouterr().out
    assert exit_code == 0
    assert "total_tests=2" in output
    assert "pass_rate=50.0" in output
    assert "codebert_pass_rate=50.0" in output
    assert "top_unknown_tokens=orders:1" in output
    assert "confusion_matrix=[[1, 0], [0, 1]]" in output


def test_cli_export_failed_only_writes_files(tmp_path: Path, capsys):
    output_dir = tmp_path / "exports"

    exit_code = main(
        ["export", "--input", str(_write_results(tmp_path)), "--output-dir", str(output_dir), "--failed-only"]
    )

    output = capsys.readouterr().out
    assert exit_code == 0
    assert "exported_records=1" in output
    exported = json.loads(next(output_dir.glob("sql_validation_failures_*.json")).read_text(encoding="utf-8"))
    assert [row["id"] for row in exported] == ["q2"]


def test_cli_review_filters_rows(tmp_path: Path, capsys):
    exit_code = main(["review", "--input", str(_write_results(tmp_path)), "--status", "fail"])

    output = capsys.readouterr().out
    assert exit_code == 0
    assert "matched_rows=1" in output
    assert "q2" in output


def test_cli_reports_malformed_input(tmp_path: Path, capsys):
    input_path = tmp_path / "results.json"
    input_path.write_text(json.dumps([{"id": "q1"}]), encoding="utf-8")

    exit_code = main(["summarize", "--input", str(input_path)])

    assert exit_code == 1
    assert "error=Required field 'user_prompt'" in capsys.readouterr().err


def test_cli_rejects_unsupported_file_type(tmp_path: Path, capsys):
    input_path = tmp_path / "results.txt"
    input_path.write_text("id\n", encoding="utf-8")

    assert main(["summarize", "--input", str(input_path)]) == 1
    assert "Unsupported file type" in capsys.readouterr().err
