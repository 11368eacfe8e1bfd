import pytest
from pydantic import ValidationError

from sqlval_evals.errors import MalformedRecordError, UnsupportedFormatError
from sqlval_evals.normalize import normalize, normalize_records
from sqlval_evals.schema import TestCase


def test_normalize_blank_generated_sql_zeroes_syntax_and_scorer_scores(make_raw_record):
    raw = make_raw_record(
        generated_sql="   ",
        syntax_score=1,
        codebert_intent_score=0.9,
        codebert_sqlsim_score=0.9,
        flane5_intent_score="0.8",
        flane5_sqlsim_score="0.7",
    )

    test_case = normalize(raw)

    assert test_case.syntax_score == 0
    assert test_case.codebert_intent_score == 0
    assert test_case.codebert_sqlsim_score == 0
    assert test_case.flane5_intent_score == 0
    assert test_case.flane5_sqlsim_score == 0


def test_direct_construction_also_applies_blank_sql_rule():
    test_case = TestCase(
        id="t9",
        user_prompt="p",
        expected_sql="SELECT 1",
        generated_sql="",
        true_label="fail",
        syntax_score=0.8,
        codebert_intent_score=1.0,
    )
    assert test_case.syntax_score == 0
    assert test_case.codebert_intent_score == 0


def test_normalize_keeps_absent_optional_metrics_as_none(make_raw_record):
    test_case = normalize(make_raw_record(precision="", bleu_score="n/a"))

    assert test_case.precision is None
    assert test_case.bleu_score is None
    assert test_case.recall is None
    assert test_case.codebert_intent_score is None
    assert test_case.has_join is None


def test_normalize_required_scores_default_to_zero(make_raw_record):
    test_case = normalize(make_raw_record(syntax_score="oops", semantic_score=None))

    assert test_case.syntax_score == 0
    assert test_case.semantic_score_legacy == 0


def test_normalize_parses_csv_style_strings(make_raw_record):
    test_case = normalize(
        make_raw_record(
            syntax_score="0.75",
            precision="0.5",
            has_limit="1",
            has_offset="0",
            has_cte="TRUE",
            has_join="false",
            exact_match=True,
            has_group_by=2,
        )
    )

    assert test_case.syntax_score == 0.75
    assert test_case.precision == 0.5
    assert test_case.has_limit is True
    assert test_case.has_offset is False
    assert test_case.has_cte is True
    assert test_case.has_join is False
    assert test_case.exact_match is True
    assert test_case.has_group_by is True


def test_normalize_rejects_non_finite_numbers(make_raw_record):
    test_case = normalize(make_raw_record(recall=float("nan"), f1_score="inf"))

    assert test_case.recall is None
    assert test_case.f1_score is None


def test_normalize_splits_unknown_token_string(make_raw_record):
    test_case = normalize(make_raw_record(unknown_tokens="foo; bar ;baz"))
    assert test_case.unknown_tokens == ("foo", "bar", "baz")


def test_normalize_unknown_tokens_list_and_malformed_values(make_raw_record):
    assert normalize(make_raw_record(unknown_tokens=["a", " b ", ""])).unknown_tokens == ("a", "b")
    assert normalize(make_raw_record(unknown_tokens=";;")).unknown_tokens == ()
    assert normalize(make_raw_record(unknown_tokens=42)).unknown_tokens == ()
    assert normalize(make_raw_record()).unknown_tokens == ()


def test_normalize_prefers_legacy_field_from_own_export(make_raw_record):
    test_case = normalize(make_raw_record(semantic_score=0.9, semantic_score_legacy=0.4))
    assert test_case.semantic_score_legacy == 0.4


def test_normalize_coerces_numeric_identity_fields(make_raw_record):
    test_case = normalize(make_raw_record(id=17))
    assert test_case.id == "17"


def test_normalize_missing_generated_sql_is_blank(make_raw_record):
    raw = make_raw_record(codebert_intent_score=0.9)
    del raw["generated_sql"]

    test_case = normalize(raw)

    assert test_case.generated_sql == ""
    assert test_case.codebert_intent_score == 0


@pytest.mark.parametrize("field_name", ["id", "user_prompt", "expected_sql", "true_label"])
def test_normalize_missing_required_field_raises(make_raw_record, field_name):
    raw = make_raw_record()
    del raw[field_name]

    with pytest.raises(MalformedRecordError) as excinfo:
        normalize(raw, position=3)

    assert excinfo.value.field == field_name
    assert excinfo.value.position == 3
    assert "row 3" in str(excinfo.value)


def test_normalize_rejects_container_identity_field(make_raw_record):
    with pytest.raises(MalformedRecordError) as excinfo:
        normalize(make_raw_record(user_prompt=["not", "text"]))
    assert excinfo.value.record_id == "t1"


def test_normalize_rejects_non_mapping_record():
    with pytest.raises(MalformedRecordError):
        normalize(["t1", "prompt"])


def test_normalize_records_abort_propagates_first_error(make_raw_record):
    records = [make_raw_record(id="ok"), {"id": "broken"}]

    with pytest.raises(MalformedRecordError) as excinfo:
        normalize_records(records)

    assert excinfo.value.position == 1
    assert excinfo.value.record_id == "broken"


def test_normalize_records_skip_reports_every_error(make_raw_record):
    records = [make_raw_record(id="a"), {"id": "b"}, make_raw_record(id="a"), "garbage"]

    result = normalize_records(records, on_malformed="skip")

    assert [test_case.id for test_case in result.test_cases] == ["a", "a"]
    assert [error.position for error in result.errors] == [1, 3]


def test_normalize_records_rejects_non_sequence_input(make_raw_record):
    with pytest.raises(UnsupportedFormatError):
        normalize_records(make_raw_record())
    with pytest.raises(UnsupportedFormatError):
        normalize_records("id,user_prompt")


def test_normalize_records_rejects_unknown_policy(make_raw_record):
    with pytest.raises(ValueError):
        normalize_records([make_raw_record()], on_malformed="ignore")


def test_test_case_is_immutable(make_raw_record):
    test_case = normalize(make_raw_record())
    with pytest.raises(ValidationError):
        test_case.syntax_score = 0.1
