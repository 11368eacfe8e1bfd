from __future__ import annotations

from enum import Enum
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator


# Scores zeroed when the model produced no SQL at all.
BLANK_SQL_ZEROED_FIELDS = (
    "syntax_score",
    "codebert_intent_score",
    "codebert_sqlsim_score",
    "flane5_intent_score",
    "flane5_sqlsim_score",
)


class Scorer(str, Enum):
    CODEBERT = "codebert"
    FLANE5 = "flane5"

    @property
    def display_name(self) -> str:
        return {"codebert": "CodeBERT", "flane5": "FLANE5"}[self.value]

    @property
    def intent_field(self) -> str:
        return f"{self.value}_intent_score"

    @property
    def sqlsim_field(self) -> str:
        return f"{self.value}_sqlsim_score"


class ScoreBucket(str, Enum):
    EXCELLENT = "Excellent"
    GOOD = "Good"
    FAIR = "Fair"
    POOR = "Poor"


class TestCase(BaseModel):
    model_config = ConfigDict(frozen=True)

    # Keep pytest from collecting this model as a test class.
    __test__ = False

    id: str
    user_prompt: str
    expected_sql: str
    generated_sql: str = ""
    true_label: str

    syntax_score: float = 0.0
    semantic_score_legacy: float = 0.0

    codebert_intent_score: Optional[float] = None
    codebert_sqlsim_score: Optional[float] = None
    flane5_intent_score: Optional[float] = None
    flane5_sqlsim_score: Optional[float] = None

    ngram1_precision: Optional[float] = None
    ngram1_recall: Optional[float] = None
    ngram1_f1: Optional[float] = None
    ngram2_precision: Optional[float] = None
    ngram2_recall: Optional[float] = None
    ngram2_f1: Optional[float] = None
    n_gram_score: Optional[float] = None
    edit_similarity: Optional[float] = None
    bleu_score: Optional[float] = None
    rouge_score: Optional[float] = None
    execution_accuracy: Optional[float] = None
    precision: Optional[float] = None
    recall: Optional[float] = None
    f1_score: Optional[float] = None
    vocab_unknown_count: Optional[float] = None
    vocab_unknown_ratio: Optional[float] = None
    token_count: Optional[float] = None

    has_limit: Optional[bool] = None
    has_offset: Optional[bool] = None
    has_result_type: Optional[bool] = None
    has_cte: Optional[bool] = None
    has_order_by: Optional[bool] = None
    has_group_by: Optional[bool] = None
    has_join: Optional[bool] = None
    exact_match: Optional[bool] = None

    unknown_tokens: Tuple[str, ...] = ()

    @model_validator(mode="before")
    @classmethod
    def apply_blank_generated_sql_rule(cls, value: object) -> object:
        if not isinstance(value, dict):
            return value
        generated_sql = value.get("generated_sql")
        if isinstance(generated_sql, str) and generated_sql.strip():
            return value
        zeroed_value = dict(value)
        for field_name in BLANK_SQL_ZEROED_FIELDS:
            zeroed_value[field_name] = 0.0
        return zeroed_value

    def scorer_scores(self, scorer: Scorer) -> Tuple[Optional[float], Optional[float]]:
        return getattr(self, scorer.intent_field), getattr(self, scorer.sqlsim_field)


class TokenCount(BaseModel):
    model_config = ConfigDict(frozen=True)

    token: str
    count: int


class Summary(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_tests: int = 0
    pass_count: int = 0
    pass_rate: float = 0.0
    average_semantic_score: float = 0.0
    average_syntax_score: float = 0.0
    codebert_pass_count: int = 0
    codebert_pass_rate: float = 0.0
    flane5_pass_count: int = 0
    flane5_pass_rate: float = 0.0
    review_count: int = 0
    score_distribution: Dict[ScoreBucket, int] = Field(
        default_factory=lambda: {bucket: 0 for bucket in ScoreBucket}
    )
    top_unknown_tokens: List[TokenCount] = Field(default_factory=list)

    @property
    def fail_count(self) -> int:
        return self.total_tests - self.pass_count

    def scorer_pass_count(self, scorer: Scorer) -> int:
        return getattr(self, f"{scorer.value}_pass_count")

    def scorer_pass_rate(self, scorer: Scorer) -> float:
        return getattr(self, f"{scorer.value}_pass_rate")


class ConfusionMatrix(BaseModel):
    """Actual (rows) versus predicted (columns) pass/fail counts."""

    model_config = ConfigDict(frozen=True)

    labels: Tuple[str, str] = ("Pass", "Fail")
    matrix: Tuple[Tuple[int, int], Tuple[int, int]] = ((0, 0), (0, 0))
    title: str = "Pass/Fail Classification"

    @property
    def total(self) -> int:
        return sum(sum(row) for row in self.matrix)

    @property
    def correct(self) -> int:
        return sum(self.matrix[index][index] for index in range(len(self.labels)))

    @property
    def misclassified(self) -> int:
        return self.total - self.correct

    @property
    def accuracy(self) -> float:
        total = self.total
        return float(self.correct / total) if total else 0.0

    def cell(self, actual: str, predicted: str) -> int:
        return self.matrix[self.labels.index(actual)][self.labels.index(predicted)]
