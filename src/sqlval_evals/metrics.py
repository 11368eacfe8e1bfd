"""Canonical scoring rules for SQL validation test cases.

Every pass/fail decision, composite score and collection summary is computed
here. Callers (exports, review tables, the CLI) must not re-derive verdicts
with their own thresholds.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Sequence

from .schema import ConfusionMatrix, ScoreBucket, Scorer, Summary, TestCase, TokenCount

PASS_THRESHOLD = 0.7
SCORER_PASS_THRESHOLD = 0.6
REVIEW_CONFIDENCE_THRESHOLD = 0.6
TOP_UNKNOWN_TOKEN_COUNT = 5

BUCKET_LOWER_BOUNDS = (
    (ScoreBucket.EXCELLENT, 0.9),
    (ScoreBucket.GOOD, 0.7),
    (ScoreBucket.FAIR, 0.5),
)

CONFIDENCE_WEIGHTS = {
    "intent": 0.25,
    "sqlsim": 0.25,
    "vocab": 0.20,
    "syntax": 0.15,
    "f1": 0.15,
}

CONFUSION_LABELS = ("Pass", "Fail")
CONFUSION_TITLE = "Pass/Fail Classification"


def scorer_composite(test_case: TestCase, scorer: Scorer) -> Optional[float]:
    intent_score, sqlsim_score = test_case.scorer_scores(scorer)
    if intent_score is None or sqlsim_score is None:
        return None
    return 0.5 * intent_score + 0.5 * sqlsim_score


def semantic_score_or_none(test_case: TestCase) -> Optional[float]:
    composites = [scorer_composite(test_case, scorer) for scorer in Scorer]
    present = [value for value in composites if value is not None]
    if not present:
        return None
    return max(present)


def semantic_score(test_case: TestCase) -> float:
    value = semantic_score_or_none(test_case)
    return 0.0 if value is None else value


def scorer_verdict(test_case: TestCase, scorer: Scorer) -> bool:
    composite = scorer_composite(test_case, scorer)
    return composite is not None and composite > SCORER_PASS_THRESHOLD


def _best_of(values: Iterable[Optional[float]]) -> float:
    present = [value for value in values if value is not None]
    return max(present) if present else 0.0


def confidence(test_case: TestCase) -> float:
    best_intent = _best_of(test_case.scorer_scores(scorer)[0] for scorer in Scorer)
    best_sqlsim = _best_of(test_case.scorer_scores(scorer)[1] for scorer in Scorer)

    vocab_score = 0.0
    if test_case.vocab_unknown_ratio is not None:
        vocab_score = max(0.0, 1.0 - test_case.vocab_unknown_ratio)

    f1_score = test_case.f1_score if test_case.f1_score is not None else 0.0

    return (
        CONFIDENCE_WEIGHTS["intent"] * best_intent
        + CONFIDENCE_WEIGHTS["sqlsim"] * best_sqlsim
        + CONFIDENCE_WEIGHTS["vocab"] * vocab_score
        + CONFIDENCE_WEIGHTS["syntax"] * test_case.syntax_score
        + CONFIDENCE_WEIGHTS["f1"] * f1_score
    )


def needs_review(test_case: TestCase) -> bool:
    return confidence(test_case) < REVIEW_CONFIDENCE_THRESHOLD


def _all_retrieval_metrics_zero(test_case: TestCase) -> bool:
    # None means "not reported", which is different from a computed zero.
    return test_case.precision == 0 and test_case.recall == 0 and test_case.f1_score == 0


def overall_pass(test_case: TestCase) -> bool:
    if _all_retrieval_metrics_zero(test_case):
        return False
    return semantic_score(test_case) > PASS_THRESHOLD


def bucket(score: float) -> ScoreBucket:
    for score_bucket, lower_bound in BUCKET_LOWER_BOUNDS:
        if score >= lower_bound:
            return score_bucket
    return ScoreBucket.POOR


def _empty_distribution() -> Dict[ScoreBucket, int]:
    return {score_bucket: 0 for score_bucket in ScoreBucket}


def score_distribution(test_cases: Sequence[TestCase]) -> Dict[ScoreBucket, int]:
    distribution = _empty_distribution()
    for test_case in test_cases:
        distribution[bucket(semantic_score(test_case))] += 1
    return distribution


def _rank_tokens(token_counts: Dict[str, int], limit: int) -> List[TokenCount]:
    # sorted() is stable, so dict insertion order breaks ties.
    ranked = sorted(token_counts.items(), key=lambda item: item[1], reverse=True)
    return [TokenCount(token=token, count=count) for token, count in ranked[:limit]]


def top_unknown_tokens(test_cases: Sequence[TestCase], limit: int = TOP_UNKNOWN_TOKEN_COUNT) -> List[TokenCount]:
    token_counts: Dict[str, int] = {}
    for test_case in test_cases:
        for token in test_case.unknown_tokens:
            token_counts[token] = token_counts.get(token, 0) + 1
    return _rank_tokens(token_counts, limit)


def _percent(count: int, total: int) -> float:
    return 100.0 * count / total if total else 0.0


def summarize(test_cases: Sequence[TestCase], top_token_limit: int = TOP_UNKNOWN_TOKEN_COUNT) -> Summary:
    total_tests = len(test_cases)
    if total_tests == 0:
        return Summary()

    pass_count = 0
    review_count = 0
    semantic_total = 0.0
    syntax_total = 0.0
    scorer_pass_counts = {scorer: 0 for scorer in Scorer}
    distribution = _empty_distribution()
    token_counts: Dict[str, int] = {}

    for test_case in test_cases:
        record_semantic_score = semantic_score(test_case)
        semantic_total += record_semantic_score
        syntax_total += test_case.syntax_score
        distribution[bucket(record_semantic_score)] += 1

        if overall_pass(test_case):
            pass_count += 1
        if needs_review(test_case):
            review_count += 1
        for scorer in Scorer:
            if scorer_verdict(test_case, scorer):
                scorer_pass_counts[scorer] += 1
        for token in test_case.unknown_tokens:
            token_counts[token] = token_counts.get(token, 0) + 1

    return Summary(
        total_tests=total_tests,
        pass_count=pass_count,
        pass_rate=_percent(pass_count, total_tests),
        average_semantic_score=semantic_total / total_tests,
        average_syntax_score=syntax_total / total_tests,
        codebert_pass_count=scorer_pass_counts[Scorer.CODEBERT],
        codebert_pass_rate=_percent(scorer_pass_counts[Scorer.CODEBERT], total_tests),
        flane5_pass_count=scorer_pass_counts[Scorer.FLANE5],
        flane5_pass_rate=_percent(scorer_pass_counts[Scorer.FLANE5], total_tests),
        review_count=review_count,
        score_distribution=distribution,
        top_unknown_tokens=_rank_tokens(token_counts, top_token_limit),
    )


def confusion_matrix(test_cases: Sequence[TestCase]) -> ConfusionMatrix:
    counts = [[0, 0], [0, 0]]
    for test_case in test_cases:
        actual_index = 0 if overall_pass(test_case) else 1
        predicted_index = 0 if semantic_score(test_case) > PASS_THRESHOLD else 1
        counts[actual_index][predicted_index] += 1

    return ConfusionMatrix(
        labels=CONFUSION_LABELS,
        matrix=(tuple(counts[0]), tuple(counts[1])),
        title=CONFUSION_TITLE,
    )
