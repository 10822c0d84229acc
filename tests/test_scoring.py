import random

import pytest

from config import DOMAINS, QUESTION_KEYS, QUESTIONS
from errors import ValidationError
from models import RiskLevel
from scoring import (classification_distribution, classify,
                     compute_domain_results, corrected_score,
                     responses_frame, round_half_up, sector_domain_matrix)
from tests.conftest import SMALL_BANK, make_submission


@pytest.mark.parametrize(
    "value,inverted,expected",
    [(0, False, 0), (4, False, 100), (2, False, 50), (0, True, 100), (4, True, 0), (1, True, 75)],
)
def test_corrected_score(value, inverted, expected):
    assert corrected_score(value, inverted) == expected


@pytest.mark.parametrize("value", [-1, 5, "2", None])
def test_corrected_score_rejects_invalid_answer(value):
    with pytest.raises(ValidationError):
        corrected_score(value, False)


@pytest.mark.parametrize(
    "score,level",
    [
        (0, RiskLevel.HIGH),
        (49, RiskLevel.HIGH),
        (50, RiskLevel.MODERATE),
        (74, RiskLevel.MODERATE),
        (75, RiskLevel.LOW),
        (100, RiskLevel.LOW),
    ],
)
def test_classification_boundaries(score, level):
    assert classify(score) == level


def test_one_domain_two_questions_one_inverted_is_moderate():
    bank = [
        {"domain": "Carga", "text": "a", "inverted": False},
        {"domain": "Carga", "text": "b", "inverted": True},
    ]
    results = compute_domain_results([make_submission({"P1": 4, "P2": 4})], bank)
    assert len(results) == 1
    assert results[0].domain == "Carga"
    assert results[0].score == 50
    assert results[0].classification == RiskLevel.MODERATE


def test_domains_without_answers_are_omitted():
    results = compute_domain_results([make_submission({"P1": 4, "P2": 0})], SMALL_BANK)
    assert [r.domain for r in results] == ["Carga"]
    assert results[0].score == 100
    assert results[0].classification == RiskLevel.LOW


def test_no_submissions_gives_no_results():
    assert compute_domain_results([], SMALL_BANK) == []


def test_mean_is_rounded_half_up():
    # Carga: 50 and 75 -> 62.5 -> 63 ; Apoio: 25 and 50 -> 37.5 -> 38
    subs = [
        make_submission({"P1": 2, "P2": 1, "P3": 1}),
        make_submission({"P3": 2}),
    ]
    scores = {r.domain: r.score for r in compute_domain_results(subs, SMALL_BANK)}
    assert scores == {"Carga": 63, "Apoio": 38}


def test_full_bank_results_cover_every_domain_in_range():
    rng = random.Random(7)
    subs = [
        make_submission({k: rng.randint(0, 4) for k in QUESTION_KEYS})
        for _ in range(25)
    ]
    results = compute_domain_results(subs)
    assert [r.domain for r in results] == [d for d in DOMAINS if any(q["domain"] == d for q in QUESTIONS)]
    for r in results:
        assert 0 <= r.score <= 100
        assert r.classification == classify(r.score)


def test_results_do_not_depend_on_submission_order():
    rng = random.Random(3)
    subs = [make_submission({k: rng.randint(0, 4) for k in QUESTION_KEYS}) for _ in range(12)]
    first = {r.domain: (r.score, r.classification) for r in compute_domain_results(subs)}
    shuffled = list(subs)
    rng.shuffle(shuffled)
    second = {r.domain: (r.score, r.classification) for r in compute_domain_results(shuffled)}
    assert first == second


def test_plain_dict_submissions_are_accepted():
    results = compute_domain_results([{"answers": {"P1": 0, "P2": 4, "P3": 4}}], SMALL_BANK)
    assert {r.domain: r.score for r in results} == {"Carga": 0, "Apoio": 100}


def test_severity_and_probability_follow_classification():
    (result,) = compute_domain_results([make_submission({"P3": 1})], SMALL_BANK)
    assert result.classification == RiskLevel.HIGH
    assert result.severity == result.probability == RiskLevel.HIGH


def test_classification_distribution_skips_empty_tiers():
    subs = [make_submission({"P1": 4, "P2": 0, "P3": 0})]
    dist = classification_distribution(compute_domain_results(subs, SMALL_BANK))
    assert dist == {RiskLevel.LOW: 1, RiskLevel.HIGH: 1}


def test_responses_frame_has_one_row_per_answer():
    df = responses_frame([make_submission({"P1": 1, "P3": 3})], SMALL_BANK)
    assert list(df["key"]) == ["P1", "P3"]
    assert list(df["corrected"]) == [25, 75]


def test_sector_domain_matrix():
    subs = [
        make_submission({"P1": 4, "P2": 4, "P3": 4}, sector="Logística"),
        make_submission({"P1": 0, "P2": 0, "P3": 0}, sector="Administrativo"),
    ]
    pv = sector_domain_matrix(subs, SMALL_BANK)
    assert list(pv.columns) == ["Carga", "Apoio"]
    assert pv.loc["Logística", "Carga"] == 50
    assert pv.loc["Logística", "Apoio"] == 100
    assert pv.loc["Administrativo", "Apoio"] == 0
    assert sector_domain_matrix([], SMALL_BANK).empty


@pytest.mark.parametrize(
    "num,den,expected",
    [(125, 2, 63), (75, 2, 38), (5, 2, 3), (1, 3, 0), (2, 3, 1), (100, 8, 13), (700, 8, 88)],
)
def test_round_half_up(num, den, expected):
    assert round_half_up(num, den) == expected


def test_sector_matrix_rounds_half_up():
    subs = [
        make_submission({"P1": 2}, sector="Logística"),
        make_submission({"P1": 3}, sector="Logística"),
    ]
    pv = sector_domain_matrix(subs, SMALL_BANK)
    assert pv.loc["Logística", "Carga"] == 63
