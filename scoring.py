# scoring.py

import numpy as np
import pandas as pd

from config import (HIGH_RISK_BELOW, MAX_ANSWER, MODERATE_RISK_BELOW,
                    QUESTIONS, VALID_ANSWERS, question_key)
from errors import ValidationError
from models import DomainResult, RiskLevel

SCORE_STEP = 100 // MAX_ANSWER  # 25 points per ordinal step

FRAME_COLUMNS = ["submission", "sector", "key", "domain", "value", "corrected"]


def round_half_up(numerator, denominator):
    """
    ``numerator / denominator`` rounded to the nearest integer, halves going
    up (62.5 -> 63, 12.5 -> 13).
    """
    return (2 * numerator + denominator) // (2 * denominator)


def corrected_score(value, inverted):
    """
    Map a raw 0-4 answer onto the 0-100 axis, flipping polarity for inverted
    questions.

    Non-inverted: 0 -> 0, 4 -> 100
    Inverted:     0 -> 100, 4 -> 0

    A higher corrected score always means a lower risk.
    """
    if value not in VALID_ANSWERS:
        raise ValidationError(f"Resposta inválida: {value!r}")
    v = int(value)
    return (MAX_ANSWER - v) * SCORE_STEP if inverted else v * SCORE_STEP


def classify(score):
    """Risk tier of a domain score: below 50 is High, below 75 Moderate, else Low."""
    if score < HIGH_RISK_BELOW:
        return RiskLevel.HIGH
    if score < MODERATE_RISK_BELOW:
        return RiskLevel.MODERATE
    return RiskLevel.LOW


def _field(sub, name, default=None):
    if isinstance(sub, dict):
        return sub.get(name, default)
    return getattr(sub, name, default)


def responses_frame(submissions, questions=QUESTIONS):
    """
    Flatten submissions into one row per recorded answer.

    Args:
        submissions (iterable): AssessmentSubmission models or plain dicts
        questions (list): question bank, in positional order

    Returns:
        pd.DataFrame: columns submission, sector, key, domain, value, corrected
    """
    rows = []
    for n, sub in enumerate(submissions):
        answers = _field(sub, "answers") or {}
        for i, q in enumerate(questions):
            key = question_key(i)
            v = answers.get(key)
            if v is None:
                continue
            rows.append(
                {
                    "submission": _field(sub, "id") or n,
                    "sector": _field(sub, "sector", ""),
                    "key": key,
                    "domain": q["domain"],
                    "value": int(v),
                    "corrected": corrected_score(v, q["inverted"]),
                }
            )
    return pd.DataFrame(rows, columns=FRAME_COLUMNS)


def _domain_order(questions):
    order = {}
    for q in questions:
        order.setdefault(q["domain"], len(order))
    return order


def compute_domain_results(submissions, questions=QUESTIONS):
    """
    Compute one DomainResult per domain that received at least one answer.

    Every recorded answer is converted to its corrected score and bucketed by
    the domain of its question. The bucket mean is rounded half-up to an
    integer and classified. Domains without answers are omitted.

    Args:
        submissions (iterable): all submissions for one organization
        questions (list): question bank, in positional order

    Returns:
        list[DomainResult]: ordered by first appearance in the question bank
    """
    df = responses_frame(submissions, questions)
    if df.empty:
        return []
    groups = df.groupby("domain").agg(total=("corrected", "sum"), n=("corrected", "count"))
    order = _domain_order(questions)
    results = []
    for domain in sorted(groups.index, key=lambda d: order.get(d, len(order))):
        total = int(groups.at[domain, "total"])
        n = int(groups.at[domain, "n"])
        score = round_half_up(total, n)
        results.append(
            DomainResult(domain=domain, score=score, classification=classify(score))
        )
    return results


def classification_distribution(results):
    """Number of domains per risk tier, tiers with no domain left out."""
    counts = {}
    for level in (RiskLevel.LOW, RiskLevel.MODERATE, RiskLevel.HIGH):
        n = sum(1 for r in results if r.classification == level)
        if n:
            counts[level] = n
    return counts


def sector_domain_matrix(submissions, questions=QUESTIONS):
    """
    Mean corrected score per (sector, domain), as a sector x domain pivot.

    Empty input yields an empty frame.
    """
    df = responses_frame(submissions, questions)
    if df.empty:
        return pd.DataFrame(dtype=float)
    domains = [d for d in _domain_order(questions) if d in set(df["domain"])]
    pv = df.pivot_table(index="sector", columns="domain", values="corrected", aggfunc="mean")
    # half-up, like the domain scores
    return np.floor(pv.reindex(columns=domains) + 0.5)
