"""
Correlation and rank statistics used by bias detection.

Every test returns a TestResult. Empty or degenerate input is not an
error: the statistic is 0.0 and the p-value 1.0.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Sequence

import numpy as np
from scipy import stats

from surveyqc.model import Question, SurveyDatum

logger = logging.getLogger(__name__)


class CoefficientType(Enum):
    """
    Statistic reported in a CorrelationStruct.

    RHO: Spearman's rank correlation
    CHI: chi-squared test of independence
    U: Mann-Whitney U
    V: Cramer's V
    """

    RHO = "rho"
    CHI = "chi"
    U = "U"
    V = "V"


@dataclass(frozen=True)
class TestResult:
    __test__ = False

    statistic: float
    p_value: float


NULL_RESULT = TestResult(statistic=0.0, p_value=1.0)


@dataclass
class CorrelationStruct:
    """
    Result of comparing two questions (or two sub-samples of one).

    Properties:
        coefficient: Which statistic ``value`` holds
        value: The statistic
        question_a, question_b: The compared questions
        num_a, num_b: Observations on each side
        p_value: Significance of ``value``; 1.0 when undefined
    """

    coefficient: CoefficientType
    value: float
    question_a: Question
    question_b: Question
    num_a: int
    num_b: int
    p_value: float = 1.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "coefficient": self.coefficient.value,
            "value": self.value,
            "question_a": self.question_a.id,
            "question_b": self.question_b.id,
            "num_a": self.num_a,
            "num_b": self.num_b,
            "p_value": self.p_value,
        }


def spearmans_rho(xs: Sequence[float], ys: Sequence[float]) -> TestResult:
    """
    Spearman's rank correlation of paired observations.

    Ties share their average rank. Constant input has no defined
    correlation and yields the null result.
    """
    if len(xs) != len(ys):
        raise ValueError(f"Paired samples differ in size: {len(xs)} and {len(ys)}")
    if len(xs) < 2 or len(set(xs)) < 2 or len(set(ys)) < 2:
        return NULL_RESULT

    rho, p_value = stats.spearmanr(xs, ys)
    rho, p_value = float(rho), float(p_value)
    if np.isnan(rho):
        return NULL_RESULT
    if len(xs) < 3 or np.isnan(p_value):
        p_value = 1.0
    return TestResult(statistic=rho, p_value=p_value)


def chi_squared(table: Sequence[Sequence[int]]) -> TestResult:
    """
    Pearson's chi-squared test of independence over a contingency table.

    Cells with zero expectation are left out of the statistic. Degrees
    of freedom count only non-empty rows and columns.
    """
    observed = np.asarray(table, dtype=float)
    if observed.ndim != 2 or observed.size == 0:
        return NULL_RESULT
    n = observed.sum()
    if n == 0:
        return NULL_RESULT

    rows, cols = observed.sum(axis=1), observed.sum(axis=0)
    expected = np.outer(rows, cols) / n
    mask = expected > 0
    statistic = float((((observed - expected) ** 2)[mask] / expected[mask]).sum())

    dof = (np.count_nonzero(rows) - 1) * (np.count_nonzero(cols) - 1)
    if dof <= 0:
        return TestResult(statistic=statistic, p_value=1.0)
    return TestResult(statistic=statistic, p_value=float(stats.chi2.sf(statistic, dof)))


def cramers_v(question_a: Question,
              question_b: Question,
              answers_a: Sequence[SurveyDatum],
              answers_b: Sequence[SurveyDatum]) -> TestResult:
    """
    Cramer's V between two questions' paired answers.

    ``answers_a[i]`` and ``answers_b[i]`` come from the same respondent.
    Pairs naming an option outside the questions' categories are
    skipped with a warning.
    """
    if len(answers_a) != len(answers_b):
        raise ValueError(
            f"Question responses have different sizes: {len(answers_a)} for question "
            f"{question_a.id}, {len(answers_b)} for question {question_b.id}"
        )
    r, c = len(question_a.options), len(question_b.options)
    if r == 0 or c == 0 or not answers_a:
        return NULL_RESULT

    index_a = {opt: i for i, opt in enumerate(question_a.options)}
    index_b = {opt: j for j, opt in enumerate(question_b.options)}
    table = np.zeros((r, c), dtype=int)
    for ans_a, ans_b in zip(answers_a, answers_b):
        i, j = index_a.get(ans_a), index_b.get(ans_b)
        if i is None or j is None:
            logger.warning("No co-occurrences of %s and %s; consider using smoothing", ans_a.id, ans_b.id)
            continue
        table[i, j] += 1

    k = min(r - 1, c - 1)
    observed = table[table.sum(axis=1) > 0][:, table.sum(axis=0) > 0]
    if k == 0 or min(observed.shape) < 2:
        return NULL_RESULT
    v = float(stats.contingency.association(observed, method="cramer"))
    # association() normalizes by the observed categories; V is over every option
    v *= np.sqrt((min(observed.shape) - 1) / k)
    return TestResult(statistic=v, p_value=chi_squared(observed).p_value)


def mann_whitney(q1: Question,
                 q2: Question,
                 answers1: Sequence[SurveyDatum],
                 answers2: Sequence[SurveyDatum]) -> TestResult:
    """
    Two-sided Mann-Whitney U test over option ranks.

    Each answer is ranked by its position in its own question's
    source order, so variants with aligned scales compare directly.
    """
    if not answers1 or not answers2:
        return NULL_RESULT
    x = [q1.rank_of(opt) for opt in answers1]
    y = [q2.rank_of(opt) for opt in answers2]
    result = stats.mannwhitneyu(x, y, alternative="two-sided")
    p_value = float(result.pvalue)
    if np.isnan(p_value):
        p_value = 1.0
    return TestResult(statistic=float(result.statistic), p_value=p_value)


def rank_table(question: Question, samples: List[Sequence[SurveyDatum]]) -> np.ndarray:
    """Contingency table of option rank (rows) by sample (columns)."""
    table = np.zeros((len(question.options), len(samples)), dtype=int)
    for col, sample in enumerate(samples):
        for opt in sample:
            table[question.rank_of(opt) - 1, col] += 1
    return table
