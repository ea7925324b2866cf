"""
Bias detection: wording bias, order bias, breakoff and the prior on
spurious correlation.

All detectors are read-only over the survey and the response
collection. Results are small keyed structs; a pair with a p-value
below alpha is reported by ``biased_pairs()``.
"""
from __future__ import annotations

import itertools
import logging
from collections import Counter
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

import numpy as np

from surveyqc.config import QCConfig
from surveyqc.model import Block, BranchParadigm, Question, Survey, SurveyDatum
from surveyqc.respondent import AdversaryType, simulate_responses
from surveyqc.response import SurveyResponse
from surveyqc.stats import (
    CoefficientType,
    CorrelationStruct,
    chi_squared,
    cramers_v,
    mann_whitney,
    rank_table,
    spearmans_rho,
)

logger = logging.getLogger(__name__)


def _first_answer(sr: SurveyResponse, q: Question) -> Optional[SurveyDatum]:
    qr = sr.get_response_for_question(q)
    if qr is None or not qr.selections:
        return None
    return qr.selections[0].option


def _comparable(q: Question) -> bool:
    return q.exclusive and not q.freetext and not q.custom and bool(q.options)


class _PairStruct:
    """Shared behaviour of the keyed bias results."""

    def __init__(self, survey: Survey, alpha: float):
        self.survey = survey
        self.alpha = alpha
        self._results: Dict[Tuple, CorrelationStruct] = {}

    def __len__(self) -> int:
        return len(self._results)

    def __iter__(self) -> Iterator[Tuple]:
        return iter(self._results)

    def __contains__(self, key: Tuple) -> bool:
        return key in self._results

    def __getitem__(self, key: Tuple) -> CorrelationStruct:
        return self._results[key]

    def items(self):
        return self._results.items()

    def biased_pairs(self) -> List[CorrelationStruct]:
        return [c for c in self._results.values() if c.p_value < self.alpha]

    def to_dicts(self) -> List[Dict[str, Any]]:
        return [dict(c.to_dict(), biased=c.p_value < self.alpha) for c in self._results.values()]


class WordingBiasStruct(_PairStruct):
    """Comparisons between wording variants, keyed by (block, q1, q2)."""

    def update(self, block: Block, q1: Question, q2: Question, result: CorrelationStruct) -> None:
        self._results[(block, q1, q2)] = result

    def to_dicts(self) -> List[Dict[str, Any]]:
        retval = []
        for (block, _, _), c in self._results.items():
            retval.append(dict(c.to_dict(), block=block.id, biased=c.p_value < self.alpha))
        return retval


class OrderBiasStruct(_PairStruct):
    """Answers to q1 seen before vs after q2, keyed by (q1, q2)."""

    def update(self, q1: Question, q2: Question, result: CorrelationStruct) -> None:
        self._results[(q1, q2)] = result


def _variant_table(q1: Question, q2: Question,
                   answers1: Sequence[SurveyDatum], answers2: Sequence[SurveyDatum]) -> np.ndarray:
    """Option rank (rows) by variant (columns)."""
    rows = max(len(q1.options), len(q2.options))
    table = np.zeros((rows, 2), dtype=int)
    for opt in answers1:
        table[q1.rank_of(opt) - 1, 0] += 1
    for opt in answers2:
        table[q2.rank_of(opt) - 1, 1] += 1
    return table


def calculate_wording_biases(survey: Survey,
                             responses: Sequence[SurveyResponse],
                             alpha: float = 0.05) -> WordingBiasStruct:
    """
    Compare the answers given to each pair of wording variants.

    Ordered exclusive variants are compared with Mann-Whitney U on
    option rank; any other pair with chi-squared over an option-rank by
    variant table.
    """
    retval = WordingBiasStruct(survey, alpha)
    for block in survey.get_all_blocks():
        if block.branch_paradigm != BranchParadigm.ALL:
            continue
        variants = [q for q in block.questions if _comparable(q)]
        for q1, q2 in itertools.combinations(variants, 2):
            answers1 = [a for a in (_first_answer(sr, q1) for sr in responses) if a is not None]
            answers2 = [a for a in (_first_answer(sr, q2) for sr in responses) if a is not None]
            if q1.ordered and q2.ordered:
                result = mann_whitney(q1, q2, answers1, answers2)
                coefficient = CoefficientType.U
            else:
                result = chi_squared(_variant_table(q1, q2, answers1, answers2))
                coefficient = CoefficientType.CHI
            retval.update(block, q1, q2, CorrelationStruct(
                coefficient=coefficient,
                value=result.statistic,
                question_a=q1,
                question_b=q2,
                num_a=len(answers1),
                num_b=len(answers2),
                p_value=result.p_value,
            ))
    return retval


def calculate_order_biases(survey: Survey,
                           responses: Sequence[SurveyResponse],
                           alpha: float = 0.05,
                           config: Optional[QCConfig] = None) -> OrderBiasStruct:
    """
    Test whether answers to q1 depend on q1 being shown before q2.

    A pair is skipped when either sub-sample is smaller than
    ``order_bias_min_samples`` or when the sub-sample sizes are within
    ``order_bias_balance`` of each other.
    """
    config = config if config is not None else QCConfig()
    retval = OrderBiasStruct(survey, alpha)
    questions = [q for q in survey.questions if _comparable(q)]

    for q1, q2 in itertools.permutations(questions, 2):
        before: List[SurveyDatum] = []
        after: List[SurveyDatum] = []
        for sr in responses:
            qr1 = sr.get_response_for_question(q1)
            qr2 = sr.get_response_for_question(q2)
            if qr1 is None or qr2 is None or not qr1.selections:
                continue
            if qr1.index_seen < qr2.index_seen:
                before.append(qr1.selections[0].option)
            elif qr1.index_seen > qr2.index_seen:
                after.append(qr1.selections[0].option)

        if len(before) < config.order_bias_min_samples or len(after) < config.order_bias_min_samples:
            continue
        ratio = len(before) / float(len(after))
        if 1 - config.order_bias_balance < ratio < 1 + config.order_bias_balance:
            continue

        if q1.ordered and q2.ordered:
            result = mann_whitney(q1, q1, before, after)
            coefficient = CoefficientType.U
        else:
            result = chi_squared(rank_table(q1, [before, after]))
            coefficient = CoefficientType.CHI
        retval.update(q1, q2, CorrelationStruct(
            coefficient=coefficient,
            value=result.statistic,
            question_a=q1,
            question_b=q2,
            num_a=len(before),
            num_b=len(after),
            p_value=result.p_value,
        ))
    return retval


def get_frequencies_of_random_correlation(survey: Survey,
                                          sample_size: int,
                                          rng: Optional[np.random.Generator] = None
                                          ) -> Dict[Tuple[Question, Question], CorrelationStruct]:
    """
    Correlations observed among uniform random respondents.

    Simulates ``sample_size`` respondents answering at random and
    correlates every pair of exclusive questions: Spearman's rho when
    both are ordered, Cramer's V otherwise. This is the prior on false
    correlation at the intended sample size. Pairs never answered
    together are skipped with a warning.
    """
    rng = rng if rng is not None else np.random.default_rng()
    respondents = simulate_responses(survey, sample_size, AdversaryType.UNIFORM, rng)
    questions = [q for q in survey.questions if _comparable(q)]

    corrs: Dict[Tuple[Question, Question], CorrelationStruct] = {}
    for q1, q2 in itertools.combinations(questions, 2):
        answers1: List[SurveyDatum] = []
        answers2: List[SurveyDatum] = []
        for sr in respondents:
            a1, a2 = _first_answer(sr, q1), _first_answer(sr, q2)
            if a1 is not None and a2 is not None:
                answers1.append(a1)
                answers2.append(a2)

        if not answers1:
            logger.warning("Questions %s and %s were never answered together; pair skipped.", q1.id, q2.id)
            continue

        if q1.ordered and q2.ordered:
            result = spearmans_rho([q1.rank_of(a) for a in answers1], [q2.rank_of(a) for a in answers2])
            coefficient = CoefficientType.RHO
        else:
            result = cramers_v(q1, q2, answers1, answers2)
            coefficient = CoefficientType.V
        corrs[(q1, q2)] = CorrelationStruct(
            coefficient=coefficient,
            value=result.statistic,
            question_a=q1,
            question_b=q2,
            num_a=len(answers1),
            num_b=len(answers2),
            p_value=result.p_value,
        )
    return corrs


# ============================================================================
# BREAKOFF
# ============================================================================

class BreakoffByPosition:
    """Frequency of the number of questions answered before stopping."""

    def __init__(self, survey: Survey):
        self.survey = survey
        self.counts: Counter = Counter()

    def update(self, position: int) -> None:
        self.counts[position] += 1

    def __getitem__(self, position: int) -> int:
        return self.counts[position]

    def most_common(self, n: Optional[int] = None) -> List[Tuple[int, int]]:
        return self.counts.most_common(n)

    def to_dicts(self) -> List[Dict[str, Any]]:
        return [{"position": pos, "count": ct} for pos, ct in sorted(self.counts.items())]


class BreakoffByQuestion:
    """Frequency of each question being the last one answered."""

    def __init__(self, survey: Survey):
        self.survey = survey
        self.counts: Counter = Counter()

    def update(self, question: Question) -> None:
        self.counts[question] += 1

    def __getitem__(self, question: Question) -> int:
        return self.counts[question]

    def most_common(self, n: Optional[int] = None) -> List[Tuple[Question, int]]:
        return self.counts.most_common(n)

    def to_dicts(self) -> List[Dict[str, Any]]:
        return [{"question": q.id, "count": ct} for q, ct in self.counts.most_common()]


def calculate_breakoff_by_position(survey: Survey, responses: Sequence[SurveyResponse]) -> BreakoffByPosition:
    """Aggregate breakoff by the number of non-custom answers given."""
    retval = BreakoffByPosition(survey)
    for sr in responses:
        answered = len(sr.non_custom_responses())
        if answered == 0:
            logger.warning("Response %s has no answers; skipped in breakoff.", sr.id)
            continue
        retval.update(answered)
    return retval


def calculate_breakoff_by_question(survey: Survey, responses: Sequence[SurveyResponse]) -> BreakoffByQuestion:
    """Aggregate breakoff by the last question each respondent saw."""
    retval = BreakoffByQuestion(survey)
    for sr in responses:
        qrs = sr.non_custom_responses()
        if not qrs:
            logger.warning("Response %s has no answers; skipped in breakoff.", sr.id)
            continue
        last = max(qrs, key=lambda qr: qr.index_seen)
        retval.update(last.question)
    return retval
