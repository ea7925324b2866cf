"""
Frequency and probability models over a response collection.

Counts are keyed by question id, then by option id:

    {"q_1_1": {"comp_1_2": 14, "comp_1_3": 6}, ...}

Custom questions never contribute counts.
"""
from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional

from surveyqc.model import Question, Survey, SurveyDatum
from surveyqc.response import SurveyResponse

logger = logging.getLogger(__name__)

Frequencies = Dict[str, Dict[str, int]]
Probabilities = Dict[str, Dict[str, float]]


def make_frequencies(responses: Iterable[SurveyResponse], survey: Optional[Survey] = None) -> Frequencies:
    """
    Count option selections per question.

    Args:
        responses: Actual or simulated responses
        survey: When given, Laplace smoothing is applied: every option
            of every survey question gets a count of at least 1.

    Returns:
        Map from question id to a map from option id to count
    """
    retval: Frequencies = {}
    for sr in responses:
        for qr in sr.non_custom_responses():
            counts = retval.setdefault(qr.question.id, {})
            for oid in qr.option_ids:
                counts[oid] = counts.get(oid, 0) + 1

    if survey is not None:
        number_needing_smoothing = 0
        for q in survey.questions:
            if q.custom:
                continue
            counts = retval.setdefault(q.id, {})
            for opt in q.options:
                if counts.get(opt.id, 0) == 0:
                    counts[opt.id] = 1
                    number_needing_smoothing += 1
        if number_needing_smoothing > 0:
            logger.info("Number needing smoothing: %d", number_needing_smoothing)

    return retval


def make_probabilities(frequencies: Frequencies) -> Probabilities:
    """Normalize each question's counts so they sum to 1."""
    retval: Probabilities = {}
    for qid, counts in frequencies.items():
        total = float(sum(counts.values()))
        if total == 0:
            retval[qid] = {oid: 0.0 for oid in counts}
            continue
        retval[qid] = {oid: ct / total for oid, ct in counts.items()}
    return retval


def remove_freetext(questions: Iterable[Question]) -> List[Question]:
    return [q for q in questions if not q.freetext]


def get_equivalent_answer_variants(question: Question, option: SurveyDatum, survey: Survey) -> List[SurveyDatum]:
    """
    Return the options equivalent to ``option`` across wording variants.

    Two options are equivalent when they sit at the same source-row
    offset from their question. A question without variants yields
    just its own matching option.
    """
    offset = question.source_row - option.source_row
    retval = []
    for variant in survey.get_variants(question):
        for opt in variant.options:
            if variant.source_row - opt.source_row == offset:
                retval.append(opt)
    return retval
