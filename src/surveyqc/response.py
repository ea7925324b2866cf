"""
Survey responses.

A SurveyResponse is the ordered record of one respondent's answers.
Responses are produced by the interpreter (or an external data
pipeline) and afterwards only read by the QC engine, which attaches
its computed score, threshold and validity labels.
"""
from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, Iterable, List, Optional, Tuple

from surveyqc.errors import ResponseAccessError
from surveyqc.model import Question, Survey, SurveyDatum


_gensym = itertools.count()


def next_response_id() -> str:
    return f"sr{next(_gensym)}"


class KnownValidityStatus(Enum):
    """Validity label, known a priori or computed by a classifier."""

    YES = "yes"
    NO = "no"
    MAYBE = "maybe"


@dataclass(frozen=True)
class OptionSelection:
    """
    An option paired with its display index.

    When recorded in a response, ``index`` is the position the option
    was shown at when the respondent selected it.
    """

    option: SurveyDatum
    index: int


@dataclass
class QuestionResponse:
    """
    One answered question.

    Properties:
        question:
            The question answered
        selections:
            Selected options with their display indices
        index_seen:
            Number of answers recorded before this one (0-based)
    """

    question: Question
    selections: Tuple[OptionSelection, ...] = ()
    index_seen: int = 0

    @property
    def option_ids(self) -> List[str]:
        return [s.option.id for s in self.selections]

    @property
    def options(self) -> List[SurveyDatum]:
        return [s.option for s in self.selections]

    def answer(self) -> SurveyDatum:
        """Return the single selected option of an exclusive question."""
        if not self.question.exclusive:
            raise ResponseAccessError(
                "Cannot call answer() on non-exclusive questions. Try answers() instead."
            )
        if not self.selections:
            raise ResponseAccessError(f"Question {self.question.id} has no selected option")
        return self.selections[0].option

    def answers(self) -> List[SurveyDatum]:
        """Return all selected options of a non-exclusive question."""
        if self.question.exclusive:
            raise ResponseAccessError(
                "Cannot call answers() on exclusive questions. Try answer() instead."
            )
        return self.options


@dataclass(eq=False)
class SurveyResponse:
    """
    A respondent's complete (or broken-off) response.

    Properties:
        id:
            Response identifier
        responses:
            Question responses in the order they were answered
        score, threshold:
            Set by the last classifier run over this response
        known_validity_status:
            Ground truth when available (e.g., simulated adversaries)
        computed_validity_status:
            Label assigned by a classifier
        cluster_label:
            Set by clustering
    """

    id: str = field(default_factory=next_response_id)
    responses: List[QuestionResponse] = field(default_factory=list)
    score: float = 0.0
    threshold: Optional[float] = None
    known_validity_status: KnownValidityStatus = KnownValidityStatus.MAYBE
    computed_validity_status: KnownValidityStatus = KnownValidityStatus.MAYBE
    cluster_label: Optional[str] = None

    def non_custom_responses(self) -> List[QuestionResponse]:
        return [qr for qr in self.responses if not qr.question.custom]

    def has_response_for_question(self, question: Question) -> bool:
        return any(qr.question is question for qr in self.responses)

    def get_response_for_question(self, question: Question) -> Optional[QuestionResponse]:
        for qr in self.responses:
            if qr.question is question:
                return qr
        return None

    def contains_answer(self, options: Iterable[SurveyDatum]) -> bool:
        """True if any non-custom selection is one of ``options``."""
        wanted = set(options)
        for qr in self.non_custom_responses():
            for opt in qr.options:
                if opt in wanted:
                    return True
        return False

    def question_set(self) -> FrozenSet[Question]:
        return frozenset(qr.question for qr in self.responses)

    def point(self, survey: Survey) -> List[int]:
        """
        Answer vector over the survey's non-custom questions.

        Each coordinate holds the rank of the first selected option,
        or 0 when the question was not answered.
        """
        vector = []
        for q in survey.questions:
            if q.custom:
                continue
            qr = self.get_response_for_question(q)
            if qr is None or not qr.selections:
                vector.append(0)
            else:
                vector.append(q.rank_of(qr.selections[0].option))
        return vector
