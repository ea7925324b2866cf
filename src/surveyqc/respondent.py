"""
Simulated respondents.

A RandomRespondent drives an Interpreter to termination, answering
each question according to an adversary policy. Simulated responses
feed path-length estimates, null correlation priors and classifier
evaluation.
"""
from __future__ import annotations

from enum import Enum
from typing import Dict, List, Optional, Sequence

import numpy as np

from surveyqc.interpreter import Interpreter, PresentedQuestion
from surveyqc.model import Survey, SurveyDatum
from surveyqc.response import KnownValidityStatus, SurveyResponse


class AdversaryType(Enum):
    """
    Answering policies.

    UNIFORM: any displayed option, uniformly
    FIRST: always the first displayed option
    LAST: always the last displayed option
    INNER: a uniformly chosen option that is not at either end
    """

    UNIFORM = "uniform"
    FIRST = "first"
    LAST = "last"
    INNER = "inner"


def choose_options(presented: PresentedQuestion,
                   adversary_type: AdversaryType,
                   rng: np.random.Generator) -> List[SurveyDatum]:
    """Pick the options a respondent of ``adversary_type`` selects."""
    question = presented.question
    shown = [s.option for s in presented.options]
    if question.freetext or not shown:
        return []

    if adversary_type == AdversaryType.FIRST:
        return [shown[0]]
    if adversary_type == AdversaryType.LAST:
        return [shown[-1]]

    if question.exclusive:
        if adversary_type == AdversaryType.INNER and len(shown) > 2:
            return [shown[int(rng.integers(1, len(shown) - 1))]]
        return [shown[int(rng.integers(len(shown)))]]

    # non-empty random subset, kept in display order
    mask = rng.random(len(shown)) < 0.5
    if not mask.any():
        mask[int(rng.integers(len(shown)))] = True
    return [opt for opt, keep in zip(shown, mask) if keep]


class RandomRespondent:
    """
    A respondent that answers without reading the questions.

    Properties:
        survey: The survey answered
        adversary_type: Answering policy
        response: The completed SurveyResponse (known validity NO)
    """

    def __init__(self,
                 survey: Survey,
                 adversary_type: AdversaryType = AdversaryType.UNIFORM,
                 rng: Optional[np.random.Generator] = None):
        self.survey = survey
        self.adversary_type = adversary_type
        rng = rng if rng is not None else np.random.default_rng()

        interpreter = Interpreter(survey, rng=rng)
        while not interpreter.terminated():
            presented = interpreter.get_next_question()
            interpreter.answer(presented.question, choose_options(presented, adversary_type, rng))

        self.response: SurveyResponse = interpreter.get_response()
        self.response.known_validity_status = KnownValidityStatus.NO

    @property
    def id(self) -> str:
        return self.response.id


class ProfileRespondent:
    """
    A respondent answering from a fixed preference profile.

    ``profile`` maps a question id to probabilities over that
    question's options in source order. Questions missing from the
    profile are answered uniformly. Display order has no effect,
    which is what distinguishes an attentive respondent from the
    positional adversaries above.
    """

    def __init__(self,
                 survey: Survey,
                 profile: Dict[str, Sequence[float]],
                 rng: Optional[np.random.Generator] = None):
        self.survey = survey
        self.profile = profile
        rng = rng if rng is not None else np.random.default_rng()

        interpreter = Interpreter(survey, rng=rng)
        while not interpreter.terminated():
            presented = interpreter.get_next_question()
            question = presented.question
            if question.freetext or not question.options:
                chosen: List[SurveyDatum] = []
            else:
                weights = self.profile.get(question.id)
                p = None if weights is None else np.asarray(weights, dtype=float) / np.sum(weights)
                chosen = [question.options[int(rng.choice(len(question.options), p=p))]]
            interpreter.answer(question, chosen)

        self.response: SurveyResponse = interpreter.get_response()
        self.response.known_validity_status = KnownValidityStatus.YES


def simulate_responses(survey: Survey,
                       n: int,
                       adversary_type: AdversaryType = AdversaryType.UNIFORM,
                       rng: Optional[np.random.Generator] = None) -> List[SurveyResponse]:
    rng = rng if rng is not None else np.random.default_rng()
    return [RandomRespondent(survey, adversary_type, rng).response for _ in range(n)]
