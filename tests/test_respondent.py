"""
Tests for simulated respondents.
"""

import numpy as np

from surveyqc.examples import build_example_survey, build_flat_survey
from surveyqc.interpreter import PresentedQuestion
from surveyqc.model import Question, SurveyDatum
from surveyqc.respondent import (
    AdversaryType,
    ProfileRespondent,
    RandomRespondent,
    choose_options,
    simulate_responses,
)
from surveyqc.response import KnownValidityStatus, OptionSelection


def presented(n_options=5, **kwargs):
    options = [SurveyDatum(id=f"o{i}") for i in range(n_options)]
    q = Question(id="q", options=options, **kwargs)
    shown = tuple(OptionSelection(option=o, index=i) for i, o in enumerate(reversed(options)))
    return PresentedQuestion(question=q, options=shown, index_seen=0)


class TestChooseOptions:
    """Answering policies."""

    def test_first_and_last_use_display_order(self):
        p = presented()
        rng = np.random.default_rng(0)
        assert choose_options(p, AdversaryType.FIRST, rng) == [p.options[0].option]
        assert choose_options(p, AdversaryType.LAST, rng) == [p.options[-1].option]

    def test_inner_avoids_ends(self):
        p = presented()
        ends = {p.options[0].option, p.options[-1].option}
        rng = np.random.default_rng(1)
        for _ in range(100):
            [picked] = choose_options(p, AdversaryType.INNER, rng)
            assert picked not in ends

    def test_uniform_picks_one_shown_option(self):
        p = presented()
        rng = np.random.default_rng(2)
        picks = set()
        for _ in range(200):
            chosen = choose_options(p, AdversaryType.UNIFORM, rng)
            assert len(chosen) == 1
            picks.add(chosen[0])
        assert picks == set(p.question.options)

    def test_checkbox_picks_non_empty_subset(self):
        p = presented(exclusive=False)
        rng = np.random.default_rng(3)
        for _ in range(50):
            chosen = choose_options(p, AdversaryType.UNIFORM, rng)
            assert chosen
            assert set(chosen) <= set(p.question.options)

    def test_freetext_gets_no_options(self):
        q = Question(id="free", freetext=True)
        p = PresentedQuestion(question=q, options=(), index_seen=0)
        assert choose_options(p, AdversaryType.UNIFORM, np.random.default_rng(0)) == []


def test_random_respondent_answers_every_question():
    survey = build_flat_survey(3, 2)
    rr = RandomRespondent(survey, rng=np.random.default_rng(0))
    assert len(rr.response.non_custom_responses()) == 3
    assert rr.response.known_validity_status == KnownValidityStatus.NO
    assert rr.id == rr.response.id


def test_profile_respondent_follows_profile():
    survey = build_flat_survey(2, 3)
    profile = {"q_1_1": [0.0, 0.0, 1.0], "q_1_2": [1.0, 0.0, 0.0]}
    rng = np.random.default_rng(4)
    for _ in range(20):
        response = ProfileRespondent(survey, profile, rng).response
        assert response.known_validity_status == KnownValidityStatus.YES
        answers = {qr.question.id: qr.option_ids for qr in response.responses}
        assert answers == {"q_1_1": ["q_1_1_o3"], "q_1_2": ["q_1_2_o1"]}


def test_simulate_responses():
    survey = build_example_survey()
    responses = simulate_responses(survey, 25, AdversaryType.FIRST, np.random.default_rng(5))
    assert len(responses) == 25
    assert len({r.id for r in responses}) == 25
    for r in responses:
        assert r.responses[0].question.id in {"q1", "q6", "q7"}
