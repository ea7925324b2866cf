"""
Tests for frequency and probability models.
"""

import pytest

from surveyqc.examples import build_example_survey
from surveyqc.frequencies import (
    get_equivalent_answer_variants,
    make_frequencies,
    make_probabilities,
    remove_freetext,
)
from surveyqc.model import Block, Question, Survey, SurveyDatum
from surveyqc.response import OptionSelection, QuestionResponse, SurveyResponse


def binary_survey():
    q1 = Question(id="q1", options=[SurveyDatum(id="A"), SurveyDatum(id="B")])
    q2 = Question(id="q2", options=[SurveyDatum(id="C"), SurveyDatum(id="D")])
    consent = Question(id="consent", options=[SurveyDatum(id="agree")], custom=True)
    return Survey(name="binary", top_level_blocks=[Block(id="1", questions=[consent, q1, q2])])


def respond(*pairs):
    """Build a response from (question, [options]) pairs."""
    return SurveyResponse(responses=[
        QuestionResponse(
            question=q,
            selections=tuple(OptionSelection(o, i) for i, o in enumerate(opts)),
            index_seen=n,
        )
        for n, (q, opts) in enumerate(pairs)
    ])


def test_two_respondents_even_split():
    survey = binary_survey()
    q1 = survey.get_question("q1")
    responses = [respond((q1, [q1.options[0]])), respond((q1, [q1.options[1]]))]
    probabilities = make_probabilities(make_frequencies(responses))
    assert probabilities == {"q1": {"A": 0.5, "B": 0.5}}


def test_counts_without_smoothing_only_observed():
    survey = binary_survey()
    q1 = survey.get_question("q1")
    responses = [respond((q1, [q1.options[0]])) for _ in range(3)]
    assert make_frequencies(responses) == {"q1": {"A": 3}}


def test_laplace_smoothing_gives_unobserved_count_one():
    survey = binary_survey()
    q1 = survey.get_question("q1")
    responses = [respond((q1, [q1.options[0]])) for _ in range(3)]
    freqs = make_frequencies(responses, survey)
    assert freqs["q1"] == {"A": 3, "B": 1}
    assert freqs["q2"] == {"C": 1, "D": 1}


def test_custom_questions_ignored():
    survey = binary_survey()
    consent, q1 = survey.get_question("consent"), survey.get_question("q1")
    responses = [respond((consent, consent.options), (q1, [q1.options[1]]))]
    freqs = make_frequencies(responses, survey)
    assert "consent" not in freqs
    assert freqs["q1"] == {"A": 1, "B": 1}


def test_checkbox_counts_every_selection():
    q = Question(id="q", exclusive=False, options=[SurveyDatum(id="x"), SurveyDatum(id="y")])
    responses = [respond((q, q.options)), respond((q, [q.options[0]]))]
    assert make_frequencies(responses) == {"q": {"x": 2, "y": 1}}


def test_probabilities_sum_to_one():
    freqs = {"q1": {"A": 3, "B": 1}, "q2": {"C": 7}}
    probabilities = make_probabilities(freqs)
    assert probabilities["q1"] == pytest.approx({"A": 0.75, "B": 0.25})
    assert probabilities["q2"] == {"C": 1.0}


def test_remove_freetext():
    survey = build_example_survey()
    assert "q7" not in [q.id for q in remove_freetext(survey.questions)]
    assert len(remove_freetext(survey.questions)) == len(survey.questions) - 1


def test_equivalent_answer_variants():
    survey = build_example_survey()
    q3a, q3b = survey.get_question("q3a"), survey.get_question("q3b")
    assert get_equivalent_answer_variants(q3a, q3a.options[1], survey) == [q3a.options[1], q3b.options[1]]


def test_equivalent_answer_without_variants():
    survey = build_example_survey()
    q2 = survey.get_question("q2")
    assert get_equivalent_answer_variants(q2, q2.options[0], survey) == [q2.options[0]]
