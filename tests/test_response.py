"""
Tests for survey response records.
"""

import pytest

from surveyqc.errors import ResponseAccessError
from surveyqc.examples import build_example_survey
from surveyqc.model import Question, SurveyDatum
from surveyqc.response import OptionSelection, QuestionResponse, SurveyResponse


def make_question(qid, exclusive=True, custom=False):
    return Question(id=qid, exclusive=exclusive, custom=custom,
                    options=[SurveyDatum(id=f"{qid}_o{i}") for i in (1, 2, 3)])


class TestQuestionResponse:

    def test_answer_on_exclusive(self):
        q = make_question("q")
        qr = QuestionResponse(q, (OptionSelection(q.options[1], 0),))
        assert qr.answer() is q.options[1]
        assert qr.option_ids == ["q_o2"]

    def test_answers_on_exclusive_raises(self):
        q = make_question("q")
        qr = QuestionResponse(q, (OptionSelection(q.options[0], 0),))
        with pytest.raises(ResponseAccessError):
            qr.answers()

    def test_answer_on_checkbox_raises(self):
        q = make_question("q", exclusive=False)
        qr = QuestionResponse(q, (OptionSelection(q.options[0], 2), OptionSelection(q.options[2], 0)))
        with pytest.raises(ResponseAccessError):
            qr.answer()
        assert qr.answers() == [q.options[0], q.options[2]]

    def test_answer_without_selection_raises(self):
        with pytest.raises(ResponseAccessError):
            QuestionResponse(make_question("q")).answer()


class TestSurveyResponse:

    def test_ids_are_unique(self):
        assert SurveyResponse().id != SurveyResponse().id

    def test_custom_questions_hidden(self):
        consent, q = make_question("consent", custom=True), make_question("q")
        sr = SurveyResponse(responses=[
            QuestionResponse(consent, (OptionSelection(consent.options[0], 0),), 0),
            QuestionResponse(q, (OptionSelection(q.options[0], 0),), 1),
        ])
        assert [qr.question for qr in sr.non_custom_responses()] == [q]
        assert not sr.contains_answer([consent.options[0]])
        assert sr.contains_answer([q.options[0]])
        assert sr.question_set() == frozenset({consent, q})

    def test_lookup_by_identity(self):
        q, twin = make_question("q"), make_question("q")
        sr = SurveyResponse(responses=[QuestionResponse(q, (OptionSelection(q.options[0], 0),))])
        assert sr.has_response_for_question(q)
        assert not sr.has_response_for_question(twin)
        assert sr.get_response_for_question(twin) is None

    def test_point_uses_source_rank(self):
        survey = build_example_survey()
        q1, q4 = survey.get_question("q1"), survey.get_question("q4")
        sr = SurveyResponse(responses=[
            QuestionResponse(q1, (OptionSelection(q1.options[1], 0),), 0),
            QuestionResponse(q4, (OptionSelection(q4.options[2], 3),), 1),
        ])
        # q1, q2, q3a, q3b, q4, q5, q6, q7
        assert sr.point(survey) == [2, 0, 0, 0, 3, 0, 0, 0]
