"""
Tests for rank and contingency statistics.
"""

import pytest

from surveyqc.model import Question, SurveyDatum
from surveyqc.stats import (
    CoefficientType,
    CorrelationStruct,
    chi_squared,
    cramers_v,
    mann_whitney,
    rank_table,
    spearmans_rho,
)


def make_question(qid, n_options):
    return Question(id=qid, options=[SurveyDatum(id=f"{qid}_o{i}") for i in range(1, n_options + 1)])


class TestSpearman:

    def test_perfect_monotone(self):
        result = spearmans_rho([1, 2, 3, 4, 5], [2, 4, 6, 8, 10])
        assert result.statistic == pytest.approx(1.0)
        assert result.p_value < 1e-6

    def test_perfect_reverse(self):
        assert spearmans_rho([1, 2, 3, 4], [4, 3, 2, 1]).statistic == pytest.approx(-1.0)

    def test_ties_use_mid_ranks(self):
        result = spearmans_rho([1, 1, 2, 2], [1, 1, 2, 2])
        assert result.statistic == pytest.approx(1.0)

    def test_constant_input(self):
        result = spearmans_rho([3, 3, 3], [1, 2, 3])
        assert result.statistic == 0.0
        assert result.p_value == 1.0

    def test_empty_input(self):
        result = spearmans_rho([], [])
        assert (result.statistic, result.p_value) == (0.0, 1.0)

    def test_unpaired_raises(self):
        with pytest.raises(ValueError):
            spearmans_rho([1, 2], [1])


class TestChiSquared:

    def test_independent_table(self):
        result = chi_squared([[10, 10], [10, 10]])
        assert result.statistic == pytest.approx(0.0)
        assert result.p_value == pytest.approx(1.0)

    def test_dependent_table(self):
        result = chi_squared([[20, 0], [0, 20]])
        assert result.statistic == pytest.approx(40.0)
        assert result.p_value < 0.001

    def test_zero_expectation_cells_skipped(self):
        result = chi_squared([[5, 5], [0, 0]])
        assert result.statistic == pytest.approx(0.0)
        assert result.p_value == 1.0

    def test_empty_table(self):
        result = chi_squared([[0, 0], [0, 0]])
        assert (result.statistic, result.p_value) == (0.0, 1.0)


class TestCramersV:

    def test_perfect_association(self):
        qa, qb = make_question("a", 2), make_question("b", 2)
        answers_a = [qa.options[0]] * 10 + [qa.options[1]] * 10
        answers_b = [qb.options[0]] * 10 + [qb.options[1]] * 10
        result = cramers_v(qa, qb, answers_a, answers_b)
        assert result.statistic == pytest.approx(1.0)
        assert result.p_value < 0.001

    def test_no_association(self):
        qa, qb = make_question("a", 2), make_question("b", 2)
        answers_a = [qa.options[0], qa.options[0], qa.options[1], qa.options[1]] * 5
        answers_b = [qb.options[0], qb.options[1], qb.options[0], qb.options[1]] * 5
        assert cramers_v(qa, qb, answers_a, answers_b).statistic == pytest.approx(0.0)

    def test_unchosen_options_count_toward_dimension(self):
        qa, qb = make_question("a", 3), make_question("b", 3)
        answers_a = [qa.options[0]] * 10 + [qa.options[1]] * 10
        answers_b = [qb.options[0]] * 10 + [qb.options[1]] * 10
        result = cramers_v(qa, qb, answers_a, answers_b)
        assert result.statistic == pytest.approx(0.5 ** 0.5)
        assert result.p_value < 0.001

    def test_unknown_answers_skipped_with_warning(self, caplog):
        qa, qb = make_question("a", 2), make_question("b", 2)
        stranger = SurveyDatum(id="stranger")
        with caplog.at_level("WARNING", logger="surveyqc.stats"):
            cramers_v(qa, qb, [qa.options[0], stranger], [qb.options[0], qb.options[1]])
        assert "No co-occurrences" in caplog.text

    def test_empty(self):
        qa, qb = make_question("a", 2), make_question("b", 2)
        result = cramers_v(qa, qb, [], [])
        assert (result.statistic, result.p_value) == (0.0, 1.0)


class TestMannWhitney:

    def test_identical_samples(self):
        q = make_question("q", 3)
        result = mann_whitney(q, q, q.options, q.options)
        assert result.p_value > 0.5

    def test_shifted_samples(self):
        q1, q2 = make_question("q1", 5), make_question("q2", 5)
        result = mann_whitney(q1, q2, [q1.options[0]] * 20, [q2.options[4]] * 20)
        assert result.p_value < 0.001

    def test_empty(self):
        q = make_question("q", 3)
        result = mann_whitney(q, q, [], q.options)
        assert (result.statistic, result.p_value) == (0.0, 1.0)


def test_rank_table():
    q = make_question("q", 3)
    table = rank_table(q, [[q.options[0], q.options[0]], [q.options[2]]])
    assert table.tolist() == [[2, 0], [0, 0], [0, 1]]


def test_correlation_struct_to_dict():
    qa, qb = make_question("a", 2), make_question("b", 2)
    c = CorrelationStruct(CoefficientType.V, 0.3, qa, qb, 10, 10, p_value=0.2)
    assert c.to_dict() == {
        "coefficient": "V",
        "value": 0.3,
        "question_a": "a",
        "question_b": "b",
        "num_a": 10,
        "num_b": 10,
        "p_value": 0.2,
    }
