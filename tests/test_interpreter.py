"""
Tests for the survey interpreter.

Tests verify that the interpreter:
    - Interleaves block contents without losing or duplicating nodes
    - Keeps fixed blocks in relative order
    - Expands variant blocks to exactly one question
    - Follows branches and terminates after every reachable question
    - Rejects out-of-order driving
"""

from collections import Counter

import numpy as np
import pytest

from surveyqc.errors import DuplicateAnswerError, InterpreterStateError, MalformedSurveyError
from surveyqc.examples import build_example_survey, build_flat_survey
from surveyqc.interpreter import (
    Interpreter,
    expand_block,
    interleave_contents,
    order_options,
    shuffle_top_level,
)
from surveyqc.model import Block, BranchParadigm, Question, Survey, SurveyDatum


def make_question(qid, n_options=2, **kwargs):
    options = [SurveyDatum(id=f"{qid}_o{i}") for i in range(1, n_options + 1)]
    return Question(id=qid, options=options, **kwargs)


def run(interpreter, choices=None):
    """Drive an interpreter to termination; return presented question ids."""
    choices = choices or {}
    seen = []
    while not interpreter.terminated():
        shown = interpreter.get_next_question()
        q = shown.question
        seen.append(q.id)
        if q.id in choices:
            picked = [q.get_option(choices[q.id])]
        elif shown.options:
            picked = [shown.options[0].option]
        else:
            picked = []
        interpreter.answer(q, picked)
    return seen


class TestInterleave:
    """Randomized interleaving of a block's direct contents."""

    def test_preserves_multiset_and_fixed_order(self):
        questions = [make_question(f"q{i}") for i in range(3)]
        fixed_a = Block(id="1.1", questions=[make_question("a")])
        fixed_b = Block(id="1.2", questions=[make_question("b")])
        loose = Block(id="1.3", questions=[make_question("c")], randomizable=True)
        sub_blocks = [fixed_a, loose, fixed_b]

        for seed in range(50):
            result = interleave_contents(questions, sub_blocks, np.random.default_rng(seed))
            assert len(result) == 6
            assert Counter(id(n) for n in result) == Counter(id(n) for n in questions + sub_blocks)
            assert result.index(fixed_a) < result.index(fixed_b)

    def test_only_fixed_blocks_keep_source_order(self):
        blocks = [Block(id=str(i), questions=[make_question(f"q{i}")]) for i in range(1, 5)]
        result = interleave_contents([], blocks, np.random.default_rng(3))
        assert result == blocks

    def test_empty_raises(self):
        with pytest.raises(MalformedSurveyError):
            interleave_contents([], [], np.random.default_rng(0))

    def test_top_level_shuffle_keeps_fixed_order(self):
        survey = build_example_survey()
        for seed in range(20):
            order = [b.id for b in shuffle_top_level(survey, np.random.default_rng(seed))]
            fixed = [i for i in order if i != "4"]
            assert fixed == ["1", "2", "3"]
            assert sorted(order) == ["1", "2", "3", "4"]


class TestExpandBlock:
    """Flattening a block into questions."""

    def test_expansion_invariants(self):
        direct = [make_question("d1"), make_question("d2")]
        variants = [make_question("v1"), make_question("v2"), make_question("v3")]
        nested = [make_question("n1"), make_question("n2")]
        block = Block(
            id="1",
            questions=direct,
            sub_blocks=[
                Block(id="1.1", questions=variants, branch_paradigm=BranchParadigm.ALL),
                Block(id="1.2", questions=nested),
            ],
        )
        for seed in range(30):
            result = expand_block(block, np.random.default_rng(seed))
            assert len(result) == 5
            for q in direct + nested:
                assert result.count(q) == 1
            assert sum(1 for q in result if q in variants) == 1

    def test_empty_block_raises(self):
        with pytest.raises(MalformedSurveyError):
            expand_block(Block(id="1"), np.random.default_rng(0))


class TestOrderOptions:
    """Display order of options."""

    def test_fixed_order_when_not_randomized(self):
        q = make_question("q", 4, randomize=False)
        shown = order_options(q, np.random.default_rng(0))
        assert [s.option for s in shown] == q.options
        assert [s.index for s in shown] == [0, 1, 2, 3]

    def test_ordered_question_is_source_or_reversed(self):
        q = make_question("q", 4, ordered=True)
        seen = set()
        rng = np.random.default_rng(1)
        for _ in range(40):
            seen.add(tuple(s.option.id for s in order_options(q, rng)))
        forward = tuple(o.id for o in q.options)
        assert seen == {forward, tuple(reversed(forward))}

    def test_unordered_question_is_permutation(self):
        q = make_question("q", 5)
        shown = order_options(q, np.random.default_rng(2))
        assert sorted(s.option.id for s in shown) == sorted(o.id for o in q.options)

    def test_options_not_mutated(self):
        q = make_question("q", 3)
        before = list(q.options)
        order_options(q, np.random.default_rng(4))
        assert q.options == before


class TestInterpreter:
    """Traversal state machine."""

    def test_flat_survey_terminates_after_every_question(self):
        survey = build_flat_survey(3, 2)
        interp = Interpreter(survey, rng=np.random.default_rng(0))
        for i in range(3):
            assert not interp.terminated()
            interp.get_next_question()
        assert interp.terminated()
        with pytest.raises(InterpreterStateError):
            interp.get_next_question()

    def test_branch_yes_sees_car_block(self):
        survey = build_example_survey()
        for seed in range(20):
            seen = run(Interpreter(survey, rng=np.random.default_rng(seed)), {"q1": "q1_o1"})
            assert len(seen) == 7
            assert "q2" in seen
            assert len({"q3a", "q3b"} & set(seen)) == 1
            assert {"q4", "q5", "q6", "q7"} <= set(seen)

    def test_branch_no_skips_car_block(self):
        survey = build_example_survey()
        for seed in range(20):
            seen = run(Interpreter(survey, rng=np.random.default_rng(seed)), {"q1": "q1_o2"})
            assert sorted(seen) == ["q1", "q4", "q5", "q6", "q7"]

    def test_same_seed_same_traversal(self):
        survey = build_example_survey()
        a = run(Interpreter(survey, rng=np.random.default_rng(11)))
        b = run(Interpreter(survey, rng=np.random.default_rng(11)))
        assert a == b

    def test_response_records_display_order(self):
        survey = build_flat_survey(2, 3)
        interp = Interpreter(survey, rng=np.random.default_rng(5))
        shown = interp.get_next_question()
        last = shown.options[-1]
        interp.answer(shown.question, [last.option])
        response = interp.get_response("r1")
        assert response.id == "r1"
        qr = response.responses[0]
        assert qr.question is shown.question
        assert qr.selections[0].index == 2
        assert qr.index_seen == 0

    def test_index_seen_counts_up(self):
        survey = build_flat_survey(4, 2)
        interp = Interpreter(survey, rng=np.random.default_rng(6))
        run(interp)
        assert [qr.index_seen for qr in interp.get_response().responses] == [0, 1, 2, 3]

    def test_index_seen_counts_previous_answers(self):
        """An unanswered presentation does not advance the answer position."""
        survey = build_flat_survey(3, 2)
        interp = Interpreter(survey, rng=np.random.default_rng(6))
        skipped = interp.get_next_question()
        answered = interp.get_next_question()
        assert answered.index_seen == 1
        interp.answer(answered.question, [answered.options[0].option])
        interp.answer(skipped.question, [skipped.options[0].option])
        responses = interp.get_response().responses
        assert [qr.question for qr in responses] == [answered.question, skipped.question]
        assert [qr.index_seen for qr in responses] == [0, 1]

    def test_duplicate_answer_raises(self):
        survey = build_flat_survey(2, 2)
        interp = Interpreter(survey, rng=np.random.default_rng(0))
        shown = interp.get_next_question()
        interp.answer(shown.question, [shown.options[0].option])
        with pytest.raises(DuplicateAnswerError):
            interp.answer(shown.question, [shown.options[0].option])

    def test_answer_unpresented_question_raises(self):
        survey = build_flat_survey(2, 2)
        interp = Interpreter(survey, rng=np.random.default_rng(0))
        with pytest.raises(InterpreterStateError):
            interp.answer(survey.questions[0], [])

    def test_foreign_option_raises(self):
        survey = build_flat_survey(2, 2)
        interp = Interpreter(survey, rng=np.random.default_rng(0))
        shown = interp.get_next_question()
        with pytest.raises(ValueError):
            interp.answer(shown.question, [SurveyDatum(id="elsewhere")])

    def test_branch_target_recorded(self):
        survey = build_example_survey()
        interp = Interpreter(survey, rng=np.random.default_rng(0))
        while True:
            shown = interp.get_next_question()
            if shown.question.id == "q1":
                break
            interp.answer(shown.question, [])
        interp.answer(shown.question, [shown.question.get_option("q1_o2")])
        assert interp.branch_to is survey.get_block("3")

    def test_malformed_survey_rejected(self):
        with pytest.raises(MalformedSurveyError):
            Interpreter(Survey(name="empty"))

    def test_branch_in_randomizable_block_rejected_before_traversal(self):
        fixed = [Block(id=str(i), questions=[make_question(f"q{i}")]) for i in (1, 2, 3)]
        q = make_question("q4")
        q.branch_map = {q.options[0]: fixed[1], q.options[1]: fixed[1]}
        survey = Survey(name="loose branch", top_level_blocks=[Block(id="0", questions=[q], randomizable=True)] + fixed)
        for seed in range(40):
            with pytest.raises(MalformedSurveyError):
                Interpreter(survey, rng=np.random.default_rng(seed))

    def test_question_count_matches_reachable_questions(self):
        """terminated() turns true after exactly the questions on the chosen path."""
        survey = build_example_survey()
        for seed in range(40):
            interp = Interpreter(survey, rng=np.random.default_rng(seed))
            calls = 0
            while not interp.terminated():
                shown = interp.get_next_question()
                calls += 1
                interp.answer(shown.question, [shown.options[0].option] if shown.options else [])
            assert calls == len(interp.get_response().responses)
            assert calls in (5, 7)
