"""
Survey Interpreter: per-respondent traversal state machine.

Walks a Survey the way the deployed client does: top-level blocks
are shuffled once, each block is flattened into a question queue
when it is reached, and branch answers discard the fixed blocks
that sit before the branch destination.

States:
    Running     one of the two queues is non-empty
    Terminated  both the question queue and the block queue are empty

IMPORTANT: The interpreter never mutates the Survey. Display order of
options is returned with each question rather than written onto the
options themselves. One Interpreter serves exactly one respondent and
must not be shared across threads.
"""
from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Deque, Dict, List, Optional, Sequence, Set, Tuple, Union

import numpy as np

from surveyqc.errors import DuplicateAnswerError, InterpreterStateError, MalformedSurveyError
from surveyqc.model import Block, BranchParadigm, Question, Survey, SurveyDatum, validate_survey
from surveyqc.response import OptionSelection, QuestionResponse, SurveyResponse, next_response_id


SurveyNode = Union[Question, Block]


@dataclass(frozen=True)
class PresentedQuestion:
    """
    A question as shown to the respondent.

    Properties:
        question: The question itself
        options: Options in display order, paired with display index
        index_seen: Number of questions presented before this one
    """

    question: Question
    options: Tuple[OptionSelection, ...]
    index_seen: int


def sort_blocks(blocks: Sequence[Block]) -> List[Block]:
    """Sort blocks by their natural (dotted id) order."""
    return sorted(blocks, key=lambda b: b.sort_key)


def interleave_contents(questions: Sequence[Question],
                        sub_blocks: Sequence[Block],
                        rng: np.random.Generator) -> List[SurveyNode]:
    """
    Interleave a block's direct questions and sub-blocks.

    A random permutation of all slot indices is drawn. Its first
    len(questions) entries place the questions (in source order), the
    next entries place the randomizable sub-blocks (in source order).
    The fixed sub-blocks fill the remaining slots left to right, so
    they keep their relative order.

    Raises:
        MalformedSurveyError: if there is nothing to interleave
    """
    size = len(questions) + len(sub_blocks)
    if size == 0:
        raise MalformedSurveyError("Cannot interleave an empty block")

    randomizable = [b for b in sub_blocks if b.randomizable]
    fixed = [b for b in sub_blocks if not b.randomizable]

    indices = rng.permutation(size).tolist()
    q_indices = indices[:len(questions)]
    b_indices = indices[len(questions):len(questions) + len(randomizable)]

    slots: List[Optional[SurveyNode]] = [None] * size
    for q, i in zip(questions, q_indices):
        slots[i] = q
    for b, i in zip(randomizable, b_indices):
        slots[i] = b

    remaining = iter(fixed)
    return [node if node is not None else next(remaining) for node in slots]


def shuffle_top_level(survey: Survey, rng: np.random.Generator) -> List[Block]:
    """Order the top-level blocks for one respondent."""
    if not survey.top_level_blocks:
        raise MalformedSurveyError(f"Survey {survey.name} has no top-level blocks")
    return interleave_contents([], sort_blocks(survey.top_level_blocks), rng)


def expand_block(block: Block, rng: np.random.Generator) -> List[Question]:
    """
    Flatten a block into the questions a respondent will see.

    Direct questions are kept. An ALL sub-block contributes one of its
    questions, drawn uniformly. Any other sub-block is expanded in full.
    """
    if block.contents_size == 0:
        raise MalformedSurveyError(f"Block {block.id} has no contents")

    retval: List[Question] = []
    for node in interleave_contents(block.questions, block.sub_blocks, rng):
        if isinstance(node, Question):
            retval.append(node)
        elif node.branch_paradigm == BranchParadigm.ALL:
            if not node.questions:
                raise MalformedSurveyError(f"Variant block {node.id} has no questions")
            retval.append(node.questions[int(rng.integers(len(node.questions)))])
        else:
            retval.extend(expand_block(node, rng))
    return retval


def order_options(question: Question, rng: np.random.Generator) -> Tuple[OptionSelection, ...]:
    """
    Display order for a question's options.

    Ordered questions are reversed with probability 1/2; unordered
    ones are fully shuffled; questions that do not randomize keep
    source order.
    """
    options = list(question.options)
    if question.randomize:
        if question.ordered:
            if rng.random() < 0.5:
                options.reverse()
        else:
            options = [options[i] for i in rng.permutation(len(options)).tolist()]
    return tuple(OptionSelection(option=opt, index=i) for i, opt in enumerate(options))


class Interpreter:
    """
    Simulates one respondent's traversal of a survey.

    Usage:
        interp = Interpreter(survey, rng=np.random.default_rng(7))
        while not interp.terminated():
            shown = interp.get_next_question()
            interp.answer(shown.question, [shown.options[0].option])
        response = interp.get_response()

    A branch question must be answered before the next question is
    requested, otherwise the branch is not taken.
    """

    def __init__(self, survey: Survey, rng: Optional[np.random.Generator] = None):
        validate_survey(survey)
        self.survey = survey
        self.rng = rng if rng is not None else np.random.default_rng()
        self._block_queue: Deque[Block] = deque(shuffle_top_level(survey, self.rng))
        self._question_queue: Deque[Question] = deque(expand_block(self._block_queue.popleft(), self.rng))
        self._branch_to: Optional[Block] = None
        self._presented: Dict[Question, PresentedQuestion] = {}
        self._answers: List[QuestionResponse] = []
        self._answered: Set[Question] = set()

    @property
    def branch_to(self) -> Optional[Block]:
        return self._branch_to

    def terminated(self) -> bool:
        return not self._question_queue and not self._block_queue

    def _load(self, block: Block) -> None:
        questions = expand_block(block, self.rng)
        if not questions:
            raise MalformedSurveyError(f"Survey {self.survey.name} in error: block {block.id} has no questions")
        self._question_queue = deque(questions)

    def _next_question(self) -> Question:
        while not self._question_queue:
            if not self._block_queue:
                raise InterpreterStateError(
                    f"No reachable questions remain (pending branch to "
                    f"{self._branch_to.id if self._branch_to else None})"
                )
            top = self._block_queue[0]
            if top.randomizable or self._branch_to is None:
                self._load(self._block_queue.popleft())
            elif top is self._branch_to:
                self._load(self._block_queue.popleft())
                self._branch_to = None
            else:
                # fixed block skipped by the pending branch
                self._block_queue.popleft()
        return self._question_queue.popleft()

    def get_next_question(self) -> PresentedQuestion:
        """
        Return the next question with its options in display order.

        Raises:
            InterpreterStateError: if the run has terminated
        """
        if self.terminated():
            raise InterpreterStateError("Interpreter has terminated")
        question = self._next_question()
        presented = PresentedQuestion(
            question=question,
            options=order_options(question, self.rng),
            index_seen=len(self._presented),
        )
        self._presented[question] = presented
        return presented

    def answer(self, question: Question, options: Sequence[SurveyDatum]) -> None:
        """
        Record the respondent's selection for ``question``.

        Raises:
            InterpreterStateError: if the question was never presented
            DuplicateAnswerError: if the question was already answered
            ValueError: if an option does not belong to the question
        """
        presented = self._presented.get(question)
        if presented is None:
            raise InterpreterStateError(f"Question {question.id} was never presented")
        if question in self._answered:
            raise DuplicateAnswerError(f"Question {question.id} has already been answered")

        display_index = {s.option: s.index for s in presented.options}
        selections = []
        for opt in options:
            if opt not in display_index:
                raise ValueError(f"Option {opt.id} is not an option of question {question.id}")
            selections.append(OptionSelection(option=opt, index=display_index[opt]))

        self._answered.add(question)
        self._answers.append(QuestionResponse(
            question=question,
            selections=tuple(selections),
            index_seen=len(self._answers),
        ))

        if question.is_branch_question and options:
            self._branch_to = question.get_branch_destination(options[0])

    def get_response(self, response_id: Optional[str] = None) -> SurveyResponse:
        return SurveyResponse(
            id=response_id or next_response_id(),
            responses=list(self._answers),
        )
