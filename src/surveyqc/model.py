"""
Core Survey Model Objects

Defines the survey tree consumed by the interpreter and the QC engine.

These are plain data classes representing:
    - Options (answer choices)
    - Questions (with branch maps)
    - Blocks (ordered containers of questions and sub-blocks)
    - Surveys (root container)

ARCHITECTURAL RULE:
    These objects:
        - Are built once by a loader and never mutated afterwards
        - Know nothing about presentation order or respondents
        - Represent structure, not behavior

Blocks and Questions compare by identity. Two distinct objects with
the same id are different nodes; paths are sets of Block objects.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Set, Tuple

from surveyqc.errors import MalformedSurveyError


_NUMERIC_ID_RE = re.compile(r"^\d+(\.\d+)*$")


class BranchParadigm(Enum):
    """
    How a Block relates to branching.

    NONE: no branching inside this block.
    ONE: the block holds a branch question; the respondent is routed
         to exactly one destination block.
    ALL: the block is a group of wording variants; exactly one of its
         questions is drawn at random for each respondent.
    """

    NONE = "none"
    ONE = "one"
    ALL = "all"


@dataclass(frozen=True)
class SurveyDatum:
    """
    A single answer option.

    Properties:
        id:
            Unique identifier within the survey (e.g., "comp_3_5")
        text:
            Display text
        source_row:
            Row of the source document this option came from.
            Aligns options of wording variants: two options of
            variant questions are equivalent when they sit at the
            same row offset from their question.

    Display position is NOT stored here. The interpreter
    returns display order alongside the option instead.
    """

    id: str
    text: str = ""
    source_row: int = 0


Option = SurveyDatum


@dataclass(eq=False)
class Question:
    """
    Represents a single survey question.

    Properties:
        id:
            Unique identifier (e.g., "q_2_1")
        text:
            Question text
        options:
            Answer options in source order
        exclusive:
            True for single-select questions
        ordered:
            True when option order is meaningful (Likert scales);
            randomization may then only reverse the options
        randomize:
            True when option display order may be randomized
        freetext:
            True for open text entry; such questions have no options
        custom:
            True for meta questions injected by the deployment layer
            (consent, worker id); excluded from all QC statistics
        source_row:
            Row of the source document holding the question
        branch_map:
            Selected option -> destination top-level Block.
            Options absent from the map fall through to the next block.

    INVARIANT:
        A freetext question has no options.
    """

    id: str
    text: str = ""
    options: List[SurveyDatum] = field(default_factory=list)
    exclusive: bool = True
    ordered: bool = False
    randomize: bool = True
    freetext: bool = False
    custom: bool = False
    source_row: int = 0
    branch_map: Dict[SurveyDatum, "Block"] = field(default_factory=dict, repr=False)

    @property
    def is_branch_question(self) -> bool:
        return bool(self.branch_map)

    def get_branch_destination(self, option: SurveyDatum) -> Optional["Block"]:
        return self.branch_map.get(option)

    def get_option(self, option_id: str) -> Optional[SurveyDatum]:
        for opt in self.options:
            if opt.id == option_id:
                return opt
        return None

    def rank_of(self, option: SurveyDatum) -> int:
        """1-based position of ``option`` in source order."""
        return self.options.index(option) + 1


@dataclass(eq=False)
class Block:
    """
    Ordered container of questions and nested blocks.

    Properties:
        id:
            Block identifier. Dotted numeric ids ("1", "2.1") define
            the natural order of blocks; other ids sort after them.
        questions:
            Direct questions in source order
        sub_blocks:
            Nested blocks in source order
        randomizable:
            True when the block may be moved among its siblings.
            Fixed (non-randomizable) blocks always keep their
            relative order.
        branch_paradigm:
            See BranchParadigm
        branch_question:
            The question whose answer routes the respondent, if any

    INVARIANTS:
        - A block has at least one question or sub-block
        - An ALL block has at least one question
    """

    id: str
    questions: List[Question] = field(default_factory=list)
    sub_blocks: List["Block"] = field(default_factory=list)
    randomizable: bool = False
    branch_paradigm: BranchParadigm = BranchParadigm.NONE
    branch_question: Optional[Question] = None

    def branch_questions(self) -> List[Question]:
        """Branching questions anywhere in this block's subtree."""
        retval = []
        if self.branch_question is not None and self.branch_question.is_branch_question:
            retval.append(self.branch_question)
        for q in self.questions:
            if q.is_branch_question and q is not self.branch_question:
                retval.append(q)
        for sub in self.sub_blocks:
            retval.extend(sub.branch_questions())
        return retval

    @property
    def has_branch_question(self) -> bool:
        return bool(self.branch_questions())

    @property
    def branch_destinations(self) -> Set["Block"]:
        dests: Set[Block] = set()
        for q in self.branch_questions():
            dests.update(q.branch_map.values())
        return dests

    @property
    def falls_through(self) -> bool:
        """True when some branch option has no destination."""
        return any(
            opt not in q.branch_map
            for q in self.branch_questions()
            for opt in q.options
        )

    @property
    def contents_size(self) -> int:
        return len(self.questions) + len(self.sub_blocks)

    @property
    def sort_key(self) -> Tuple:
        if _NUMERIC_ID_RE.match(self.id):
            return (0, tuple(int(part) for part in self.id.split(".")), "")
        return (1, (), self.id)

    def __repr__(self) -> str:
        return f"Block(id={self.id!r}, questions={len(self.questions)}, sub_blocks={len(self.sub_blocks)})"


@dataclass(eq=False)
class Survey:
    """
    Root container for a survey definition.

    Properties:
        name:
            Survey identifier
        top_level_blocks:
            Blocks directly under the survey root
        metadata:
            Arbitrary key-value pairs (use sparingly)

    ARCHITECTURAL PRINCIPLE:
        Survey is read-only once constructed.
        Lookup tables are built in __post_init__; do not reassign
        top_level_blocks afterwards.
    """

    name: str
    top_level_blocks: List[Block] = field(default_factory=list)
    metadata: Dict[str, str] = field(default_factory=dict)

    _parent: Dict[int, Block] = field(init=False, repr=False, default_factory=dict)
    _question_block: Dict[int, Block] = field(init=False, repr=False, default_factory=dict)
    _questions: List[Question] = field(init=False, repr=False, default_factory=list)
    _blocks: List[Block] = field(init=False, repr=False, default_factory=list)

    def __post_init__(self) -> None:
        stack = list(reversed(self.top_level_blocks))
        while stack:
            block = stack.pop()
            self._blocks.append(block)
            for q in block.questions:
                self._question_block[id(q)] = block
                self._questions.append(q)
            for sub in reversed(block.sub_blocks):
                self._parent[id(sub)] = block
                stack.append(sub)

    @property
    def questions(self) -> List[Question]:
        """All questions, depth first in block order."""
        return list(self._questions)

    def get_all_blocks(self) -> List[Block]:
        return list(self._blocks)

    def get_question(self, question_id: str) -> Optional[Question]:
        """
        Retrieve a question by ID.

        Args:
            question_id: Question identifier

        Returns:
            Question object or None if not found
        """
        for q in self._questions:
            if q.id == question_id:
                return q
        return None

    def get_block(self, block_id: str) -> Optional[Block]:
        for b in self._blocks:
            if b.id == block_id:
                return b
        return None

    def get_containing_block(self, question: Question) -> Block:
        try:
            return self._question_block[id(question)]
        except KeyError:
            raise MalformedSurveyError(f"Question {question.id} does not belong to survey {self.name}")

    def get_farthest_containing_block(self, question: Question) -> Block:
        """Return the top-level block that (transitively) holds ``question``."""
        block = self.get_containing_block(question)
        while id(block) in self._parent:
            block = self._parent[id(block)]
        return block

    def get_variants(self, question: Question) -> List[Question]:
        """
        Return the wording variants of ``question``.

        Variants are the questions of an enclosing ALL block.
        A question outside such a block is its own only variant.
        """
        block = self.get_containing_block(question)
        if block.branch_paradigm == BranchParadigm.ALL:
            return list(block.questions)
        return [question]

    def partition_blocks(self) -> Tuple[List[Block], List[Block]]:
        """Split top-level blocks into (randomizable, fixed)."""
        randomizable = [b for b in self.top_level_blocks if b.randomizable]
        fixed = [b for b in self.top_level_blocks if not b.randomizable]
        return randomizable, fixed


def validate_survey(survey: Survey) -> None:
    """
    Check the structural invariants of a survey.

    Raises:
        MalformedSurveyError: on the first violation found
    """
    if not survey.top_level_blocks:
        raise MalformedSurveyError(f"Survey {survey.name} has no top-level blocks")

    top_level = set(survey.top_level_blocks)
    for block in survey.get_all_blocks():
        if block.contents_size == 0:
            raise MalformedSurveyError(f"Block {block.id} in survey {survey.name} has no contents")
        if block.branch_paradigm == BranchParadigm.ALL and not block.questions:
            raise MalformedSurveyError(f"Variant block {block.id} has no questions")
        for q in block.questions:
            if q.freetext and q.options:
                raise MalformedSurveyError(f"Freetext question {q.id} carries options")
            for dest in q.branch_map.values():
                if dest not in top_level:
                    raise MalformedSurveyError(
                        f"Question {q.id} branches to block {dest.id}, which is not a top-level block"
                    )
                if dest.randomizable:
                    raise MalformedSurveyError(
                        f"Question {q.id} branches to randomizable block {dest.id}"
                    )
                origin = survey.get_farthest_containing_block(q)
                if origin.randomizable:
                    # a shuffled origin may be shown after its destination
                    raise MalformedSurveyError(
                        f"Question {q.id} branches from randomizable block {origin.id}"
                    )
                if dest.sort_key <= origin.sort_key:
                    raise MalformedSurveyError(
                        f"Question {q.id} in block {origin.id} branches backwards to block {dest.id}"
                    )
