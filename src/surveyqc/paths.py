"""
Path enumeration: every block-level traversal of a survey.

A path is the set of top-level blocks one respondent can see. Fixed
blocks form a DAG whose edges are branch destinations; top-level
randomizable blocks are shown to everyone and so belong to every path.

IMPORTANT: This is static analysis. It reads the Survey and responses;
it never modifies them.
"""
from __future__ import annotations

import logging
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence

import numpy as np

from surveyqc.errors import PathMatchError
from surveyqc.interpreter import sort_blocks
from surveyqc.model import Block, BranchParadigm, Question, Survey
from surveyqc.response import SurveyResponse

logger = logging.getLogger(__name__)

Path = FrozenSet[Block]


def _dag(block_list: List[Block]) -> List[List[Block]]:
    if not block_list:
        return [[]]

    head, tail = block_list[0], block_list[1:]
    if head.has_branch_question:
        starts = set()
        for dest in head.branch_destinations:
            # destinations outside the remaining scope are skipped
            if dest in tail:
                starts.add(tail.index(dest))
        if head.falls_through:
            starts.add(0)
        retval = []
        for start in sorted(starts):
            for path in _dag(tail[start:]):
                retval.append([head] + path)
        return retval

    return [[head] + path for path in _dag(tail)]


def get_dag(blocks: Sequence[Block]) -> List[List[Block]]:
    """
    Enumerate all traversals through a list of fixed blocks.

    Blocks are sorted by natural order first. A block without a
    branch question is mandatory. A branching block contributes one
    family of sub-paths per reachable destination.

    Returns:
        List of block lists, each in traversal order. The empty input
        yields a single empty path.
    """
    return _dag(sort_blocks(blocks))


def get_paths(survey: Survey) -> List[Path]:
    """
    Return the distinct block paths through ``survey``.

    Top-level randomizable blocks are added to every path. A survey
    made only of randomizable blocks has exactly one path.
    """
    randomizable, fixed = survey.partition_blocks()
    dag = get_dag(fixed)
    logger.info("Computing paths for survey having DAG with %d paths through fixed blocks.", len(dag))

    if len(dag) == 1 and not dag[0]:
        return [frozenset(randomizable)]

    retval: List[Path] = []
    for blist in dag:
        if not blist:
            continue
        path = frozenset(blist) | frozenset(randomizable)
        if path not in retval:
            retval.append(path)
    if len(retval) > 1:
        logger.info("Computed %d paths through the survey.", len(retval))
    return retval


def get_path(response: SurveyResponse, survey: Survey) -> Path:
    """Return the top-level blocks a respondent traversed."""
    return frozenset(
        survey.get_farthest_containing_block(qr.question)
        for qr in response.non_custom_responses()
    )


def match_path(traversed: Path, paths: Sequence[Path]) -> Path:
    """
    Find the path a traversed block set belongs to.

    An exact match wins. Otherwise exactly one path may contain the
    traversed set.

    Raises:
        PathMatchError: on no match or an ambiguous match
    """
    for path in paths:
        if path == traversed:
            return path
    candidates = [path for path in paths if traversed <= path]
    if not candidates:
        raise PathMatchError(
            "Path survey respondent took does not match any known paths through the survey: "
            + ", ".join(sorted(b.id for b in traversed))
        )
    if len(candidates) > 1:
        raise PathMatchError(
            f"Traversed blocks {sorted(b.id for b in traversed)} are contained in "
            f"{len(candidates)} paths through the survey"
        )
    return candidates[0]


def make_frequencies_for_paths(paths: Sequence[Path],
                               responses: Iterable[SurveyResponse],
                               survey: Survey) -> Dict[Path, List[SurveyResponse]]:
    """
    Group responses by the path they followed.

    Responses without any non-custom answer are left out.

    Returns:
        Map from every path (including unobserved ones) to its responses
    """
    retval: Dict[Path, List[SurveyResponse]] = {path: [] for path in paths}
    for r in responses:
        traversed = get_path(r, survey)
        if not traversed:
            logger.warning("Response %s has no answers; not assigned to a path.", r.id)
            continue
        retval[match_path(traversed, paths)].append(r)
    return retval


def get_questions(blocks: Iterable[Block], rng: Optional[np.random.Generator] = None) -> List[Question]:
    """
    Return the questions shown along a set of blocks.

    A variant (ALL) block contributes one randomly chosen question.
    """
    rng = rng if rng is not None else np.random.default_rng()
    questions: List[Question] = []
    for block in sort_blocks(list(blocks)):
        if block.branch_paradigm != BranchParadigm.ALL:
            questions.extend(block.questions)
        elif block.questions:
            questions.append(block.questions[int(rng.integers(len(block.questions)))])
        questions.extend(get_questions(block.sub_blocks, rng))
    return questions
