"""
Survey Analyzer: whole-survey summary statistics.

This module provides lightweight analysis of Survey objects:
    - Inventory of blocks, questions, branches and variants
    - Path lengths (minimum, maximum, simulated average)
    - Maximum possible and empirical entropy
    - Warning flags for authoring mistakes

IMPORTANT: This is static analysis plus simulation. It does NOT modify
the survey. It only produces read-only reports.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Set

import numpy as np

from surveyqc.config import QCConfig
from surveyqc.frequencies import get_equivalent_answer_variants, remove_freetext
from surveyqc.model import BranchParadigm, Question, Survey
from surveyqc.paths import Path, get_paths, get_questions, make_frequencies_for_paths
from surveyqc.respondent import RandomRespondent
from surveyqc.response import SurveyResponse

logger = logging.getLogger(__name__)


def _log2(p: float) -> float:
    return 0.0 if p == 0 else float(np.log2(p))


def _path_lengths(survey: Survey, rng: Optional[np.random.Generator] = None) -> List[int]:
    return [len(get_questions(path, rng)) for path in get_paths(survey)]


def minimum_path_length(survey: Survey) -> int:
    """Fewest questions along any path through the survey."""
    retval = min(_path_lengths(survey))
    logger.info("Survey %s has minimum path length of %d", survey.name, retval)
    return retval


def maximum_path_length(survey: Survey) -> int:
    """Most questions along any path through the survey."""
    retval = max(_path_lengths(survey))
    logger.info("Survey %s has maximum path length of %d", survey.name, retval)
    return retval


def average_path_length(survey: Survey, n: int = 5000, rng: Optional[np.random.Generator] = None) -> float:
    """
    Mean number of non-custom answers over ``n`` uniform random respondents.
    """
    rng = rng if rng is not None else np.random.default_rng()
    total = 0
    for _ in range(n):
        total += len(RandomRespondent(survey, rng=rng).response.non_custom_responses())
    avg = total / float(n) if n else 0.0
    logger.info("Survey %s has average path length of %f", survey.name, avg)
    return avg


def _max_entropy(questions: Sequence[Question]) -> float:
    return sum(_log2(len(q.options)) for q in questions if q.options)


def max_possible_entropy(survey: Survey) -> float:
    """Bits needed to encode the answers along the most informative path."""
    max_ent = 0.0
    for path in get_paths(survey):
        max_ent = max(max_ent, _max_entropy(get_questions(path)))
    logger.info("Maximum possible entropy for survey %s: %f", survey.name, max_ent)
    return max_ent


def survey_entropy(survey: Survey, responses: Sequence[SurveyResponse]) -> float:
    """
    Empirical base-2 entropy of the responses, stratified by path.

    Each answer is counted together with its wording-variant
    equivalents. Fewer than two responses yield 0.0.

    Raises:
        PathMatchError: when a response's blocks fit no path, or fit
            several (a breakoff before the first branch)
    """
    total = len(responses)
    if total < 2:
        return 0.0

    paths = get_paths(survey)
    path_map = make_frequencies_for_paths(paths, responses, survey)
    retval = 0.0
    for q in remove_freetext(survey.questions):
        if q.custom:
            continue
        for opt in q.options:
            variants = get_equivalent_answer_variants(q, opt, survey)
            for path in paths:
                ans_this_path = sum(1 for r in path_map[path] if r.contains_answer(variants))
                p = ans_this_path / float(total)
                retval += _log2(p) * p
    return -retval


@dataclass
class SurveyReport:
    """Summary report for a survey."""

    survey_name: str
    total_blocks: int = 0
    total_top_level_blocks: int = 0
    total_questions: int = 0
    randomizable_blocks: int = 0
    variant_blocks: int = 0
    branch_questions: int = 0

    # Paths
    num_paths: int = 0
    min_path_length: int = 0
    max_path_length: int = 0
    avg_path_length: float = 0.0
    unreachable_blocks: Set[str] = field(default_factory=set)

    # Information content
    max_possible_entropy: float = 0.0

    # Authoring problems
    single_option_questions: List[str] = field(default_factory=list)
    questions_without_options: List[str] = field(default_factory=list)

    # Warnings and flags
    warnings: List[str] = field(default_factory=list)

    def add_warning(self, msg: str) -> None:
        """Add a warning to the report."""
        if msg not in self.warnings:
            self.warnings.append(msg)


def analyze_survey(survey: Survey,
                   config: Optional[QCConfig] = None,
                   rng: Optional[np.random.Generator] = None) -> SurveyReport:
    """
    Perform summary analysis of a Survey.

    Checks for:
    - Block and question inventory
    - Path structure and unreachable fixed blocks
    - Entropy bounds
    - Questions that cannot discriminate between respondents

    Returns a SurveyReport with metrics and warnings.
    """
    config = config if config is not None else QCConfig()
    rng = rng if rng is not None else config.make_rng()
    report = SurveyReport(survey_name=survey.name)

    # =========================================================================
    # 1. INVENTORY
    # =========================================================================

    all_blocks = survey.get_all_blocks()
    report.total_blocks = len(all_blocks)
    report.total_top_level_blocks = len(survey.top_level_blocks)
    report.total_questions = len(survey.questions)
    report.randomizable_blocks = sum(1 for b in all_blocks if b.randomizable)
    report.variant_blocks = sum(1 for b in all_blocks if b.branch_paradigm == BranchParadigm.ALL)
    report.branch_questions = sum(1 for q in survey.questions if q.is_branch_question)

    # =========================================================================
    # 2. PATHS
    # =========================================================================

    paths: List[Path] = get_paths(survey)
    report.num_paths = len(paths)
    lengths = [len(get_questions(path, rng)) for path in paths]
    report.min_path_length = min(lengths)
    report.max_path_length = max(lengths)
    report.avg_path_length = average_path_length(survey, config.path_length_samples, rng)

    on_some_path = set()
    for path in paths:
        on_some_path.update(path)
    _, fixed = survey.partition_blocks()
    report.unreachable_blocks = {b.id for b in fixed if b not in on_some_path}

    # =========================================================================
    # 3. ENTROPY
    # =========================================================================

    report.max_possible_entropy = max_possible_entropy(survey)

    # =========================================================================
    # 4. WARNING FLAGS
    # =========================================================================

    for q in survey.questions:
        if q.freetext or q.custom:
            continue
        if not q.options:
            report.questions_without_options.append(q.id)
        elif len(q.options) == 1:
            report.single_option_questions.append(q.id)

    if report.unreachable_blocks:
        report.add_warning(
            f"Unreachable blocks: {', '.join(sorted(report.unreachable_blocks))}"
        )

    if report.single_option_questions:
        report.add_warning(
            f"Questions with a single option: {', '.join(report.single_option_questions)}"
        )

    if report.questions_without_options:
        report.add_warning(
            f"Questions without options: {', '.join(report.questions_without_options)}"
        )

    if report.max_possible_entropy == 0.0:
        report.add_warning("Survey carries no information: every path has zero entropy")

    return report
