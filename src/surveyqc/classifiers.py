"""
Response classifiers: decide which respondents answered attentively.

Policies:
    ENTROPY         low answer entropy relative to a bootstrap null
    LOG_LIKELIHOOD  high answer likelihood relative to a bootstrap null
    LPO             count of low-probability outcomes
    CLUSTER         supervised Hamming k-modes clustering
    STACKED         LPO, then unsupervised clustering
    ALL             every response is valid

Probability models are built from the full response collection,
target response included.

IMPORTANT: Classifiers write score, threshold and computed validity
onto the SurveyResponse objects they classify. They never touch the
Survey.
"""
from __future__ import annotations

import logging
import math
import time
from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Sequence

import numpy as np

from surveyqc.clustering import kmodes
from surveyqc.frequencies import Probabilities, make_frequencies, make_probabilities
from surveyqc.model import Question, Survey, SurveyDatum
from surveyqc.response import KnownValidityStatus, QuestionResponse, SurveyResponse
from surveyqc.session import QCSession

logger = logging.getLogger(__name__)


class Classifier(Enum):
    ENTROPY = "entropy"
    LOG_LIKELIHOOD = "log_likelihood"
    LPO = "lpo"
    CLUSTER = "cluster"
    STACKED = "stacked"
    ALL = "all"


def _log2(p: float) -> float:
    if p == 0:
        return 0.0
    return math.log2(p)


@dataclass
class ClassificationStruct:
    """
    Outcome of classifying one response.

    Properties:
        response: The classified response
        classifier: Policy that produced the decision
        num_answered: Non-custom questions answered
        score: Policy score (likelihood, entropy, LPO count, distance)
        threshold: Decision threshold; None when the policy has none
            or short-circuited for lack of data
        valid: The decision
    """

    response: SurveyResponse
    classifier: Classifier
    num_answered: int
    score: float
    threshold: Optional[float]
    valid: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "response_id": self.response.id,
            "classifier": self.classifier.value,
            "num_answered": self.num_answered,
            "score": self.score,
            "threshold": self.threshold,
            "valid": self.valid,
        }


class ClassifiedRespondents:
    """Ordered collection of ClassificationStructs for one batch."""

    def __init__(self, structs: Optional[List[ClassificationStruct]] = None):
        self._structs: List[ClassificationStruct] = list(structs or [])

    def add(self, struct: ClassificationStruct) -> None:
        self._structs.append(struct)

    def __iter__(self) -> Iterator[ClassificationStruct]:
        return iter(self._structs)

    def __len__(self) -> int:
        return len(self._structs)

    def __getitem__(self, i: int) -> ClassificationStruct:
        return self._structs[i]

    @property
    def num_valid(self) -> int:
        return sum(1 for s in self._structs if s.valid)

    @property
    def num_invalid(self) -> int:
        return sum(1 for s in self._structs if not s.valid)

    def to_dicts(self) -> List[Dict[str, Any]]:
        return [s.to_dict() for s in self._structs]


# ============================================================================
# SCORES
# ============================================================================

def get_ll_for_response(question_responses: Sequence[QuestionResponse], probabilities: Probabilities) -> float:
    """Sum of log2 P(option | question) over the selected options."""
    ll = 0.0
    for qr in question_responses:
        probs = probabilities.get(qr.question.id, {})
        for oid in qr.option_ids:
            ll += _log2(probs.get(oid, 0.0))
    return ll


def get_entropy_for_response(sr: SurveyResponse, probabilities: Probabilities) -> float:
    """-sum p log2 p over the response's selected options."""
    ent = 0.0
    for qr in sr.non_custom_responses():
        probs = probabilities.get(qr.question.id, {})
        for oid in qr.option_ids:
            p = probs.get(oid, 0.0)
            ent += p * _log2(p)
    return -ent


def get_response_subset(base: SurveyResponse, target: SurveyResponse, survey: Survey) -> List[QuestionResponse]:
    """
    ``target``'s answers to the questions ``base`` answered.

    A wording variant of a base question counts as the same question.
    If ``target`` misses any of them the subset is empty.
    """
    retval = []
    for qr in base.non_custom_responses():
        found = None
        for variant in survey.get_variants(qr.question):
            found = target.get_response_for_question(variant)
            if found is not None:
                break
        if found is None:
            return []
        retval.append(found)
    return retval


def calculate_log_likelihoods(base: SurveyResponse,
                              responses: Sequence[SurveyResponse],
                              probabilities: Probabilities,
                              survey: Survey) -> List[float]:
    """Likelihoods of every response sharing ``base``'s question set."""
    retval = []
    for sr in responses:
        subset = get_response_subset(base, sr, survey)
        if subset:
            retval.append(get_ll_for_response(subset, probabilities))
    return retval


def _probabilities(survey: Survey, responses: Sequence[SurveyResponse], smoothing: bool) -> Probabilities:
    return make_probabilities(make_frequencies(responses, survey if smoothing else None))


def _threshold_index(position: float, size: int) -> int:
    return max(0, min(int(position), size - 1))


# ============================================================================
# THRESHOLD CLASSIFIERS
# ============================================================================

def log_likelihood_classification(survey: Survey,
                                  sr: SurveyResponse,
                                  responses: Sequence[SurveyResponse],
                                  session: QCSession,
                                  smoothing: bool = False,
                                  alpha: Optional[float] = None,
                                  probabilities: Optional[Probabilities] = None) -> bool:
    """
    Valid iff the response's likelihood exceeds the alpha-quantile of
    bootstrapped mean likelihoods.

    Short-circuits to valid when too few distinct likelihoods exist
    among responses sharing the question set.
    """
    alpha = session.config.alpha if alpha is None else alpha
    if probabilities is None:
        probabilities = _probabilities(survey, responses, smoothing)

    sr.score = get_ll_for_response(sr.non_custom_responses(), probabilities)
    lls = calculate_log_likelihoods(sr, responses, probabilities, survey)
    if len(set(lls)) < session.config.min_distinct_scores:
        sr.threshold = None
        return True

    def scorer(r: SurveyResponse) -> Optional[float]:
        subset = get_response_subset(sr, r, survey)
        return get_ll_for_response(subset, probabilities) if subset else None

    means = session.cached_means(sr, responses, Classifier.LOG_LIKELIHOOD, scorer, smoothing)
    sr.threshold = means[_threshold_index(math.floor(alpha * len(means)), len(means))]
    return sr.score > sr.threshold


def entropy_classification(survey: Survey,
                           sr: SurveyResponse,
                           responses: Sequence[SurveyResponse],
                           session: QCSession,
                           smoothing: bool = False,
                           alpha: Optional[float] = None,
                           probabilities: Optional[Probabilities] = None) -> bool:
    """
    Valid iff the response's entropy is below the alpha-quantile of
    bootstrapped mean entropies. Same short-circuit rule as the
    likelihood classifier.
    """
    alpha = session.config.alpha if alpha is None else alpha
    if probabilities is None:
        probabilities = _probabilities(survey, responses, smoothing)

    sr.score = get_entropy_for_response(sr, probabilities)
    lls = calculate_log_likelihoods(sr, responses, probabilities, survey)
    if len(set(lls)) < session.config.min_distinct_scores:
        sr.threshold = None
        return True

    def scorer(r: SurveyResponse) -> Optional[float]:
        if not get_response_subset(sr, r, survey):
            return None
        return get_entropy_for_response(r, probabilities)

    means = session.cached_means(sr, responses, Classifier.ENTROPY, scorer, smoothing)
    sr.threshold = means[_threshold_index(math.ceil(alpha * len(means)), len(means))]
    return sr.score < sr.threshold


# ============================================================================
# LOW-PROBABILITY OUTCOMES
# ============================================================================

def get_lpos(survey: Survey,
             responses: Sequence[SurveyResponse],
             smoothing: bool = False,
             epsilon: float = 0.5) -> Dict[Question, List[SurveyDatum]]:
    """
    Low-probability options per question.

    Observed counts are grouped into tiers of equal count. The lowest
    tier is flagged, and each next tier is flagged while its count stays
    within (1 + epsilon) of the previous tier. Questions where every
    counted option would be flagged are left out.
    """
    frequencies = make_frequencies(responses, survey if smoothing else None)
    lpos: Dict[Question, List[SurveyDatum]] = {}
    for q in survey.questions:
        counts = frequencies.get(q.id)
        if not counts or len(counts) <= 1:
            continue

        tiers = sorted(set(counts.values()))
        flagged = [tiers[0]]
        for prev, ct in zip(tiers, tiers[1:]):
            if ct > (1 + epsilon) * prev:
                break
            flagged.append(ct)

        these = [opt for opt in q.options if counts.get(opt.id) in flagged]
        if not these or len(these) == len(counts):
            continue
        lpos[q] = these
    return lpos


def lpo_classification(survey: Survey,
                       responses: Sequence[SurveyResponse],
                       smoothing: bool = False,
                       epsilon: float = 0.5,
                       delta: float = 0.5) -> None:
    """
    Flag responses selecting too many low-probability options.

    mu is the expected LPO count: the per-question proportion of options
    flagged, summed over questions. A response is invalid iff its LPO
    count exceeds (1 - delta) * mu. A non-exclusive answer counts only
    when every selected option is flagged.
    """
    lpos = get_lpos(survey, responses, smoothing, epsilon)
    mu = sum(len(these) / float(len(q.options)) for q, these in lpos.items())
    threshold = (1 - delta) * mu

    for sr in responses:
        ct = 0
        for qr in sr.non_custom_responses():
            these = lpos.get(qr.question)
            if these is None or not qr.selections:
                continue
            if all(opt in these for opt in qr.options):
                ct += 1
        sr.score = float(ct)
        sr.threshold = threshold
        sr.computed_validity_status = KnownValidityStatus.NO if ct > threshold else KnownValidityStatus.YES


# ============================================================================
# CLUSTERING
# ============================================================================

def cluster_responses(responses: Sequence[SurveyResponse],
                      survey: Survey,
                      k: int = 2,
                      max_iterations: int = 50,
                      supervised: bool = True,
                      rng: Optional[np.random.Generator] = None) -> None:
    """
    Cluster answer vectors and label responses with their cluster.

    Each response's score becomes its Hamming distance to the cluster
    centre. In supervised mode every member inherits the majority known
    validity status of its cluster.
    """
    if not responses:
        return
    points = np.array([sr.point(survey) for sr in responses], dtype=np.int64)
    labels, centres = kmodes(points, k, max_iterations, rng)

    for sr, point, label in zip(responses, points, labels.tolist()):
        sr.cluster_label = f"cluster_{label}"
        sr.score = float(np.count_nonzero(point != centres[label]))
        sr.threshold = None

    if supervised:
        for label in set(labels.tolist()):
            members = [sr for sr, lbl in zip(responses, labels.tolist()) if lbl == label]
            status, _ = Counter(sr.known_validity_status for sr in members).most_common(1)[0]
            for sr in members:
                sr.computed_validity_status = status


# ============================================================================
# DRIVER
# ============================================================================

def _structs_from_status(responses: Sequence[SurveyResponse], classifier: Classifier) -> ClassifiedRespondents:
    retval = ClassifiedRespondents()
    for sr in responses:
        retval.add(ClassificationStruct(
            response=sr,
            classifier=classifier,
            num_answered=len(sr.non_custom_responses()),
            score=sr.score,
            threshold=sr.threshold,
            valid=sr.computed_validity_status != KnownValidityStatus.NO,
        ))
    return retval


def classify_responses(survey: Survey,
                       responses: Sequence[SurveyResponse],
                       classifier: Classifier,
                       session: Optional[QCSession] = None,
                       smoothing: bool = False,
                       alpha: Optional[float] = None) -> ClassifiedRespondents:
    """
    Classify every response with one policy.

    Args:
        survey: The survey answered
        responses: Actual or simulated responses
        classifier: Policy to apply
        session: Owner of the bootstrap caches and configuration;
            a fresh one is created when omitted
        smoothing: Apply Laplace smoothing to the probability model
        alpha: Threshold quantile; defaults to the session's config

    Returns:
        ClassifiedRespondents in input order
    """
    session = session if session is not None else QCSession()
    config = session.config
    start = time.time()

    if classifier == Classifier.CLUSTER:
        cluster_responses(responses, survey, config.cluster_k, config.cluster_max_iterations,
                          supervised=True, rng=session.rng)
        return _structs_from_status(responses, Classifier.CLUSTER)
    if classifier == Classifier.LPO:
        lpo_classification(survey, responses, smoothing, config.epsilon, config.delta)
        return _structs_from_status(responses, Classifier.LPO)
    if classifier == Classifier.STACKED:
        lpo_classification(survey, responses, smoothing, config.epsilon, config.delta)
        cluster_responses(responses, survey, config.cluster_k, config.cluster_max_iterations,
                          supervised=False, rng=session.rng)
        return _structs_from_status(responses, Classifier.LPO)

    probabilities = _probabilities(survey, responses, smoothing)
    retval = ClassifiedRespondents()
    num_valid = num_invalid = 0
    valid_min, valid_max = math.inf, -math.inf
    invalid_min, invalid_max = math.inf, -math.inf

    for i, sr in enumerate(responses):
        if i % config.log_every == 0:
            logger.info(
                "Classified %d responses (%d valid [%f, %f], %d invalid [%f, %f]) using %s policy.",
                i, num_valid, valid_min, valid_max, num_invalid, invalid_min, invalid_max, classifier.name,
            )

        if classifier == Classifier.ENTROPY:
            valid = entropy_classification(survey, sr, responses, session, smoothing, alpha, probabilities)
        elif classifier == Classifier.LOG_LIKELIHOOD:
            valid = log_likelihood_classification(survey, sr, responses, session, smoothing, alpha, probabilities)
        elif classifier == Classifier.ALL:
            valid = True
        else:
            raise ValueError(f"Unknown classification policy: {classifier}")

        sr.computed_validity_status = KnownValidityStatus.YES if valid else KnownValidityStatus.NO
        if valid:
            num_valid += 1
            valid_min, valid_max = min(valid_min, sr.score), max(valid_max, sr.score)
        else:
            num_invalid += 1
            invalid_min, invalid_max = min(invalid_min, sr.score), max(invalid_max, sr.score)

        retval.add(ClassificationStruct(
            response=sr,
            classifier=classifier,
            num_answered=len(sr.non_custom_responses()),
            score=sr.score,
            threshold=sr.threshold,
            valid=valid,
        ))

    total_seconds = time.time() - start
    logger.info("Finished classifying %d responses in %dm%.0fs",
                len(responses), int(total_seconds // 60), total_seconds % 60)
    return retval
