"""
QC session: owner of the bootstrap caches.

Bootstrap resampling is the expensive part of threshold classification.
Responses that answered the same questions share one resample set, and
for a given classifier one sorted list of resampled mean scores.

A QCSession is bound to one survey and one response collection. Call
reset() (or leave the ``with`` block) before reusing it on other data;
cached means are keyed by question set, not by the responses themselves.
"""
from __future__ import annotations

import logging
import threading
from typing import Callable, Dict, FrozenSet, Hashable, List, Optional, Sequence, Tuple

import numpy as np

from surveyqc.config import QCConfig
from surveyqc.model import Question
from surveyqc.response import SurveyResponse

logger = logging.getLogger(__name__)

QuestionKey = FrozenSet[Question]
Scorer = Callable[[SurveyResponse], Optional[float]]


class QCSession:
    """
    Shared state for a batch of classification calls.

    Properties:
        config: QCConfig in effect
        rng: Random source used for resampling

    Both caches are insert-if-absent under one re-entrant lock, so two
    threads classifying responses with the same question set never
    resample twice.
    """

    def __init__(self, config: Optional[QCConfig] = None, rng: Optional[np.random.Generator] = None):
        self.config = config if config is not None else QCConfig()
        self.rng = rng if rng is not None else self.config.make_rng()
        self._lock = threading.RLock()
        self._samples: Dict[QuestionKey, np.ndarray] = {}
        self._means: Dict[Tuple[Hashable, QuestionKey, bool], List[float]] = {}

    def __enter__(self) -> "QCSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.reset()

    def reset(self) -> None:
        with self._lock:
            self._samples.clear()
            self._means.clear()

    def _draw_indices(self, n: int, iterations: int) -> np.ndarray:
        return self.rng.integers(0, n, size=(iterations, n))

    def generate_bootstrap_sample(self,
                                  responses: Sequence[SurveyResponse],
                                  iterations: Optional[int] = None) -> List[List[SurveyResponse]]:
        """
        Resample ``responses`` with replacement.

        Returns:
            ``iterations`` collections, each the size of ``responses``
        """
        iterations = self.config.bootstrap_iterations if iterations is None else iterations
        if not responses:
            return [[] for _ in range(iterations)]
        indices = self._draw_indices(len(responses), iterations)
        return [[responses[i] for i in row] for row in indices.tolist()]

    def cached_question_set(self, sr: SurveyResponse, responses: Sequence[SurveyResponse]) -> np.ndarray:
        """
        Resample indices shared by every response answering ``sr``'s questions.

        Returns:
            Array of shape (bootstrap_iterations, len(responses)) indexing
            into ``responses``
        """
        key = sr.question_set()
        with self._lock:
            sample = self._samples.get(key)
            if sample is not None:
                logger.debug("Bootstrap cache hit for %d questions", len(key))
                return sample
            logger.debug("Bootstrap cache miss for %d questions", len(key))
            sample = self._draw_indices(len(responses), self.config.bootstrap_iterations)
            self._samples[key] = sample
            return sample

    def cached_means(self,
                     sr: SurveyResponse,
                     responses: Sequence[SurveyResponse],
                     classifier: Hashable,
                     scorer: Scorer,
                     smoothing: bool = False) -> List[float]:
        """
        Sorted bootstrap distribution of mean scores.

        ``scorer`` returns a response's score, or None when that
        response did not answer the same (variant-equivalent) questions
        as ``sr``. Each resample contributes the mean over its scored
        members; a resample with none contributes 0.0.

        Returns:
            Means in ascending order
        """
        key = (classifier, sr.question_set(), smoothing)
        with self._lock:
            means = self._means.get(key)
            if means is not None:
                logger.debug("Means cache hit for %s", classifier)
                return means

            if not responses:
                self._means[key] = []
                return []

            sample = self.cached_question_set(sr, responses)
            raw = [scorer(r) for r in responses]
            scored = np.array([s is not None for s in raw])
            scores = np.array([0.0 if s is None else s for s in raw])

            totals = scores[sample].sum(axis=1)
            counts = scored[sample].sum(axis=1)
            row_means = np.divide(totals, counts, out=np.zeros_like(totals), where=counts > 0)

            means = sorted(row_means.tolist())
            if len(means) > 1 and not means[0] < means[-1]:
                logger.debug("Degenerate bootstrap distribution for %s (all means %f)", classifier, means[0])
            self._means[key] = means
            return means
