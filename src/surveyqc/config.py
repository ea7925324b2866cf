"""
QC configuration.

All tunables of the quality-control engine live in one dataclass.
Values can come from code, a YAML document or the environment.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, fields, asdict
from typing import Any, Dict, Optional

import numpy as np
import yaml


_ENV_PREFIX = "SURVEYQC_"


@dataclass
class QCConfig:
    """
    Runtime configuration for classification and bias detection.

    Properties:
        bootstrap_iterations:
            Number of resampled response collections per question set.
        alpha:
            Quantile of the bootstrap distribution used as threshold.
        epsilon:
            Tier tolerance for low-probability-outcome counting.
        delta:
            Fraction of the expected LPO count tolerated before
            a response is flagged.
        min_distinct_scores:
            Fewer distinct scores than this and threshold classifiers
            report every response as valid.
        cluster_k, cluster_max_iterations:
            Clustering parameters.
        path_length_samples:
            Random respondents simulated for the average path length.
        order_bias_min_samples, order_bias_balance:
            Order-bias skip rules (minimum sub-sample size, relative
            size band treated as inconclusive).
        log_every:
            Progress is logged every this many classified responses.
        seed:
            Seed for ``make_rng``; None draws fresh entropy.
    """

    bootstrap_iterations: int = 2000
    alpha: float = 0.05
    epsilon: float = 0.5
    delta: float = 0.5
    min_distinct_scores: int = 6
    cluster_k: int = 2
    cluster_max_iterations: int = 50
    path_length_samples: int = 5000
    order_bias_min_samples: int = 5
    order_bias_balance: float = 0.2
    log_every: int = 25
    seed: Optional[int] = None

    def __post_init__(self) -> None:
        if self.bootstrap_iterations < 1:
            raise ValueError("bootstrap_iterations must be positive")
        if not 0.0 <= self.alpha <= 1.0:
            raise ValueError(f"alpha must lie in [0, 1], got {self.alpha}")
        if not 0.0 <= self.delta <= 1.0:
            raise ValueError(f"delta must lie in [0, 1], got {self.delta}")
        if self.cluster_k < 1:
            raise ValueError("cluster_k must be positive")

    def make_rng(self) -> np.random.Generator:
        return np.random.default_rng(self.seed)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Optional[Dict[str, Any]]) -> "QCConfig":
        if not d:
            return cls()
        known = {f.name for f in fields(cls)}
        unknown = set(d) - known
        if unknown:
            raise ValueError(f"Unknown QC configuration keys: {', '.join(sorted(unknown))}")
        return cls(**d)

    @classmethod
    def from_yaml(cls, s: str) -> "QCConfig":
        """Build a config from a YAML mapping (optionally nested under ``qc``)."""
        d = yaml.safe_load(s) or {}
        if "qc" in d and isinstance(d["qc"], dict):
            d = d["qc"]
        return cls.from_dict(d)

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> "QCConfig":
        """Build a config from ``SURVEYQC_<FIELD>`` environment variables."""
        environ = os.environ if environ is None else environ
        values: Dict[str, Any] = {}
        for f in fields(cls):
            raw = environ.get(_ENV_PREFIX + f.name.upper())
            if raw is None or raw.strip() == "":
                continue
            if f.name == "seed":
                values[f.name] = int(raw)
            elif isinstance(getattr(cls, f.name), float):
                values[f.name] = float(raw)
            else:
                values[f.name] = int(raw)
        return cls(**values)
