"""
Engine tunables. Defaults match the module constants; FORMTRACK_* environment
variables override them (run.py loads .env before reading them).
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields
from typing import Mapping, Optional

from .landmarks import VISIBILITY_THRESHOLD
from .reps import CORRECT_REP_MIN_SCORE, TARGET_REPS_PER_SET
from .smoothing import MOVEMENT_THRESHOLD, SMOOTHING_WEIGHT

logger = logging.getLogger(__name__)

ENV_PREFIX = "FORMTRACK_"


@dataclass(frozen=True)
class EngineConfig:
    smoothing_weight: float = SMOOTHING_WEIGHT
    movement_threshold: float = MOVEMENT_THRESHOLD
    visibility_threshold: float = VISIBILITY_THRESHOLD
    target_reps_per_set: int = TARGET_REPS_PER_SET
    correct_rep_min_score: int = CORRECT_REP_MIN_SCORE

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "EngineConfig":
        """
        Build a config from FORMTRACK_SMOOTHING_WEIGHT, FORMTRACK_MOVEMENT_THRESHOLD,
        FORMTRACK_VISIBILITY_THRESHOLD, FORMTRACK_TARGET_REPS_PER_SET and
        FORMTRACK_CORRECT_REP_MIN_SCORE. Unset variables keep the defaults.
        """
        env = os.environ if environ is None else environ
        values = {}
        for f in fields(cls):
            raw = env.get(ENV_PREFIX + f.name.upper())
            if raw is None or raw == "":
                continue
            cast = int if f.type in ("int", int) else float
            try:
                values[f.name] = cast(raw)
            except ValueError:
                raise ValueError(f"{ENV_PREFIX}{f.name.upper()}: expected {cast.__name__}, got {raw!r}") from None
        if values:
            logger.info("engine config overrides: %s", values)
        return cls(**values)
