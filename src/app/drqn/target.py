"""Periodic hard copy of the live network into a frozen target network."""
from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


class TargetNetSync:
    """
    Holds the target estimator used for bootstrap values.
    The target is replaced wholesale (never blended) once at least
    `clone_frequency` optimiser steps have passed since the last copy.
    """

    def __init__(self, clone_frequency: int):
        if clone_frequency < 1:
            raise ValueError(f"clone_frequency must be >= 1, got {clone_frequency}")
        self.clone_frequency = int(clone_frequency)
        self.last_clone_step = 0
        self.target = None

    def due(self, step: int) -> bool:
        return self.target is None or step >= self.last_clone_step + self.clone_frequency

    def clone(self, live) -> None:
        if self.target is None:
            self.target = live.clone()
        else:
            self.target.copy_parameters_from(live)
        self.last_clone_step = live.step

    def maybe_clone(self, live) -> bool:
        """Call before each update; returns True when the target was refreshed."""
        if not self.due(live.step):
            return False
        logger.info("Iter %d: Updating target net", live.step)
        self.clone(live)
        return True
