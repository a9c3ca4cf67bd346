"""Epsilon-greedy action selection over a batch of history windows."""
from __future__ import annotations

from typing import List, NamedTuple, Optional, Sequence

import numpy as np


class ActionValue(NamedTuple):
    action: int
    value: Optional[float]  # None when the action was drawn at random


class ActionSelector:
    def __init__(self, legal_actions: Sequence[int], output_count: int, rng: Optional[np.random.Generator] = None):
        if not legal_actions:
            raise ValueError("legal_actions must not be empty")
        for a in legal_actions:
            if not 0 <= a < output_count:
                raise ValueError(f"legal action {a} outside [0, {output_count})")
        self.legal_actions = np.asarray(legal_actions, dtype=np.int64)
        self.output_count = int(output_count)
        self.rng = rng if rng is not None else np.random.default_rng()

    def _stack(self, estimator, windows) -> np.ndarray:
        if len(windows) > estimator.batch_capacity:
            raise ValueError(f"batch of {len(windows)} exceeds estimator capacity {estimator.batch_capacity}")
        for w in windows:
            if len(w) != estimator.frames_per_timestep:
                raise ValueError(f"history window has {len(w)} frames, expected {estimator.frames_per_timestep}")
        return np.stack([np.stack(w) for w in windows])

    def select_greedily(self, estimator, windows: Sequence[Sequence[np.ndarray]], cont: bool) -> List[ActionValue]:
        """One forward pass; argmax over legal actions for every window, in order."""
        if len(windows) == 0:
            return []
        q = estimator.predict(self._stack(estimator, windows), cont)
        q_legal = q[:, self.legal_actions]
        if not np.all(np.isfinite(q_legal)):
            raise FloatingPointError(f"non-finite Q-values from estimator: {q_legal}")
        best = np.argmax(q_legal, axis=1)  # first maximum wins
        return [ActionValue(int(self.legal_actions[b]), float(q_legal[i, b])) for i, b in enumerate(best)]

    def select(self, estimator, windows: Sequence[Sequence[np.ndarray]], epsilon: float, cont: bool) -> List[ActionValue]:
        """Per-sample epsilon-greedy.

        Each sample independently explores with probability ``epsilon``.  When
        any sample is greedy, the whole batch goes through one forward pass so
        every slot keeps its recurrent state aligned.
        """
        if not 0.0 <= epsilon <= 1.0:
            raise ValueError(f"epsilon must be in [0, 1], got {epsilon}")
        n = len(windows)
        if n > estimator.batch_capacity:
            raise ValueError(f"batch of {n} exceeds estimator capacity {estimator.batch_capacity}")
        if n == 0:
            return []

        explore = self.rng.random(n) < epsilon
        greedy = self.select_greedily(estimator, windows, cont) if not explore.all() else None

        results = []
        for i in range(n):
            if explore[i]:
                results.append(ActionValue(int(self.rng.choice(self.legal_actions)), None))
            else:
                results.append(greedy[i])
        return results
