"""Reusable training buffers, allocated once per agent and refilled per update."""
from __future__ import annotations

import numpy as np


class TrainingBatch:
    """
    frames  [B, U + H - 1, S, S]  uint8
    cont    [U, B]                float32 (1 = carry recurrent state)
    targets [U, B, A]             float32
    mask    [U, B, A]             float32 (1 only at the action taken)
    """

    def __init__(self, minibatch_size: int, unroll: int, frames_per_timestep: int,
                 frame_size: int, output_count: int):
        self.minibatch_size = minibatch_size
        self.unroll = unroll
        self.frames_per_timestep = frames_per_timestep
        window = unroll + frames_per_timestep - 1
        self.frames = np.zeros((minibatch_size, window, frame_size, frame_size), dtype=np.uint8)
        self.cont = np.zeros((unroll, minibatch_size), dtype=np.float32)
        self.targets = np.zeros((unroll, minibatch_size, output_count), dtype=np.float32)
        self.mask = np.zeros((unroll, minibatch_size, output_count), dtype=np.float32)

    def reset(self, cont: bool) -> None:
        self.frames.fill(0)
        self.targets.fill(0.0)
        self.mask.fill(0.0)
        self.cont.fill(1.0 if cont else 0.0)

    def set_target(self, step: int, slot: int, action: int, target: float) -> None:
        self.mask[step, slot, action] = 1.0
        self.targets[step, slot, action] = target

    def tensors(self):
        return self.frames, self.cont, self.targets, self.mask
