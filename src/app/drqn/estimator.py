# -*- coding: utf-8 -*-
"""Thin adapter between the numpy batch buffers and a torch Q-network.

An Estimator has a fixed batch capacity; smaller inference batches are
zero-padded so that batch slot ``i`` always maps to the same recurrent state
row.  Inference and training keep separate recurrent states.
"""
from __future__ import annotations

import copy
import os
from typing import Optional

import numpy as np
import torch
from torch import optim
from torch.nn.utils import clip_grad_norm_


class Estimator:
    def __init__(
        self,
        net: torch.nn.Module,
        batch_capacity: int,
        device: Optional[torch.device] = None,
        learning_rate: Optional[float] = None,
        adam_eps: float = 1.5e-4,
        norm_clip: Optional[float] = None,
    ):
        self.device = device or torch.device("cpu")
        self.net = net.to(device=self.device)
        self.batch_capacity = int(batch_capacity)
        self.frames_per_timestep = int(net.frames_per_timestep)
        self.action_count = int(net.output_count)
        self.norm_clip = norm_clip
        self.step = 0

        self.optimiser = None
        if learning_rate is not None:
            self.optimiser = optim.Adam(self.net.parameters(), lr=learning_rate, eps=adam_eps)
            self.net.train()
        else:
            self._freeze()

        self._predict_state = None
        self._train_state = None

    def _freeze(self) -> None:
        self.net.eval()
        for p in self.net.parameters():
            p.requires_grad = False

    def _frames_tensor(self, frames: np.ndarray) -> torch.Tensor:
        return torch.tensor(frames, dtype=torch.float32, device=self.device).div_(255)

    @property
    def trainable(self) -> bool:
        return self.optimiser is not None

    # ------------------------------------------------------------------ #
    # Inference
    # ------------------------------------------------------------------ #

    def predict(self, frames: np.ndarray, cont: bool) -> np.ndarray:
        """Q-values for ``frames`` [n, H, S, S] (uint8), n <= batch_capacity.

        cont=False resets the recurrent state of every slot before the step.
        Returns float32 [n, action_count].
        """
        n = frames.shape[0]
        if n > self.batch_capacity:
            raise ValueError(f"batch of {n} exceeds estimator capacity {self.batch_capacity}")
        if frames.shape[1] != self.frames_per_timestep:
            raise ValueError(f"expected {self.frames_per_timestep} frames per sample, got {frames.shape[1]}")

        padded = np.zeros((self.batch_capacity,) + frames.shape[1:], dtype=np.uint8)
        padded[:n] = frames
        cont_t = torch.full((1, self.batch_capacity), float(cont), device=self.device)

        was_training = self.net.training
        self.net.eval()
        with torch.no_grad():
            q, self._predict_state = self.net(self._frames_tensor(padded), cont_t, self._predict_state)
        if was_training:
            self.net.train()
        return q[0, :n].cpu().numpy()

    # ------------------------------------------------------------------ #
    # Training
    # ------------------------------------------------------------------ #

    def train_step(self, frames: np.ndarray, cont: np.ndarray,
                   targets: np.ndarray, mask: np.ndarray) -> float:
        """One optimiser step on a full batch.

        frames [B, U+H-1, S, S] uint8, cont [U, B], targets/mask [U, B, A].
        Only masked (taken) actions contribute to the loss.
        """
        if not self.trainable:
            raise RuntimeError("this estimator has no optimiser (it is a frozen clone)")
        unroll, batch = cont.shape
        if batch != self.batch_capacity:
            raise ValueError(f"training batch must have {self.batch_capacity} slots, got {batch}")
        if frames.shape[:2] != (batch, unroll + self.frames_per_timestep - 1):
            raise ValueError(f"frames shape {frames.shape} does not match cont shape {cont.shape}")

        cont_t = torch.tensor(cont, dtype=torch.float32, device=self.device)
        targets_t = torch.tensor(targets, dtype=torch.float32, device=self.device)
        mask_t = torch.tensor(mask, dtype=torch.float32, device=self.device)

        q, state = self.net(self._frames_tensor(frames), cont_t, self._train_state)
        # Truncated BPTT: carry the state, not the graph
        self._train_state = None if state is None else tuple(s.detach() for s in state)

        loss = ((q * mask_t - targets_t) ** 2).sum() / (2 * unroll)

        self.net.zero_grad(set_to_none=True)
        loss.backward()
        if self.norm_clip:
            clip_grad_norm_(self.net.parameters(), self.norm_clip)
        self.optimiser.step()
        self.step += 1
        return float(loss.item())

    # ------------------------------------------------------------------ #
    # Parameters
    # ------------------------------------------------------------------ #

    def clone(self) -> "Estimator":
        """Frozen copy of this estimator: same parameters, no optimiser, no gradients."""
        twin = Estimator(copy.deepcopy(self.net), self.batch_capacity, device=self.device)
        twin.step = self.step
        return twin

    def copy_parameters_from(self, other: "Estimator") -> None:
        self.net.load_state_dict(other.net.state_dict())

    def save(self, path: str, name: str = "model.pth") -> str:
        out = os.path.join(path, name)
        torch.save(self.net.state_dict(), out)
        return out

    def load(self, model_path: str) -> None:
        if not os.path.isfile(model_path):
            raise FileNotFoundError(model_path)
        state = torch.load(model_path, map_location="cpu")  # load on CPU first
        self.net.load_state_dict(state)
