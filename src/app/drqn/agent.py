# -*- coding: utf-8 -*-
import logging
import math
import os
import time
from collections import deque

import numpy as np

from .batch import TrainingBatch
from .estimator import Estimator
from .memory import ReplayMemory
from .model import DRQN
from .selector import ActionSelector
from .target import TargetNetSync

# --------------------------------------------------------------------------- #
# Logging
# --------------------------------------------------------------------------- #

logger = logging.getLogger(__name__)
_pkg_logger = logging.getLogger(__package__)
if not _pkg_logger.handlers:
  # Default console handler (library-friendly: INFO by default; let apps override)
  _h = logging.StreamHandler()
  _h.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"))
  _pkg_logger.addHandler(_h)
  _pkg_logger.setLevel(logging.INFO)


class DRQNAgent():
  """
  Deep recurrent Q-learning over an episodic replay memory.

  Driver-facing: remember_episode(), select_action(s)(), update_sequential(),
  update_random(), memory_episodes(), memory_size().
  Bootstrap values always come from the target net; the live net is only
  read by select_action(s)() and trained by the update functions.
  """
  def __init__(self, args, legal_actions=None, device=None, estimator=None):
    self.gamma = float(args.gamma)
    self.unroll = int(args.unroll)
    self.minibatch_size = int(args.minibatch_size)
    self.frames_per_timestep = int(args.frames_per_timestep)
    self.output_count = int(args.output_count)
    if not 0.0 < self.gamma <= 1.0:
      raise ValueError(f"gamma must be in (0, 1], got {self.gamma}")

    if legal_actions is None:
      if hasattr(args, "actions"):
        legal_actions = args.actions()
      else:
        legal_actions = getattr(args, "legal_actions", None) or range(self.output_count)
    self.legal_actions = tuple(int(a) for a in legal_actions)

    self.rng = np.random.default_rng(getattr(args, "seed", None))
    self.memory = ReplayMemory(args.replay_memory_capacity)

    # Networks
    if estimator is None:
      estimator = Estimator(
        DRQN(args), self.minibatch_size, device=device,
        learning_rate=args.learning_rate, adam_eps=args.adam_eps, norm_clip=args.norm_clip)
      model_path = getattr(args, "model", None)
      if model_path:
        logger.info("Loading pretrained model: %s", model_path)
        estimator.load(model_path)
    if estimator.batch_capacity != self.minibatch_size:
      raise ValueError(f"estimator capacity {estimator.batch_capacity} != minibatch_size {self.minibatch_size}")
    if estimator.frames_per_timestep != self.frames_per_timestep:
      raise ValueError(f"estimator expects {estimator.frames_per_timestep} frames per timestep, "
                       f"agent uses {self.frames_per_timestep}")
    if estimator.action_count != self.output_count:
      raise ValueError(f"estimator produces {estimator.action_count} values, expected {self.output_count}")
    self.online_net = estimator

    self.selector = ActionSelector(self.legal_actions, self.output_count, rng=self.rng)
    self.target_sync = TargetNetSync(args.clone_frequency)
    self.batch = TrainingBatch(self.minibatch_size, self.unroll, self.frames_per_timestep,
                               args.frame_size, self.output_count)
    self.update_mode = getattr(args, "update_mode", "random")
    if self.update_mode == "sequential" and self.frames_per_timestep > 1:
      logger.warning("Sequential updates place each transition's frame at its window step; "
                     "with frames_per_timestep=%d the live window for step i reads frames "
                     "i..i+%d of the sweep", self.frames_per_timestep, self.frames_per_timestep - 1)
    self.last_loss = None

  # ------------------------------------------------------------------ #
  # Replay memory
  # ------------------------------------------------------------------ #

  def remember_episode(self, episode):
    self.memory.remember(episode)

  def clear_replay_memory(self):
    self.memory.clear()

  def memory_episodes(self):
    return self.memory.episode_count()

  def memory_size(self):
    return self.memory.transition_count()

  # ------------------------------------------------------------------ #
  # Acting (live net)
  # ------------------------------------------------------------------ #

  # cont=False exactly at the first decision of an episode, True afterwards
  def select_action(self, frames, epsilon, cont):
    return self.select_actions([frames], epsilon, cont)[0]

  def select_actions(self, frames_batch, epsilon, cont):
    return [av.action for av in self.selector.select(self.online_net, frames_batch, epsilon, cont)]

  # ------------------------------------------------------------------ #
  # Target net
  # ------------------------------------------------------------------ #

  @property
  def target_net(self):
    return self.target_sync.target

  def current_iteration(self):
    return self.online_net.step

  def clone_live_net(self):
    self.target_sync.clone(self.online_net)

  # ------------------------------------------------------------------ #
  # Updates
  # ------------------------------------------------------------------ #

  def _target(self, transition_reward, action, bootstrap):
    if not 0 <= action < self.output_count:
      raise ValueError(f"action {action} outside [0, {self.output_count})")
    if not -1.0 <= transition_reward <= 1.0:
      raise ValueError(f"reward {transition_reward} outside [-1, 1]; rewards must be clipped upstream")
    target = transition_reward if bootstrap is None else transition_reward + self.gamma * bootstrap
    if not math.isfinite(target):
      raise FloatingPointError(f"non-finite target {target}")
    return target

  def _train_on_batch(self):
    loss = self.online_net.train_step(*self.batch.tensors())
    if not math.isfinite(loss):
      raise FloatingPointError(f"non-finite loss {loss} at iter {self.online_net.step}")
    self.last_loss = loss
    return loss

  def _sample_episodes(self):
    if self.memory.episode_count() == 0:
      raise ValueError("cannot update from an empty replay memory")
    return self.memory.sample(self.minibatch_size, self.rng)

  def update(self):
    if self.update_mode == "sequential":
      return self.update_sequential()
    return self.update_random()

  def update_sequential(self):
    """
    Sweep every sampled episode from start to end in windows of `unroll`
    steps, carrying recurrent state across windows.
    Returns the number of optimiser steps executed.
    """
    self.target_sync.maybe_clone(self.online_net)
    target_net = self.target_sync.target
    H = self.frames_per_timestep

    episodes = self._sample_episodes()
    past_frames = [deque(maxlen=H) for _ in episodes]

    t = 0
    update_step = 0
    first_eval = True
    active_episodes = len(episodes)
    while active_episodes > 0:
      self.batch.reset(cont=True)
      if update_step == 0:
        self.batch.cont[0, :] = 0.0  # fresh recurrent state at sweep start

      for i in range(self.unroll):
        active_episodes = 0
        for n, episode in enumerate(episodes):
          next_frame = episode.next_frame(t) if t < len(episode) else None
          if next_frame is not None:
            active_episodes += 1
            past_frames[n].append(next_frame)
          else:
            past_frames[n].clear()

        if t < H - 1:
          t += 1
          continue

        # Next-state values for every slot with a full history window
        contributing = [n for n in range(len(episodes)) if len(past_frames[n]) == H]
        values = self.selector.select_greedily(
          target_net, [tuple(past_frames[n]) for n in contributing], cont=not first_eval)
        if contributing:
          first_eval = False
        bootstrap = {n: av.value for n, av in zip(contributing, values)}

        for n, episode in enumerate(episodes):
          if t >= len(episode):
            continue
          action = episode.actions[t]
          if episode.is_terminal(t):
            target = self._target(episode.rewards[t], action, None)
          else:
            if n not in bootstrap:
              raise RuntimeError(f"no bootstrap value for slot {n} at t={t}")
            target = self._target(episode.rewards[t], action, bootstrap.pop(n))
          self.batch.set_target(i, n, action, target)
          # Window step i reads positions i..i+H-1; for H > 1 the tail stays zero
          self.batch.frames[n, i] = episode.frames[t]
        if bootstrap:
          raise RuntimeError(f"unused bootstrap values for slots {sorted(bootstrap)} at t={t}")
        t += 1

      self._train_on_batch()
      update_step += 1
    return update_step

  def update_random(self):
    """
    One fixed-length update from a random window of each sampled episode.
    Returns 1 (the number of optimiser steps executed).
    """
    self.target_sync.maybe_clone(self.online_net)
    target_net = self.target_sync.target
    H = self.frames_per_timestep
    U = self.unroll

    self.batch.reset(cont=True)
    self.batch.cont[0, :] = 0.0

    episodes = self._sample_episodes()
    # Start offsets: the last transition touched is start + U + H - 2 <= len - 1
    ep_starts = []
    for episode in episodes:
      last_valid_start = len(episode) - H - U + 1
      if last_valid_start < 0:
        raise ValueError(f"episode of length {len(episode)} is too short for "
                         f"unroll={U} with frames_per_timestep={H}")
      ep_starts.append(int(self.rng.integers(0, last_valid_start + 1)))

    for u in range(U):
      windows, contributing = [], []
      for n, episode in enumerate(episodes):
        ts = ep_starts[n] + u + H - 1
        if not episode.is_terminal(ts):
          contributing.append(n)
          windows.append(episode.window(ep_starts[n] + u + 1, H))
      values = self.selector.select_greedily(target_net, windows, cont=u > 0)
      bootstrap = {n: av.value for n, av in zip(contributing, values)}

      for n, episode in enumerate(episodes):
        ts = ep_starts[n] + u + H - 1
        action = episode.actions[ts]
        target = self._target(episode.rewards[ts], action, bootstrap.get(n))
        self.batch.set_target(u, n, action, target)
        self.batch.frames[n, u + H - 1] = episode.frames[ts]

    # Context frames before the first trained step
    for n, episode in enumerate(episodes):
      for i in range(H - 1):
        self.batch.frames[n, i] = episode.frames[ep_starts[n] + i]

    self._train_on_batch()
    return 1

  # ------------------------------------------------------------------ #
  # Persistence / diagnostics
  # ------------------------------------------------------------------ #

  def save(self, path, name='model.pth'):
    return self.online_net.save(path, name)

  def save_memory(self, path, compress=True):
    self.memory.save(path, compress=compress)

  def load_memory(self, path):
    if not os.path.isfile(path):
      raise FileNotFoundError(path)
    self.memory.load(path)

  def benchmark(self, iterations=1000):
    """Time update_random() and select_action(); returns timings in ms."""
    self.update_random()
    while self.memory_episodes() < self.minibatch_size:
      before = self.memory_episodes()
      self.remember_episode(self.memory[0])
      if self.memory_episodes() <= before:
        raise ValueError(f"replay capacity {self.memory.capacity} cannot hold "
                         f"{self.minibatch_size} episodes for benchmarking")

    logger.info("*** Benchmark begins ***")
    logger.info("Testing for %d iterations.", iterations)
    total_start = time.perf_counter()
    for _ in range(iterations):
      self.update_random()
    update_ms = (time.perf_counter() - total_start) * 1000.0 / iterations
    logger.info("Average Update: %.3f ms.", update_ms)

    episode = self.memory[0]
    frames = episode.window(0, self.frames_per_timestep)
    select_start = time.perf_counter()
    for _ in range(iterations):
      self.select_action(frames, 0.0, True)
    select_ms = (time.perf_counter() - select_start) * 1000.0 / iterations
    logger.info("Average Select Action: %.3f ms.", select_ms)

    total_ms = (time.perf_counter() - total_start) * 1000.0
    hours = 1_000_000 / iterations * total_ms / 1000.0 / 3600.0
    logger.info("Total Time: %.1f ms.", total_ms)
    logger.info("Estimated Time to 1M iters: %.2f hours.", hours)
    logger.info("*** Benchmark ends ***")
    return {"update_ms": update_ms, "select_ms": select_ms, "total_ms": total_ms, "hours_per_1m": hours}
