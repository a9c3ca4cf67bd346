# -*- coding: utf-8 -*-
import logging
import threading
from collections import deque

import numpy as np

from .episode import Episode, freeze_frame

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------
# Snapshot layout: one structured record per transition, one per episode
# ---------------------------------------------------------------------

TRANSITION_DTYPE = np.dtype([
  ('action', np.int32),
  ('reward', np.float32),
])

EPISODE_DTYPE = np.dtype([
  ('length',   np.int32),
  ('terminal', np.bool_),
])


class ReplayMemory():
  """
  Episodic replay: a FIFO of whole Episodes bounded by a transition budget.

  - remember() appends, then evicts the oldest episodes while the total
    transition count is >= capacity. Episodes are never truncated.
  - sample() draws distinct episodes uniformly without replacement.
  - A single lock guards remember/clear/sample so a producer thread can feed
    experience while another thread trains.
  """
  def __init__(self, capacity):
    if capacity < 1:
      raise ValueError(f"capacity must be >= 1, got {capacity}")
    self.capacity = int(capacity)
    self.episodes = deque()
    self.total_transitions = 0
    self._lock = threading.Lock()

  def remember(self, episode):
    if not isinstance(episode, Episode):
      raise TypeError(f"expected Episode, got {type(episode).__name__}")
    with self._lock:
      evicted = self._push(episode)
    if evicted:
      logger.debug("Evicted %d episode(s); memory holds %d transitions in %d episodes",
                   evicted, self.total_transitions, len(self.episodes))

  # Caller holds the lock
  def _push(self, episode):
    self.episodes.append(episode)
    self.total_transitions += len(episode)
    evicted = 0
    while self.total_transitions >= self.capacity:
      self.total_transitions -= len(self.episodes.popleft())
      evicted += 1
    return evicted

  def clear(self):
    with self._lock:
      self.episodes.clear()
      self.total_transitions = 0

  def episode_count(self):
    return len(self.episodes)

  def transition_count(self):
    return self.total_transitions

  def __len__(self):
    return len(self.episodes)

  def __getitem__(self, i):
    return self.episodes[i]

  # Uniform shuffle, truncated to batch_size when memory holds more episodes
  def sample(self, batch_size, rng):
    with self._lock:
      idxs = rng.permutation(len(self.episodes))[:batch_size]
      return [self.episodes[i] for i in idxs]

  # -------------------------------------------------------------------
  # Snapshots
  # -------------------------------------------------------------------

  def save(self, path, compress=True):
    """
    Write every episode to a .npz archive:
      episodes    [E]         (length, terminal)
      transitions [N]         (action, reward), episode-major order
      frames      [F, S, S]   uint8, one per transition plus the trailing
                              bootstrap frame of non-terminal episodes
    """
    with self._lock:
      episodes = list(self.episodes)
    if not episodes:
      raise ValueError("refusing to snapshot an empty replay memory")

    meta = np.array([(len(ep), ep.terminal) for ep in episodes], dtype=EPISODE_DTYPE)
    transitions = np.array(
      [(a, r) for ep in episodes for a, r in zip(ep.actions, ep.rewards)],
      dtype=TRANSITION_DTYPE)
    frames = np.stack([f for ep in episodes for f in ep.frames])

    writer = np.savez_compressed if compress else np.savez
    with open(path, "wb") as f:
      writer(f, episodes=meta, transitions=transitions, frames=frames)
    logger.info("Saved replay memory of %d transitions (%d episodes) to %s",
                self.total_transitions, len(episodes), path)

  def load(self, path):
    """Replace the contents of this memory with the snapshot at ``path``."""
    logger.info("Loading replay memory from %s", path)
    with np.load(path) as data:
      meta = data["episodes"]
      transitions = data["transitions"]
      frames = data["frames"]

    lengths = meta['length'].astype(np.int64)
    expected_frames = int(lengths.sum() + np.count_nonzero(~meta['terminal']))
    if int(lengths.sum()) != len(transitions) or expected_frames != len(frames):
      raise ValueError(f"snapshot {path} is inconsistent: {len(meta)} episodes describe "
                       f"{int(lengths.sum())} transitions and {expected_frames} frames, "
                       f"found {len(transitions)} and {len(frames)}")

    # Rebuild everything before touching the live contents
    loaded = []
    t_pos = 0
    f_pos = 0
    for length, terminal in zip(lengths, meta['terminal']):
      length = int(length)
      n_frames = length if terminal else length + 1
      ep_frames = tuple(freeze_frame(frames[f_pos + i]) for i in range(n_frames))
      ep_trans = transitions[t_pos:t_pos + length]
      loaded.append(Episode(
        frames=ep_frames,
        actions=tuple(int(a) for a in ep_trans['action']),
        rewards=tuple(float(r) for r in ep_trans['reward']),
      ))
      t_pos += length
      f_pos += n_frames

    with self._lock:
      self.episodes.clear()
      self.total_transitions = 0
      for episode in loaded:
        self._push(episode)
    logger.info("replay memory size = %d (%d episodes)", self.total_transitions, len(self.episodes))
    return self

  @staticmethod
  def from_snapshot(path, capacity):
    return ReplayMemory(capacity).load(path)
