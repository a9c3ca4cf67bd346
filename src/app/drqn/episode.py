"""Episode storage: frames live once per episode, transitions refer to them by index.

A transition at index ``i`` owns ``frames[i]``; its next frame is ``frames[i + 1]``
when that exists, otherwise the transition is terminal.  Terminal episodes hold
exactly one frame per transition; an episode cut short (e.g. by a step limit)
keeps one extra frame that the last transition bootstraps from.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, List, NamedTuple, Optional, Sequence, Tuple

import numpy as np


Frame = np.ndarray  # [S, S] uint8, read-only


class Transition(NamedTuple):
    frame: Frame
    action: int
    reward: float
    next_frame: Optional[Frame]  # None -> terminal

    @property
    def terminal(self) -> bool:
        return self.next_frame is None


def freeze_frame(frame: np.ndarray) -> Frame:
    """Return a read-only uint8 view of ``frame``.

    No copy is made: the view shares memory with the caller's array, so a
    buffer that is later written in place changes the stored frame too.
    """
    arr = np.asarray(frame)
    if arr.dtype != np.uint8:
        raise ValueError(f"frames must be uint8, got {arr.dtype}")
    if arr.ndim != 2 or arr.shape[0] != arr.shape[1]:
        raise ValueError(f"frames must be square [S, S], got shape {arr.shape}")
    view = arr.view()
    view.flags.writeable = False
    return view


@dataclass(frozen=True, eq=False)
class Episode:
    frames: Tuple[Frame, ...]
    actions: Tuple[int, ...]
    rewards: Tuple[float, ...]

    def __post_init__(self):
        n = len(self.actions)
        if n < 1:
            raise ValueError("an episode needs at least one transition")
        if len(self.rewards) != n:
            raise ValueError(f"{len(self.rewards)} rewards for {n} actions")
        if len(self.frames) not in (n, n + 1):
            raise ValueError(f"{len(self.frames)} frames for {n} transitions")

    def __len__(self) -> int:
        return len(self.actions)

    def __getitem__(self, i: int) -> Transition:
        if i < 0:
            i += len(self)
        if not 0 <= i < len(self):
            raise IndexError(i)
        return Transition(self.frames[i], self.actions[i], self.rewards[i], self.next_frame(i))

    def __iter__(self) -> Iterator[Transition]:
        for i in range(len(self)):
            yield self[i]

    @property
    def terminal(self) -> bool:
        """True when the last transition ends the episode."""
        return len(self.frames) == len(self.actions)

    def next_frame(self, i: int) -> Optional[Frame]:
        return self.frames[i + 1] if i + 1 < len(self.frames) else None

    def is_terminal(self, i: int) -> bool:
        return i + 1 >= len(self.frames)

    def window(self, start: int, length: int) -> Tuple[Frame, ...]:
        """Frames ``start .. start+length-1`` (a history window)."""
        if start < 0 or start + length > len(self.frames):
            raise IndexError(f"window [{start}, {start + length}) outside {len(self.frames)} frames")
        return self.frames[start:start + length]

    @staticmethod
    def from_arrays(frames: Sequence[np.ndarray], actions: Sequence[int],
                    rewards: Sequence[float]) -> "Episode":
        return Episode(
            frames=tuple(freeze_frame(f) for f in frames),
            actions=tuple(int(a) for a in actions),
            rewards=tuple(float(r) for r in rewards),
        )


class EpisodeRecorder:
    """Accumulates transitions while an episode is being played.

    add(frame, action, reward) for every step, then finish() to obtain the
    immutable Episode.  Pass ``final_frame`` to finish() when the episode was
    cut off rather than ended by the game.
    """

    def __init__(self):
        self._frames: List[Frame] = []
        self._actions: List[int] = []
        self._rewards: List[float] = []

    def __len__(self) -> int:
        return len(self._actions)

    def add(self, frame: np.ndarray, action: int, reward: float) -> Frame:
        """Record one step. ``frame`` is stored without copying; pass a fresh
        array per step rather than a reused capture buffer."""
        f = freeze_frame(frame)
        self._frames.append(f)
        self._actions.append(int(action))
        self._rewards.append(float(reward))
        return f

    def recent_frames(self, count: int) -> Tuple[Frame, ...]:
        return tuple(self._frames[-count:])

    def finish(self, final_frame: Optional[np.ndarray] = None) -> Episode:
        frames = list(self._frames)
        if final_frame is not None:
            frames.append(freeze_frame(final_frame))
        episode = Episode(tuple(frames), tuple(self._actions), tuple(self._rewards))
        self._frames, self._actions, self._rewards = [], [], []
        return episode
