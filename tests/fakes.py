"""Deterministic stand-ins shared by the training-control tests."""
import numpy as np

from src.app.drqn import DRQNConfig, Episode


class FakeEstimator:
    """q[i, a] = action_values[a] + pixel (0, 0) of the last frame of sample i."""

    def __init__(self, batch_capacity, frames_per_timestep, action_values, loss=0.0):
        self.batch_capacity = batch_capacity
        self.frames_per_timestep = frames_per_timestep
        self.action_values = np.asarray(action_values, dtype=np.float32)
        self.action_count = len(action_values)
        self.loss = loss
        self.step = 0
        self.version = 0
        self.predict_calls = []
        self.train_calls = []

    def predict(self, frames, cont):
        assert frames.shape[0] <= self.batch_capacity
        self.predict_calls.append({"frames": frames.copy(), "cont": cont, "version": self.version})
        last_pixel = frames[:, -1, 0, 0].astype(np.float32)
        return self.action_values[None, :] + last_pixel[:, None]

    def train_step(self, frames, cont, targets, mask):
        self.train_calls.append({
            "frames": frames.copy(),
            "cont": cont.copy(),
            "targets": targets.copy(),
            "mask": mask.copy(),
        })
        self.step += 1
        self.version += 1
        return self.loss

    def clone(self):
        twin = FakeEstimator(self.batch_capacity, self.frames_per_timestep, self.action_values, self.loss)
        twin.version = self.version
        twin.step = self.step
        return twin

    def copy_parameters_from(self, other):
        self.version = other.version


def make_config(**overrides):
    params = dict(
        frame_size=4,
        output_count=4,
        replay_memory_capacity=1000,
        gamma=0.5,
        clone_frequency=1000,
        unroll=1,
        minibatch_size=2,
        frames_per_timestep=1,
        seed=0,
    )
    params.update(overrides)
    return DRQNConfig(**params)


def make_episode(length, first_pixel=0, terminal=True, actions=None, rewards=None, frame_size=4):
    """Frames are filled with first_pixel + index so tests can tell them apart."""
    n_frames = length if terminal else length + 1
    frames = [np.full((frame_size, frame_size), first_pixel + i, dtype=np.uint8) for i in range(n_frames)]
    if actions is None:
        actions = [i % 4 for i in range(length)]
    if rewards is None:
        rewards = [0.0] * length
    return Episode.from_arrays(frames, actions, rewards)
