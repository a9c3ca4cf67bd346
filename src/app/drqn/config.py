from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional, Tuple

from dotenv import load_dotenv


UPDATE_MODES = ("sequential", "random")


def _parse_bool(val: Optional[str], default: bool = False) -> bool:
    if val is None:
        return default
    return str(val).strip().lower() in {"1", "true", "yes", "y", "on"}


def _parse_actions(val: Optional[str]) -> Optional[Tuple[int, ...]]:
    if val is None or not val.strip():
        return None
    return tuple(int(a) for a in val.split(",") if a.strip())


@dataclass(frozen=True)
class DRQNConfig:
    # ---- Experiment / device ----
    id: str = "drqn"
    seed: int = 0
    disable_cuda: bool = False

    # ---- Network / input geometry ----
    frame_size: int = 84
    output_count: int = 18
    lstm_size: int = 512
    use_lstm: bool = True
    legal_actions: Optional[Tuple[int, ...]] = None  # None -> range(output_count)

    # ---- Replay / training ----
    replay_memory_capacity: int = 400_000
    gamma: float = 0.99
    clone_frequency: int = 10_000
    unroll: int = 10
    minibatch_size: int = 32
    frames_per_timestep: int = 1
    update_mode: str = "random"
    learning_rate: float = 1e-4
    adam_eps: float = 1.5e-4
    norm_clip: float = 10.0

    # Model path to warm-start from
    model: Optional[str] = None

    # ---- Offline training / snapshots ----
    memory: Optional[str] = None
    compress_memory: bool = True
    train_updates: int = 100_000
    checkpoint_interval: int = 10_000
    benchmark_iterations: int = 1000

    # ---- TensorBoard ----
    tb_dir: Optional[str] = None  # default: results/<id>/tb

    @property
    def frames_per_forward(self) -> int:
        return self.unroll + self.frames_per_timestep - 1

    def actions(self) -> Tuple[int, ...]:
        if self.legal_actions is None:
            return tuple(range(self.output_count))
        return tuple(self.legal_actions)

    def validate(self) -> "DRQNConfig":
        for name in ("frame_size", "output_count", "lstm_size", "replay_memory_capacity",
                     "clone_frequency", "unroll", "minibatch_size", "frames_per_timestep"):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be >= 1, got {getattr(self, name)}")
        if not 0.0 < self.gamma <= 1.0:
            raise ValueError(f"gamma must be in (0, 1], got {self.gamma}")
        if self.update_mode not in UPDATE_MODES:
            raise ValueError(f"update_mode must be one of {UPDATE_MODES}, got {self.update_mode!r}")
        if not self.use_lstm and self.unroll > 1:
            raise ValueError("use_lstm=False is only supported with unroll=1")
        for a in self.actions():
            if not 0 <= a < self.output_count:
                raise ValueError(f"legal action {a} outside [0, {self.output_count})")
        return self

    @staticmethod
    def from_env() -> "DRQNConfig":
        """
        Load DRQNConfig from .env/environment variables.
        Unset variables keep the dataclass defaults.
        """
        load_dotenv()

        def _get(k: str, default: Optional[str] = None) -> Optional[str]:
            v = os.getenv(k)
            return v if v is not None else default

        return DRQNConfig(
            id=_get("DRQN_ID", "drqn"),
            seed=int(_get("SEED", "0")),
            disable_cuda=_parse_bool(_get("DISABLE_CUDA"), False),

            frame_size=int(_get("FRAME_SIZE", "84")),
            output_count=int(_get("OUTPUT_COUNT", "18")),
            lstm_size=int(_get("LSTM_SIZE", "512")),
            use_lstm=_parse_bool(_get("USE_LSTM"), True),
            legal_actions=_parse_actions(_get("LEGAL_ACTIONS")),

            replay_memory_capacity=int(_get("REPLAY_MEMORY_CAPACITY", "400000")),
            gamma=float(_get("GAMMA", "0.99")),
            clone_frequency=int(_get("CLONE_FREQUENCY", "10000")),
            unroll=int(_get("UNROLL", "10")),
            minibatch_size=int(_get("MINIBATCH_SIZE", "32")),
            frames_per_timestep=int(_get("FRAMES_PER_TIMESTEP", "1")),
            update_mode=_get("UPDATE_MODE", "random").strip().lower(),
            learning_rate=float(_get("LEARNING_RATE", "0.0001")),
            adam_eps=float(_get("ADAM_EPS", "0.00015")),
            norm_clip=float(_get("NORM_CLIP", "10")),

            model=_get("MODEL"),

            memory=_get("MEMORY"),
            compress_memory=_parse_bool(_get("COMPRESS_MEMORY"), True),
            train_updates=int(_get("TRAIN_UPDATES", "100000")),
            checkpoint_interval=int(_get("CHECKPOINT_INTERVAL", "10000")),
            benchmark_iterations=int(_get("BENCHMARK_ITERATIONS", "1000")),

            tb_dir=_get("TB_DIR"),
        ).validate()
