"""
Benchmark DRQN update and action-selection speed.

Uses the replay memory snapshot in MEMORY when set, otherwise synthetic
episodes of random frames.

To run:
    BENCHMARK_ITERATIONS=200 python -m src.scripts.benchmark_agent
"""
from __future__ import annotations

from datetime import datetime

import numpy as np
import torch

from src.app.drqn import DRQNAgent, DRQNConfig, Episode


def log(s: str) -> None:
    print("[" + datetime.now().strftime("%Y-%m-%dT%H:%M:%S") + "] " + s)


def synthetic_episode(rng: np.random.Generator, cfg: DRQNConfig, length: int) -> Episode:
    frames = rng.integers(0, 256, size=(length, cfg.frame_size, cfg.frame_size), dtype=np.uint8)
    actions = rng.choice(cfg.actions(), size=length)
    rewards = rng.choice([-1.0, 0.0, 1.0], size=length)
    return Episode.from_arrays(list(frames), actions, rewards)


def main():
    cfg = DRQNConfig.from_env()
    torch.manual_seed(cfg.seed)
    device = torch.device("cuda" if torch.cuda.is_available() and not cfg.disable_cuda else "cpu")
    log(f"Benchmarking on {device}")

    agent = DRQNAgent(cfg, legal_actions=cfg.actions(), device=device)
    if cfg.memory:
        agent.load_memory(cfg.memory)
    else:
        rng = np.random.default_rng(cfg.seed)
        length = 2 * cfg.frames_per_forward
        for _ in range(cfg.minibatch_size):
            agent.remember_episode(synthetic_episode(rng, cfg, length))

    stats = agent.benchmark(cfg.benchmark_iterations)
    log("update {update_ms:.2f} ms | select {select_ms:.2f} ms | ~{hours_per_1m:.1f} h per 1M updates".format(**stats))


if __name__ == "__main__":
    main()
