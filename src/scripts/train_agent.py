"""
Train a DRQN offline from a replay memory snapshot with env-driven config.

Setup (from project root):
    pip install -e .

Run (uses .env or environment variables):
    MEMORY=results/drqn/replay.npz python -m src.scripts.train_agent

Warm-start:
    MODEL=results/drqn/checkpoint.pth MEMORY=... python -m src.scripts.train_agent

View training:
    tensorboard --logdir results/drqn/tb
"""
from __future__ import annotations

import os
from dataclasses import replace
from datetime import datetime
from typing import Optional

import numpy as np
import torch
from torch.utils.tensorboard import SummaryWriter
from tqdm import trange

from src.app.drqn import DRQNAgent, DRQNConfig


def log(s: str) -> None:
    print("[" + datetime.now().strftime("%Y-%m-%dT%H:%M:%S") + "] " + s)


def resolve_near_script(path: Optional[str]) -> Optional[str]:
    """Return absolute, existing path for path. Try absolute, CWD, then script-dir."""
    if not path:
        return None
    if os.path.isabs(path) and os.path.isfile(path):
        return path
    cwd_path = os.path.abspath(path)
    if os.path.isfile(cwd_path):
        return cwd_path
    script_dir = os.path.dirname(os.path.abspath(__file__))
    near_script = os.path.join(script_dir, path)
    if os.path.isfile(near_script):
        return near_script
    return None


def resolve_device(cfg: DRQNConfig) -> torch.device:
    if torch.cuda.is_available() and not cfg.disable_cuda:
        return torch.device("cuda")
    log("Using CPU")
    return torch.device("cpu")


def write_scalars(writer, agent: DRQNAgent, steps: int, T: int) -> None:
    iteration = agent.current_iteration()
    writer.add_scalar("train/loss", agent.last_loss, iteration)
    writer.add_scalar("train/steps_per_update", steps, T)
    writer.add_scalar("train/target_age", iteration - agent.target_sync.last_clone_step, iteration)
    writer.add_scalar("memory/transitions", agent.memory_size(), iteration)
    writer.add_scalar("memory/episodes", agent.memory_episodes(), iteration)


def main():
    cfg = DRQNConfig.from_env()

    np.random.seed(cfg.seed)
    torch.manual_seed(cfg.seed)
    device = resolve_device(cfg)

    memory_path = resolve_near_script(cfg.memory)
    if memory_path is None:
        raise FileNotFoundError(f"Replay memory snapshot not found: {cfg.memory!r} (set MEMORY)")

    model_path = cfg.model
    if model_path:
        resolved = resolve_near_script(model_path)
        if resolved is None:
            raise FileNotFoundError(f"Model checkpoint not found: {model_path}")
        model_path = resolved

    # ---- Results dir & TensorBoard ----
    results_dir = os.path.join("results", cfg.id)
    os.makedirs(results_dir, exist_ok=True)
    tb_dir = cfg.tb_dir or os.path.join(results_dir, "tb")
    os.makedirs(tb_dir, exist_ok=True)
    writer = SummaryWriter(log_dir=tb_dir)
    log(f"TensorBoard logging to: {tb_dir}")

    # DRQNAgent reads model from args; swap in the resolved path
    args = replace(cfg, model=model_path)
    agent = DRQNAgent(args, legal_actions=cfg.actions(), device=device)
    agent.load_memory(memory_path)
    log(f"Loaded replay memory from {memory_path}: "
        f"{agent.memory_episodes()} episodes, {agent.memory_size()} transitions")

    try:
        for T in trange(1, 1 + cfg.train_updates):
            steps = agent.update()
            write_scalars(writer, agent, steps, T)

            if cfg.checkpoint_interval and (T % cfg.checkpoint_interval == 0):
                agent.save(results_dir, "checkpoint.pth")
    finally:
        writer.close()
        agent.save(results_dir, "final.pth")
        log(f"Saved final model to {os.path.join(results_dir, 'final.pth')}")
        log(f"TensorBoard logs in {tb_dir}")


if __name__ == "__main__":
    main()
