"""
Deep Recurrent Q-Network training components:
- DRQNAgent: replay-driven training (sequential sweep / random window) and acting
- ReplayMemory: bounded FIFO of whole episodes
- Episode / EpisodeRecorder / Transition: episode storage with shared frames
- Estimator / DRQN: torch adapter and network
- ActionSelector: epsilon-greedy over legal actions
- TargetNetSync: periodic target-network cloning
- DRQNConfig: load .env config
"""

from .agent import DRQNAgent
from .config import DRQNConfig
from .episode import Episode, EpisodeRecorder, Transition
from .estimator import Estimator
from .memory import ReplayMemory
from .model import DRQN
from .selector import ActionSelector, ActionValue
from .target import TargetNetSync

__all__ = [
    "DRQNAgent",
    "DRQNConfig",
    "Episode",
    "EpisodeRecorder",
    "Transition",
    "Estimator",
    "ReplayMemory",
    "DRQN",
    "ActionSelector",
    "ActionValue",
    "TargetNetSync",
]
