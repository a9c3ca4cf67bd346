import unittest

from src.app.drqn import DRQNAgent
from src.scripts.train_agent import write_scalars

from fakes import FakeEstimator, make_config, make_episode


class RecordingWriter:
    def __init__(self):
        self.scalars = {}

    def add_scalar(self, tag, value, step):
        self.scalars[tag] = (value, step)


class TestWriteScalars(unittest.TestCase):
    def test_logs_loss_and_memory_size(self):
        agent = DRQNAgent(make_config(), estimator=FakeEstimator(2, 1, [0.0] * 4, loss=0.5))
        agent.remember_episode(make_episode(3))
        agent.remember_episode(make_episode(4))
        steps = agent.update_random()

        writer = RecordingWriter()
        write_scalars(writer, agent, steps, 1)

        self.assertEqual(writer.scalars["train/loss"], (0.5, 1))
        self.assertEqual(writer.scalars["train/steps_per_update"], (1, 1))
        self.assertEqual(writer.scalars["memory/transitions"], (7, 1))
        self.assertEqual(writer.scalars["memory/episodes"], (2, 1))


if __name__ == "__main__":
    unittest.main()
