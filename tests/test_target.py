import unittest

from src.app.drqn import DRQNAgent, TargetNetSync

from fakes import FakeEstimator, make_config, make_episode


class TestTargetNetSync(unittest.TestCase):
    def test_first_call_creates_target(self):
        live = FakeEstimator(2, 1, [0.0, 1.0])
        sync = TargetNetSync(clone_frequency=5)
        self.assertIsNone(sync.target)
        self.assertTrue(sync.maybe_clone(live))
        self.assertIsNotNone(sync.target)
        self.assertIsNot(sync.target, live)
        self.assertFalse(sync.maybe_clone(live))

    def test_clone_cadence_over_updates(self):
        cfg = make_config(clone_frequency=3, unroll=2, frames_per_timestep=1)
        live = FakeEstimator(2, 1, [0.0, 1.0, 2.0, 3.0])
        agent = DRQNAgent(cfg, estimator=live)
        agent.remember_episode(make_episode(6))

        versions = []
        for _ in range(10):
            agent.update_random()
            versions.append(agent.target_net.version)
        self.assertEqual(versions, [0, 0, 0, 3, 3, 3, 6, 6, 6, 9])
        self.assertEqual(agent.target_sync.last_clone_step, 9)

    def test_target_never_changes_inside_a_sweep(self):
        cfg = make_config(clone_frequency=1, unroll=1, frames_per_timestep=1)
        live = FakeEstimator(2, 1, [0.0, 1.0, 2.0, 3.0])
        agent = DRQNAgent(cfg, estimator=live)
        agent.remember_episode(make_episode(6))

        steps = agent.update_sequential()
        self.assertEqual(steps, 6)
        target = agent.target_net
        self.assertEqual({c["version"] for c in target.predict_calls}, {0})

        agent.update_sequential()
        self.assertIs(agent.target_net, target)
        self.assertEqual({c["version"] for c in target.predict_calls[5:]}, {6})

    def test_bootstrap_values_come_from_target_not_live(self):
        cfg = make_config(unroll=2)
        live = FakeEstimator(2, 1, [0.0, 1.0, 2.0, 3.0])
        agent = DRQNAgent(cfg, estimator=live)
        agent.remember_episode(make_episode(5))
        agent.update_sequential()
        self.assertEqual(live.predict_calls, [])
        self.assertGreater(len(agent.target_net.predict_calls), 0)


if __name__ == "__main__":
    unittest.main()
