import unittest
from collections import Counter

import numpy as np

from src.app.drqn import ActionSelector

from fakes import FakeEstimator


def window(*pixels):
    return [np.full((4, 4), p, dtype=np.uint8) for p in pixels]


class TestActionSelector(unittest.TestCase):
    def setUp(self):
        self.est = FakeEstimator(batch_capacity=4, frames_per_timestep=2, action_values=[0.1, 0.9, 0.9, 0.3])

    def test_greedy_argmax_first_on_ties(self):
        sel = ActionSelector([0, 1, 2, 3], 4, rng=np.random.default_rng(0))
        results = sel.select(self.est, [window(0, 5), window(0, 7)], epsilon=0.0, cont=False)
        self.assertEqual([r.action for r in results], [1, 1])
        self.assertAlmostEqual(results[0].value, 5.9, places=5)
        self.assertAlmostEqual(results[1].value, 7.9, places=5)
        self.assertEqual(len(self.est.predict_calls), 1)
        self.assertFalse(self.est.predict_calls[0]["cont"])

    def test_epsilon_zero_is_deterministic(self):
        sel = ActionSelector([0, 1, 2, 3], 4, rng=np.random.default_rng(1))
        actions = {sel.select(self.est, [window(1, 2)], 0.0, True)[0].action for _ in range(50)}
        self.assertEqual(actions, {1})

    def test_greedy_respects_legal_actions(self):
        sel = ActionSelector([0, 2, 3], 4)
        self.assertEqual(sel.select_greedily(self.est, [window(0, 0)], True)[0].action, 2)

    def test_epsilon_one_is_uniform_over_legal_actions(self):
        sel = ActionSelector([0, 2, 3], 4, rng=np.random.default_rng(2))
        counts = Counter()
        trials = 3000
        for _ in range(trials):
            r = sel.select(self.est, [window(0, 0)], 1.0, True)[0]
            self.assertIsNone(r.value)
            counts[r.action] += 1
        self.assertEqual(set(counts), {0, 2, 3})
        for a in (0, 2, 3):
            self.assertAlmostEqual(counts[a] / trials, 1 / 3, delta=0.05)
        self.assertEqual(self.est.predict_calls, [])

    def test_exploration_is_decided_per_sample(self):
        sel = ActionSelector([0, 1, 2, 3], 4, rng=np.random.default_rng(3))
        mixed = False
        for _ in range(50):
            results = sel.select(self.est, [window(0, i) for i in range(4)], 0.5, True)
            kinds = {r.value is None for r in results}
            mixed = mixed or kinds == {True, False}
        self.assertTrue(mixed)

    def test_preconditions(self):
        sel = ActionSelector([0, 1, 2, 3], 4)
        with self.assertRaises(ValueError):
            sel.select(self.est, [window(0, 0)], 1.5, True)
        with self.assertRaises(ValueError):
            sel.select(self.est, [window(0, 0)] * 5, 0.0, True)
        with self.assertRaises(ValueError):
            sel.select_greedily(self.est, [window(0, 0, 0)], True)
        with self.assertRaises(ValueError):
            ActionSelector([0, 4], 4)

    def test_non_finite_values_abort(self):
        est = FakeEstimator(2, 1, [0.0, float("nan")])
        sel = ActionSelector([0, 1], 2)
        with self.assertRaises(FloatingPointError):
            sel.select_greedily(est, [window(0)], False)

    def test_empty_batch(self):
        sel = ActionSelector([0, 1], 2)
        self.assertEqual(sel.select_greedily(self.est, [], True), [])
        self.assertEqual(self.est.predict_calls, [])


if __name__ == "__main__":
    unittest.main()
