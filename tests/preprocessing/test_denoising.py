#!/usr/bin/env python3
"""Test suite for total variation denoising"""

import unittest
import numpy as np
from pygnssprep.preprocessing.denoising import _tv1d, jump_positions, total_variation_denoising


def projected_gradient_tv(y, lam, iterations=20000):
    """Dual projected gradient solution, slow but independent of the kernel"""
    z = np.zeros(len(y) - 1)
    for _ in range(iterations):
        x = y - (np.r_[0.0, z] - np.r_[z, 0.0])
        z = np.clip(z + 0.25 * np.diff(x), -lam, lam)
    return y - (np.r_[0.0, z] - np.r_[z, 0.0])


class TestTotalVariationDenoising(unittest.TestCase):

    def test_step_is_shrunk(self):
        y = np.r_[np.zeros(10), np.ones(10)]
        x = total_variation_denoising(y, 1.0)
        # each level moves by lam / segment length towards the other
        np.testing.assert_allclose(x[:10], 0.1)
        np.testing.assert_allclose(x[10:], 0.9)
        np.testing.assert_array_equal(jump_positions(x, 0.5), [10])

    def test_large_lambda_gives_mean(self):
        rng = np.random.default_rng(1)
        y = rng.normal(size=50)
        x = total_variation_denoising(y, 1e3)
        np.testing.assert_allclose(x, np.mean(y))

    def test_preserves_mean(self):
        rng = np.random.default_rng(2)
        y = np.r_[np.zeros(30), 3 * np.ones(30)] + rng.normal(0, 0.2, 60)
        x = total_variation_denoising(y, 2.0)
        self.assertAlmostEqual(np.mean(x), np.mean(y))
        np.testing.assert_array_equal(jump_positions(x, 0.5), [30])

    def test_noise_is_flattened(self):
        rng = np.random.default_rng(3)
        y = rng.normal(0, 0.25, 200)
        x = total_variation_denoising(y, 5.0)
        self.assertEqual(len(jump_positions(x, 0.5)), 0)
        self.assertLess(np.std(x), np.std(y))

    def test_two_samples(self):
        x = total_variation_denoising(np.array([-3.6, -2.0]), 1.0)
        np.testing.assert_allclose(x, [-2.8, -2.8])
        x = total_variation_denoising(np.array([-3.6, -2.0]), 0.5)
        np.testing.assert_allclose(x, [-3.1, -2.5])

    def test_matches_reference_solver(self):
        rng = np.random.default_rng(4)
        for n in (2, 3, 5, 50):
            for lam in (0.1, 0.7, 2.0):
                y = rng.normal(0, 1, n)
                y[n // 2:] += 3.0
                x = total_variation_denoising(y, lam)
                np.testing.assert_allclose(x, projected_gradient_tv(y, lam), atol=1e-6,
                                           err_msg=f"n={n} lam={lam}")
                interpreted = np.empty_like(y)
                _tv1d.py_func(y, lam, interpreted)
                np.testing.assert_allclose(x, interpreted, atol=1e-12)
            np.testing.assert_allclose(total_variation_denoising(y, 1e3), np.mean(y))

    def test_optimality_conditions(self):
        rng = np.random.default_rng(5)
        y = np.cumsum(rng.normal(0, 1, 500)) + rng.normal(0, 0.3, 500)
        lam = 1.5
        x = total_variation_denoising(y, lam)
        # running sum of the residuals is the dual variable
        u = np.cumsum(y - x)
        self.assertAlmostEqual(u[-1], 0.0, places=6)
        self.assertTrue(np.all(np.abs(u[:-1]) <= lam + 1e-8))
        steps = np.diff(x)
        moving = np.abs(steps) > 1e-9
        np.testing.assert_allclose(u[:-1][moving], -lam * np.sign(steps[moving]), atol=1e-8)

    def test_trivial_inputs(self):
        y = np.array([1.0, 5.0, 2.0])
        np.testing.assert_array_equal(total_variation_denoising(y, 0.0), y)
        np.testing.assert_array_equal(total_variation_denoising([4.0], 1.0), [4.0])
        self.assertEqual(len(jump_positions([1.0], 0.5)), 0)

    def test_invalid_inputs(self):
        with self.assertRaises(ValueError):
            total_variation_denoising(np.array([1.0, np.nan, 2.0]), 1.0)
        with self.assertRaises(ValueError):
            total_variation_denoising(np.ones((3, 3)), 1.0)


if __name__ == '__main__':
    unittest.main()
