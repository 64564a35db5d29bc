#!/usr/bin/env python3
"""Test suite for cycle slip detection and repair"""

import unittest
import numpy as np
from pygnssprep.core.data_structures import Receiver, Track
from pygnssprep.core.signal_types import GnssType
from pygnssprep.gnss.combinations import MW, TEC
from pygnssprep.preprocessing.cycle_slip import (
    cycle_slip_detection, detect_candidates, detrend, moving_std, piecewise_mean, split_track
)
from pygnssprep.preprocessing.repair import cycle_slip_repair
from pygnssprep.preprocessing.tracks import create_tracks
from pygnssprep.simulation import (
    SimulationSettings, inject_cycle_slip, simulate_observations, simulate_transmitters,
    simulated_station_info
)

POSITION = np.array([4075580.4, 931853.9, 4801568.2])
TYPES = ['C1CG', 'C2WG', 'L1CG', 'L2WG', 'L1WG']
L1C = GnssType.parse('L1CG')
L1W = GnssType.parse('L1WG')
L2W = GnssType.parse('L2WG')


class TestSlipHelpers(unittest.TestCase):

    def test_detrend_keeps_steps(self):
        times = 30.0 * np.arange(60)
        trend = 5.0 + 1e-3 * times + 2e-7 * times**2
        step = np.where(np.arange(60) >= 25, 4.0, 0.0)
        residual = detrend(times, trend + step, steps=[25])
        np.testing.assert_allclose(residual, step, atol=1e-8)
        # without the step the quadratic bends towards it
        self.assertGreater(np.max(np.abs(detrend(times, trend + step) - step)), 0.1)

    def test_detrend_short_series(self):
        np.testing.assert_allclose(detrend(np.array([0.0, 30.0]), np.array([1.0, 3.0])), 0.0,
                                   atol=1e-12)
        np.testing.assert_allclose(detrend(np.array([5.0]), np.array([2.0])), 0.0)

    def test_piecewise_mean(self):
        values = np.array([1.0, 3.0, 10.0, 12.0, 14.0])
        np.testing.assert_allclose(piecewise_mean(values, [2]), [2, 2, 12, 12, 12])
        np.testing.assert_allclose(piecewise_mean(values, [0, 9]), np.full(5, 8.0))

    def test_moving_std(self):
        rng = np.random.default_rng(8)
        residuals = rng.normal(0, 0.1, 100)
        std = moving_std(residuals, 15)
        self.assertEqual(std.shape, (100,))
        self.assertTrue(np.all(std >= 0.02))
        self.assertTrue(np.all(std < 0.2))
        np.testing.assert_array_equal(moving_std(np.zeros(30), 15), np.full(30, 0.02))
        # too few neighbours on either side
        self.assertTrue(np.isinf(moving_std(np.zeros(10), 15)[5]))

    def test_split_track(self):
        track = Track(1, list(range(100, 120)), [L1C, L2W], arc_id=3)
        pieces = split_track(track, [5, 12])
        self.assertEqual([(p.id_epoch_start, p.id_epoch_end) for p in pieces],
                         [(100, 104), (105, 111), (112, 119)])
        self.assertEqual({p.arc_id for p in pieces}, {3})
        self.assertEqual([p.slip_at_start for p in pieces], [False, True, True])

    def test_detect_candidates(self):
        rng = np.random.default_rng(9)
        times = 30.0 * np.arange(80)
        mw = 7.0 + rng.normal(0, 0.2, 80)
        mw[40:] += 2.0
        tec = -3.0 + 1e-3 * times + rng.normal(0, 0.03, 80)
        tec[40:] += 2.0
        candidates = detect_candidates(times, {MW: mw, TEC: tec}, 5.0, 15, 3.5)
        self.assertIn(40, candidates)
        self.assertNotIn(0, candidates)

    def test_detect_candidates_short_tracks(self):
        times = np.array([0.0, 30.0, 60.0])
        clean = {MW: np.array([7.0, 7.1, 6.95]), TEC: np.array([1.0, 1.01, 1.03])}
        self.assertEqual(detect_candidates(times, clean, 5.0, 15, 3.5), set())
        jump = {MW: np.array([7.0, 12.0]), TEC: np.array([1.0, 1.02])}
        self.assertEqual(detect_candidates(times[:2], jump, 0.1, 15, 3.5), {1})
        self.assertEqual(detect_candidates(times[:1], {MW: np.array([7.0])}, 5.0, 15, 3.5), set())

    def test_smoothness_finds_small_tec_jump(self):
        rng = np.random.default_rng(10)
        times = 30.0 * np.arange(80)
        tec = 1e-3 * times + rng.normal(0, 0.01, 80)
        # a single-epoch excursion too short for the denoised series
        tec[33] += 0.3
        candidates = detect_candidates(times, {TEC: tec}, 5.0, 15, 3.5)
        self.assertIn(33, candidates)


class TestSlipDetectionAndRepair(unittest.TestCase):
    """Slips injected into simulated dual-frequency arcs"""

    def setUp(self):
        times = 1.0e9 + 30.0 * np.arange(100)
        self.transmitters = simulate_transmitters(times, POSITION, count=8, seed=3)
        self.receiver = Receiver('wtzr', simulated_station_info('wtzr', POSITION), times)
        simulate_observations(self.receiver, self.transmitters, TYPES,
                              settings=SimulationSettings(seed=12))

    def values(self, id_trans, gnss_type):
        return np.array([epoch[id_trans].value(gnss_type) for epoch in self.receiver.observations])

    def test_three_cycle_slip_on_l1(self):
        original = self.values(2, L1C)
        self.assertEqual(inject_cycle_slip(self.receiver, 2, 'L1CG', 50, 3), 50)
        create_tracks(self.receiver, self.transmitters, 10)
        self.assertEqual(len(self.receiver.tracks), 8)

        result = cycle_slip_detection(self.receiver, self.transmitters)
        self.assertIn(50, result.candidates(2))
        self.assertGreaterEqual(len([t for t in self.receiver.tracks if t.id_trans == 2]), 2)

        repair = cycle_slip_repair(self.receiver, self.transmitters, min_obs_count=10)
        self.assertGreaterEqual(repair.repaired, 1)
        tracks = [t for t in self.receiver.tracks if t.id_trans == 2]
        self.assertEqual(len(tracks), 1)
        self.assertEqual(tracks[0].epochs, list(range(100)))
        np.testing.assert_allclose(self.values(2, L1C), original, atol=1e-6)

    def test_slip_on_extra_phase(self):
        original = self.values(5, L1W)
        inject_cycle_slip(self.receiver, 5, L1W, 40, 2)
        create_tracks(self.receiver, self.transmitters, 10)
        result = cycle_slip_detection(self.receiver, self.transmitters)
        self.assertIn(40, result.candidates(5))

        cycle_slip_repair(self.receiver, self.transmitters, min_obs_count=10)
        tracks = [t for t in self.receiver.tracks if t.id_trans == 5]
        self.assertEqual([t.count for t in tracks], [100])
        np.testing.assert_allclose(self.values(5, L1W), original, atol=1e-6)

    def test_clean_arcs_stay_whole(self):
        create_tracks(self.receiver, self.transmitters, 10)
        cycle_slip_detection(self.receiver, self.transmitters)
        cycle_slip_repair(self.receiver, self.transmitters, min_obs_count=10)
        self.assertEqual(sorted({t.id_trans for t in self.receiver.tracks}), list(range(8)))
        for id_trans in range(8):
            count = sum(t.count for t in self.receiver.tracks if t.id_trans == id_trans)
            self.assertGreaterEqual(count, 95)

    def test_unresolvable_slip_keeps_boundary(self):
        create_tracks(self.receiver, self.transmitters, 10)
        track = next(t for t in self.receiver.tracks if t.id_trans == 1)
        # split without a reason and make the far side too short for repair
        self.receiver.tracks.append(track.split(98))
        repair = cycle_slip_repair(self.receiver, self.transmitters, min_obs_count=10)
        self.assertEqual(repair.unresolved, 1)
        self.assertEqual(repair.dropped, 1)
        tracks = [t for t in self.receiver.tracks if t.id_trans == 1]
        self.assertEqual([t.count for t in tracks], [98])


if __name__ == '__main__':
    unittest.main()
