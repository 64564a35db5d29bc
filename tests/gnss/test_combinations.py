#!/usr/bin/env python3
"""Test suite for dual-frequency combinations"""

import unittest
import numpy as np
from pygnssprep.core.data_structures import Observation, Receiver, Track
from pygnssprep.core.signal_types import GnssType
from pygnssprep.core.station_info import StationInfo
from pygnssprep.gnss.combinations import (
    GF, MW, SAME_FREQUENCY, TEC, combination_sigmas, compute_track_combinations,
    ionosphere_free, slip_combination_effect, track_signals
)

C1C = GnssType.parse('C1CG')
C2W = GnssType.parse('C2WG')
L1C = GnssType.parse('L1CG')
L1W = GnssType.parse('L1WG')
L2W = GnssType.parse('L2WG')


class TestTrackSignals(unittest.TestCase):

    def test_layout(self):
        signals = track_signals([C2W, L2W, C1C, L1C, L1W])
        self.assertEqual(signals.phase1, L1C)
        self.assertEqual(signals.phase2, L2W)
        self.assertEqual(signals.code1, C1C)
        self.assertEqual(signals.code2, C2W)
        self.assertEqual(signals.extra_phases, {L1W: L1C})
        self.assertGreater(signals.f1, signals.f2)
        self.assertAlmostEqual(signals.lam_wl, 0.8619, places=4)

    def test_incomplete(self):
        self.assertIsNone(track_signals([C1C, L1C, L1W]))
        self.assertIsNone(track_signals([C1C, L1C, L2W]))


class TestCombinations(unittest.TestCase):
    """Synthetic dual-frequency arc with ionosphere and ambiguities"""

    def setUp(self):
        n = 12
        self.receiver = Receiver('test', StationInfo('test'), 30.0 * np.arange(n))
        self.types = [C1C, C2W, L1C, L2W, L1W]
        self.signals = track_signals(self.types)
        f1, f2 = self.signals.f1, self.signals.f2
        lam1, lam2 = self.signals.lam1, self.signals.lam2
        gamma = (f1 / f2) ** 2
        self.n1, self.n2, self.n1w = 1234, -567, 1240
        self.rho = 2.2e7 + 150.0 * np.arange(n)
        self.iono = 1.0 + 0.02 * np.arange(n)
        for k in range(n):
            rho, iono = self.rho[k], self.iono[k]
            values = [rho + iono, rho + gamma * iono,
                      rho - iono + self.n1 * lam1,
                      rho - gamma * iono + self.n2 * lam2,
                      rho - iono + self.n1w * lam1]
            self.receiver.add_observation(k, 0, Observation(list(self.types), values,
                                                            [0.3, 0.3, 0.002, 0.002, 0.002]))
        self.track = Track(0, list(range(n)), list(self.types))

    def test_melbourne_wuebbena_is_wide_lane_ambiguity(self):
        comb = compute_track_combinations(self.receiver, self.track, self.signals)
        np.testing.assert_allclose(comb[MW], self.n1 - self.n2, atol=1e-4)
        self.assertIs(self.track.combinations, comb)

    def test_same_frequency_difference(self):
        comb = compute_track_combinations(self.receiver, self.track, self.signals)
        np.testing.assert_allclose(comb[SAME_FREQUENCY + 'L1WG'], self.n1w - self.n1, atol=1e-6)

    def test_geometry_free_follows_ionosphere(self):
        comb = compute_track_combinations(self.receiver, self.track, self.signals)
        gamma = (self.signals.f1 / self.signals.f2) ** 2
        diff = np.diff(comb[GF])
        np.testing.assert_allclose(diff, (gamma - 1) * np.diff(self.iono), atol=1e-6)
        np.testing.assert_allclose(comb[TEC], comb[GF] / (self.signals.lam1 - self.signals.lam2))

    def test_slip_effect(self):
        before = compute_track_combinations(self.receiver, self.track, self.signals)
        before = {k: v.copy() for k, v in before.items()}
        for k in range(6, 12):
            obs = self.receiver.observations[k][0]
            obs.values[2] += 3 * self.signals.lam1
            obs.values[3] += 1 * self.signals.lam2
        after = compute_track_combinations(self.receiver, self.track, self.signals)
        tec, mw = slip_combination_effect(self.signals, 3, 1)
        np.testing.assert_allclose(after[TEC][6:] - before[TEC][6:], tec, atol=1e-6)
        np.testing.assert_allclose(after[MW][6:] - before[MW][6:], mw, atol=1e-6)
        np.testing.assert_allclose(after[MW][:6], before[MW][:6])
        self.assertEqual(mw, 2.0)
        self.assertAlmostEqual(slip_combination_effect(self.signals, 1, 1)[0], 1.0)

    def test_ionosphere_free_code(self):
        c1 = np.array([o[0].values[0] for o in self.receiver.observations])
        c2 = np.array([o[0].values[1] for o in self.receiver.observations])
        np.testing.assert_allclose(ionosphere_free(c1, c2, self.signals.f1, self.signals.f2),
                                   self.rho, atol=1e-6)

    def test_missing_values_are_nan(self):
        self.receiver.observations[4][0].remove_type(L1W)
        del self.receiver.observations[5][0]
        comb = compute_track_combinations(self.receiver, self.track, self.signals)
        # the extra phase is incomplete, so it is not combined
        self.assertNotIn(SAME_FREQUENCY + 'L1WG', comb)
        self.assertTrue(np.isnan(comb[MW][5]))

    def test_sigmas(self):
        sigmas = combination_sigmas(self.receiver, self.track, self.signals)
        self.assertEqual(sigmas[TEC].shape, (12,))
        self.assertTrue(np.all(sigmas[TEC] > 0))
        # MW is dominated by the code noise
        self.assertGreater(sigmas[MW][0], 0.1)


if __name__ == '__main__':
    unittest.main()
