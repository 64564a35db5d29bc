#!/usr/bin/env python3
"""Test suite for the linearized observation equations"""

import unittest
import numpy as np
from pygnssprep.coordinate.transforms import earth_rotation_matrix
from pygnssprep.core.data_structures import Receiver
from pygnssprep.core.signal_types import GnssType
from pygnssprep.core.station_info import AntennaDefinition, AntennaPattern, NoPatternFoundAction
from pygnssprep.core.status import NoAntennaPatternError
from pygnssprep.gnss.combinations import ionosphere_free
from pygnssprep.gnss.observation_equations import (
    RANGE, build_observation_equations
)
from pygnssprep.simulation import (
    SimulationSettings, simple_definition, simulate_observations,
    simulate_transmitters, simulated_station_info
)

WTZR = np.array([4075580.4, 931853.9, 4801568.2])
C1C = GnssType.parse('C1CG')
C2W = GnssType.parse('C2WG')
L1C = GnssType.parse('L1CG')
L2W = GnssType.parse('L2WG')


class TestObservationEquations(unittest.TestCase):
    """Noise free observations against their linearization"""

    def setUp(self):
        times = 1.0e9 + 30.0 * np.arange(20)
        self.transmitters = simulate_transmitters(times, WTZR, count=6, seed=11)
        info = simulated_station_info('wtzr', WTZR, code_sigma=0.0, phase_sigma=0.0)
        self.receiver = Receiver('wtzr', info, times)
        settings = SimulationSettings(clock_noise=0.0, seed=5)
        self.true_clock = simulate_observations(self.receiver, self.transmitters, settings=settings)
        self.receiver.clk = self.true_clock.copy()

    def test_equation_layout(self):
        eqns = build_observation_equations(self.receiver, self.transmitters)
        self.assertEqual(len(eqns), 20 * 6)
        self.assertIn((3, 2), eqns)
        self.assertEqual(eqns.epochs(), list(range(20)))
        eqn = eqns.get(3, 2)
        self.assertEqual(eqn.types, [C1C, C2W, L1C, L2W])
        self.assertEqual(eqn.A.shape, (4, 4))
        np.testing.assert_array_equal(eqn.A[:, 0], np.ones(4))
        np.testing.assert_allclose(eqn.A[0, 1:], -eqn.los)
        np.testing.assert_array_equal(eqn.rows('C'), [0, 1])
        np.testing.assert_array_equal(eqn.rows('L'), [2, 3])

        eqns.remove_epoch(3)
        self.assertNotIn((3, 2), eqns)
        self.assertEqual(eqns.epoch(3), [])

    def test_residuals_hold_only_ionosphere_and_ambiguities(self):
        eqns = build_observation_equations(self.receiver, self.transmitters)
        f1, f2 = C1C.frequency(), C2W.frequency()
        for eqn in eqns:
            l_c1, l_c2, l_l1, l_l2 = eqn.l
            self.assertAlmostEqual(ionosphere_free(l_c1, l_c2, f1, f2), 0.0, places=5)
            # code delay equals phase advance on the same frequency
            for code, phase, gnss_type in ((l_c1, l_l1, L1C), (l_c2, l_l2, L2W)):
                cycles = (phase + code) / gnss_type.wavelength()
                self.assertAlmostEqual(cycles, round(cycles), places=4)

    def test_clock_partial(self):
        eqns = build_observation_equations(self.receiver, self.transmitters, obs_mask=RANGE)
        self.receiver.clk = self.true_clock + 1e-6
        shifted = build_observation_equations(self.receiver, self.transmitters, obs_mask=RANGE)
        for eqn in eqns:
            self.assertEqual(eqn.types, [C1C, C2W])
            other = shifted.get(eqn.id_epoch, eqn.id_trans)
            # 1 microsecond of clock error is about 300 m, the geometry moves slightly
            np.testing.assert_allclose(eqn.l - other.l, 299.792458, atol=1e-3)

    def test_rotation_matches_sagnac_term(self):
        sagnac = build_observation_equations(self.receiver, self.transmitters)
        rotated = build_observation_equations(self.receiver, self.transmitters,
                                              rotation_crf2trf=earth_rotation_matrix)
        for eqn in sagnac:
            other = rotated.get(eqn.id_epoch, eqn.id_trans)
            self.assertAlmostEqual(eqn.range, other.range, delta=5e-3)
            self.assertAlmostEqual(eqn.elevation, other.elevation, delta=1e-4)

    def test_antenna_offset(self):
        before = build_observation_equations(self.receiver, self.transmitters)
        antenna = self.receiver.info.antennas[0]
        antenna.antenna_def = simple_definition(antenna.name, offset_up=0.1)
        after = build_observation_equations(self.receiver, self.transmitters)
        for eqn in before:
            other = after.get(eqn.id_epoch, eqn.id_trans)
            np.testing.assert_allclose(other.l - eqn.l, 0.1 * np.sin(eqn.elevation), atol=1e-9)

    def test_accuracy_pattern_sets_sigma(self):
        antenna = self.receiver.info.antennas[0]
        antenna.accuracy_def = simple_definition(antenna.name, 0.5, 0.003)
        for eqn in build_observation_equations(self.receiver, self.transmitters):
            np.testing.assert_allclose(eqn.sigma, [0.5, 0.5, 0.003, 0.003])

    def test_missing_antenna_pattern(self):
        antenna = self.receiver.info.antennas[0]
        antenna.antenna_def = AntennaDefinition(antenna.name, patterns=[
            AntennaPattern(GnssType('C', 1, '*', '*')),
            AntennaPattern(GnssType('L', 1, '*', '*')),
        ])
        eqns = build_observation_equations(self.receiver, self.transmitters)
        for eqn in eqns:
            self.assertEqual(eqn.types, [C1C, L1C])

        with self.assertRaises(NoAntennaPatternError):
            build_observation_equations(self.receiver, self.transmitters,
                                        action=NoPatternFoundAction.THROW_EXCEPTION)

    def test_unusable_epochs_are_skipped(self):
        self.receiver.disable(4)
        self.transmitters[1].use_epoch[5] = False
        eqns = build_observation_equations(self.receiver, self.transmitters)
        self.assertEqual(eqns.epoch(4), [])
        self.assertNotIn((5, 1), eqns)
        self.assertIn((5, 2), eqns)

        self.receiver.disable()
        self.assertEqual(len(build_observation_equations(self.receiver, self.transmitters)), 0)


if __name__ == '__main__':
    unittest.main()
