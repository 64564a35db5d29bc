#!/usr/bin/env python3
"""Test suite for signal types, signal biases and station metadata"""

import math
import unittest
import numpy as np
from pygnssprep.core.constants import CLIGHT, FREQ_G1, FREQ_L1, FREQ_L2
from pygnssprep.core.signal_bias import SignalBias, wrap_phase_bias
from pygnssprep.core.signal_types import GnssType, filter_types
from pygnssprep.core.station_info import (
    AntennaDefinition, AntennaInstallation, AntennaPattern, DefinitionRegistry,
    NoPatternFoundAction, StationInfo
)
from pygnssprep.core.status import NoAntennaPatternError


class TestGnssType(unittest.TestCase):
    """Test signal type parsing, frequencies and patterns"""

    def test_parse(self):
        t = GnssType.parse('l2wg')
        self.assertEqual((t.obs, t.band, t.attribute, t.system), ('L', 2, 'W', 'G'))
        self.assertTrue(t.is_phase)
        self.assertEqual(str(t), 'L2WG')
        self.assertEqual(GnssType.parse('C1C', system='E'), GnssType.parse('C1CE'))
        with self.assertRaises(ValueError):
            GnssType.parse('C1')

    def test_frequency(self):
        self.assertEqual(GnssType.parse('L1CG').frequency(), FREQ_L1)
        self.assertAlmostEqual(GnssType.parse('L2WG').wavelength(), CLIGHT / FREQ_L2)
        # GLONASS FDMA channel
        self.assertAlmostEqual(GnssType.parse('L1CR').frequency(-7), FREQ_G1 - 7 * 0.5625e6)
        with self.assertRaises(ValueError):
            GnssType.parse('L9XG').frequency()

    def test_patterns(self):
        t = GnssType.parse('C1CG')
        self.assertTrue(t.matches('C1C'))
        self.assertTrue(t.matches('C1*G'))
        self.assertTrue(t.matches('*1**'))
        self.assertFalse(t.matches('C1*E'))
        self.assertFalse(t.matches('L1C'))
        self.assertEqual(t.with_obs('L'), GnssType.parse('L1CG'))

    def test_filter_types(self):
        types = [GnssType.parse(s) for s in ('C1CG', 'C2WG', 'L1CG', 'L2WG', 'C1CE')]
        self.assertEqual(filter_types(types), types)
        self.assertEqual([str(t) for t in filter_types(types, ['*1*'])], ['C1CG', 'L1CG', 'C1CE'])
        self.assertEqual([str(t) for t in filter_types(types, ['C**'], ['***E'])], ['C1CG', 'C2WG'])


class TestSignalBias(unittest.TestCase):

    def test_lookup(self):
        bias = SignalBias()
        bias.set(GnssType.parse('C1*G'), 1.5)
        bias.set(GnssType.parse('L2WG'), 0.3)
        bias.set(GnssType.parse('L2WG'), 0.4)
        self.assertEqual(len(bias), 2)
        self.assertEqual(bias.bias(GnssType.parse('C1WG')), 1.5)
        self.assertEqual(bias.bias(GnssType.parse('C1CE')), 0.0)
        np.testing.assert_array_equal(
            bias.compute([GnssType.parse('C1CG'), GnssType.parse('L2WG')]), [1.5, 0.4])

    def test_wrap(self):
        wavelength = CLIGHT / FREQ_L1
        self.assertAlmostEqual(wrap_phase_bias(3.2 * wavelength, wavelength), 0.2 * wavelength)
        self.assertAlmostEqual(wrap_phase_bias(-2.7 * wavelength, wavelength), 0.3 * wavelength)

    def test_wrapped_is_idempotent(self):
        bias = SignalBias()
        bias.set(GnssType.parse('C1CG'), 12.345)
        bias.set(GnssType.parse('L1CG'), 7.89)
        bias.set(GnssType.parse('L2WG'), -3.21)
        once = bias.wrapped()
        twice = once.wrapped()
        # code biases are left unchanged
        self.assertEqual(once.biases[0], 12.345)
        for gnss_type, value in zip(once.types[1:], once.biases[1:]):
            self.assertLessEqual(abs(value), gnss_type.wavelength() / 2)
        np.testing.assert_allclose(twice.biases, once.biases, atol=1e-12)
        # wrapping changes a phase bias by whole wavelengths only
        cycles = (bias.biases[1] - once.biases[1]) / GnssType.parse('L1CG').wavelength()
        self.assertAlmostEqual(cycles, round(cycles))
        self.assertTrue(math.isclose(bias.biases[0], once.biases[0]))


class TestStationInfo(unittest.TestCase):
    """Test equipment history lookup and definition matching"""

    def setUp(self):
        self.info = StationInfo('wtzr', antennas=[
            AntennaInstallation('ANT2', time_start=100.0),
            AntennaInstallation('ANT1', time_start=0.0, time_end=50.0),
        ])

    def test_find_antenna(self):
        # antennas are sorted by start time
        self.assertEqual(self.info.antennas[0].name, 'ANT1')
        self.assertEqual(self.info.find_antenna(10.0), 0)
        self.assertIsNone(self.info.find_antenna(60.0))
        self.assertEqual(self.info.find_antenna(1e9), 1)
        self.assertIsNone(self.info.find_antenna(-1.0))
        self.assertIsNone(self.info.find_receiver(0.0))

    def test_definition_registry(self):
        generic = AntennaDefinition('*')
        named = AntennaDefinition('ANT1')
        serial = AntennaDefinition('ANT1', serial='42')
        registry = DefinitionRegistry([generic, named, serial])
        self.assertIs(registry.find('ANT1', '42'), serial)
        self.assertIs(registry.find('ANT1', '7'), named)
        self.assertIs(registry.find('OTHER'), generic)
        self.assertIsNone(DefinitionRegistry([named]).find('ANT2'))

        self.info.fill_antenna_pattern(registry)
        self.assertIs(self.info.antennas[0].antenna_def, named)
        self.assertIs(self.info.antennas[1].antenna_def, generic)

    def test_find_pattern(self):
        definition = AntennaDefinition('ANT', patterns=[
            AntennaPattern(GnssType.parse('L1*G'), values=np.array([0.0, 0.01])),
            AntennaPattern(GnssType.parse('L2*G')),
        ])
        l1 = GnssType.parse('L1CG')
        l5 = GnssType.parse('L5QG')
        self.assertIs(definition.find_pattern(l1), definition.patterns[0])
        self.assertIsNone(definition.find_pattern(l5))
        # L2 is closer to L5 than L1
        nearest = definition.find_pattern(l5, NoPatternFoundAction.USE_NEAREST_FREQUENCY)
        self.assertIs(nearest, definition.patterns[1])
        with self.assertRaises(NoAntennaPatternError):
            definition.find_pattern(l5, NoPatternFoundAction.THROW_EXCEPTION)
        with self.assertRaises(NoAntennaPatternError):
            definition.find_pattern(GnssType.parse('L1CE'), NoPatternFoundAction.USE_NEAREST_FREQUENCY)

        # zenith interpolation: 45 degree elevation
        self.assertAlmostEqual(definition.patterns[0].value(np.pi / 4), 0.005)


if __name__ == '__main__':
    unittest.main()
