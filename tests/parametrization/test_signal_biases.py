#!/usr/bin/env python3
"""Test suite for signal bias input/output of transmitters and receivers"""

import logging
import tempfile
import unittest
from pathlib import Path

import numpy as np
from pygnssprep.core.config import SignalBiasConfig
from pygnssprep.core.data_structures import Receiver, Transmitter
from pygnssprep.core.signal_bias import SignalBias
from pygnssprep.core.signal_types import GnssType
from pygnssprep.core.station_info import StationInfo
from pygnssprep.core.status import DisableReason
from pygnssprep.io.signal_bias import read_signal_bias, write_signal_bias
from pygnssprep.logger import PreprocessingReporter
from pygnssprep.network.parallel import SingleCommunicator
from pygnssprep.parametrization.signal_biases import SignalBiasParametrization

C1C = GnssType.parse('C1CG')
L1C = GnssType.parse('L1CG')


class SecondWorker(SingleCommunicator):
    rank = 1
    size = 2


def make_transmitters(names):
    return [Transmitter(name, np.zeros((3, 3)), np.zeros(3), id_trans=i) for i, name in enumerate(names)]


def make_receiver(name):
    receiver = Receiver(name, StationInfo(name), 30.0 * np.arange(3))
    receiver.is_my_rank = True
    return receiver


class TestSignalBiasInput(unittest.TestCase):

    def setUp(self):
        self._tmpdir = tempfile.TemporaryDirectory()
        self.tmpdir = Path(self._tmpdir.name)
        bias = SignalBias()
        bias.set(C1C, 0.75)
        write_signal_bias(self.tmpdir / 'trans' / 'G01.txt', bias)
        write_signal_bias(self.tmpdir / 'recv' / 'wtzr.txt', bias)

    def tearDown(self):
        self._tmpdir.cleanup()

    def test_read_and_disable(self):
        config = SignalBiasConfig(input_transmitter=str(self.tmpdir / 'trans' / '{prn}.txt'),
                                  input_receiver=str(self.tmpdir / 'recv' / '{station}.txt'))
        reporter = PreprocessingReporter()
        transmitters = make_transmitters(['G01', 'G02'])
        receivers = [make_receiver('wtzr'), make_receiver('onsa')]

        with self.assertLogs('pygnssprep', level='WARNING') as logs:
            SignalBiasParametrization(config, reporter=reporter).init(transmitters, receivers)

        self.assertEqual(transmitters[0].signal_bias.bias(C1C), 0.75)
        self.assertTrue(transmitters[0].usable())
        self.assertFalse(transmitters[1].usable())
        self.assertEqual(transmitters[1].disable_reason, DisableReason.SIGNAL_BIAS)
        self.assertEqual(receivers[0].signal_bias.bias(C1C), 0.75)
        self.assertFalse(receivers[1].usable())
        self.assertEqual(receivers[1].disable_reason, DisableReason.SIGNAL_BIAS)
        self.assertEqual(reporter.disabled_count('signal biases'), 2)
        self.assertEqual(len(logs.records), 2)

    def test_selection_and_unusable_skipped(self):
        config = SignalBiasConfig(select_transmitters=['G01'],
                                  input_transmitter=str(self.tmpdir / 'trans' / '{prn}.txt'))
        transmitters = make_transmitters(['G01', 'G02', 'G03'])
        transmitters[0].disable(DisableReason.PROCESSING_ERROR)
        SignalBiasParametrization(config).init(transmitters, [])
        # G01 is unusable, G02 and G03 are not selected
        self.assertEqual(len(transmitters[0].signal_bias), 0)
        self.assertTrue(transmitters[1].usable())
        self.assertTrue(transmitters[2].usable())

    def test_identical_templates_warned_once(self):
        template = str(self.tmpdir / 'same' / '{station}{prn}.txt')
        config = SignalBiasConfig(input_transmitter=template, input_receiver=template)
        reporter = PreprocessingReporter()
        parametrization = SignalBiasParametrization(config, reporter=reporter)
        with self.assertLogs('pygnssprep', level='WARNING') as logs:
            parametrization.init([], [])
            parametrization.init([], [])
        self.assertEqual(len(logs.records), 1)
        self.assertIn('identical', logs.output[0])


class TestSignalBiasOutput(unittest.TestCase):

    def setUp(self):
        self._tmpdir = tempfile.TemporaryDirectory()
        self.tmpdir = Path(self._tmpdir.name)
        self.config = SignalBiasConfig(output_transmitter=str(self.tmpdir / 'trans' / '{prn}.txt'),
                                       output_receiver=str(self.tmpdir / 'recv' / '{station}.txt'))
        self.transmitters = make_transmitters(['G01', 'G02'])
        self.transmitters[0].signal_bias.set(L1C, 1.3 * L1C.wavelength())
        self.transmitters[0].signal_bias.set(C1C, 2.5)
        self.receivers = [make_receiver('wtzr'), make_receiver('onsa')]
        self.receivers[1].is_my_rank = False

    def tearDown(self):
        self._tmpdir.cleanup()

    def test_write_wrapped(self):
        written = SignalBiasParametrization(self.config).write_results(
            self.transmitters, self.receivers, suffix='.iter1')
        self.assertEqual(sorted(p.name for p in written),
                         ['G01.iter1.txt', 'G02.iter1.txt', 'wtzr.iter1.txt'])
        bias = read_signal_bias(self.tmpdir / 'trans' / 'G01.iter1.txt')
        self.assertAlmostEqual(bias.bias(L1C), 0.3 * L1C.wavelength(), places=5)
        self.assertAlmostEqual(bias.bias(C1C), 2.5)

    def test_receiver_glonass_phase_kept(self):
        l1c_glonass = GnssType.parse('L1CR')
        l3q_glonass = GnssType.parse('L3QR')
        receiver = self.receivers[0]
        receiver.signal_bias.set(l1c_glonass, 0.41)
        receiver.signal_bias.set(l3q_glonass, 1.6 * l3q_glonass.wavelength())
        receiver.signal_bias.set(L1C, 1.3 * L1C.wavelength())
        SignalBiasParametrization(self.config).write_results(self.transmitters, self.receivers)
        bias = read_signal_bias(self.tmpdir / 'recv' / 'wtzr.txt')
        # channel dependent wavelength
        self.assertAlmostEqual(bias.bias(l1c_glonass), 0.41)
        self.assertAlmostEqual(bias.bias(l3q_glonass), -0.4 * l3q_glonass.wavelength(), places=5)
        self.assertAlmostEqual(bias.bias(L1C), 0.3 * L1C.wavelength(), places=5)

    def test_transmitter_glonass_phase_uses_channel(self):
        l1c_glonass = GnssType.parse('L1CR')
        transmitter = Transmitter('R01', np.zeros((3, 3)), np.zeros(3), id_trans=0,
                                  frequency_number=-4)
        wavelength = l1c_glonass.wavelength(-4)
        transmitter.signal_bias.set(l1c_glonass, 2.25 * wavelength)
        SignalBiasParametrization(self.config).write_results([transmitter], [])
        bias = read_signal_bias(self.tmpdir / 'trans' / 'R01.txt')
        self.assertAlmostEqual(bias.bias(l1c_glonass), 0.25 * wavelength, places=5)

    def test_unusable_not_written(self):
        self.transmitters[1].disable(DisableReason.PROCESSING_ERROR)
        self.receivers[0].disable(reason=DisableReason.PROCESSING_ERROR)
        written = SignalBiasParametrization(self.config).write_results(self.transmitters, self.receivers)
        self.assertEqual([p.name for p in written], ['G01.txt'])

    def test_transmitters_on_master_only(self):
        self.receivers[1].is_my_rank = True
        written = SignalBiasParametrization(self.config, comm=SecondWorker()).write_results(
            self.transmitters, self.receivers)
        self.assertEqual(sorted(p.name for p in written), ['onsa.txt', 'wtzr.txt'])
        self.assertFalse((self.tmpdir / 'trans').exists())


if __name__ == '__main__':
    logging.basicConfig(level=logging.WARNING)
    unittest.main()
