#!/usr/bin/env python3
"""Test suite for track segmentation"""

import unittest
import numpy as np
from pygnssprep.core.data_structures import Receiver
from pygnssprep.core.signal_types import GnssType
from pygnssprep.preprocessing.tracks import (
    create_tracks, find_track_runs, remove_untracked_observations, segment_tracks,
    select_track_types
)
from pygnssprep.simulation import (
    simulate_observations, simulate_transmitters, simulated_station_info
)

POSITION = np.array([3512889.1, 778959.2, 5248216.5])
TYPES = ['C1CG', 'C2WG', 'L1CG', 'L2WG', 'L1WG', 'C5QG']


class TestTrackSegmentation(unittest.TestCase):
    """Segmentation of simulated arcs with gaps"""

    def setUp(self):
        self.times = 1.0e9 + 30.0 * np.arange(40)
        self.transmitters = simulate_transmitters(self.times, POSITION, count=4, seed=7)
        self.receiver = Receiver('onsa', simulated_station_info('onsa', POSITION), self.times)
        simulate_observations(self.receiver, self.transmitters, TYPES)

    def test_select_track_types(self):
        types = select_track_types(self.receiver, 0)
        self.assertEqual([str(t) for t in types], ['L1CG', 'L2WG', 'C1CG', 'C2WG', 'L1WG'])

    def test_single_frequency_has_no_tracks(self):
        for epoch in self.receiver.observations:
            for obs in epoch.values():
                obs.remove_type(GnssType.parse('L2WG'))
        self.assertIsNone(select_track_types(self.receiver, 1))
        self.assertEqual(create_tracks(self.receiver, self.transmitters, 5), [])

    def test_gaps_split_runs(self):
        types = select_track_types(self.receiver, 2)
        self.receiver.disable(10)
        self.receiver.observations[20][2].remove_type(GnssType.parse('L2WG'))
        del self.receiver.observations[21][2]
        runs = find_track_runs(self.receiver, 2, types)
        self.assertEqual([(r[0], r[-1]) for r in runs], [(0, 9), (11, 19), (22, 39)])
        # every usable, type-complete epoch is covered exactly once
        covered = sorted(e for r in runs for e in r)
        self.assertEqual(len(covered), len(set(covered)))
        self.assertEqual(len(covered), 40 - 3)

    def test_minimum_length(self):
        types = select_track_types(self.receiver, 2)
        self.receiver.disable(10)
        tracks = segment_tracks(self.receiver, 2, types, min_obs_count=12, first_arc_id=5)
        self.assertEqual(len(tracks), 1)
        self.assertEqual(tracks[0].epochs, list(range(11, 40)))
        self.assertEqual(tracks[0].arc_id, 5)

    def test_unusable_transmitter_epochs(self):
        self.transmitters[3].use_epoch[15] = False
        tracks = create_tracks(self.receiver, self.transmitters, 5)
        runs = [(t.id_epoch_start, t.id_epoch_end) for t in tracks if t.id_trans == 3]
        self.assertEqual(runs, [(0, 14), (16, 39)])

        self.transmitters[1].disable()
        tracks = create_tracks(self.receiver, self.transmitters, 5)
        self.assertNotIn(1, [t.id_trans for t in tracks])
        self.assertEqual(len({t.arc_id for t in tracks}), len(tracks))

    def test_remove_untracked_observations(self):
        self.receiver.disable(10)
        create_tracks(self.receiver, self.transmitters, 12)
        # the short run 0..9 and the disabled epoch 10 of every transmitter
        removed = remove_untracked_observations(self.receiver)
        self.assertEqual(removed, 4 * 11)
        self.assertEqual(self.receiver.observations[5], {})
        obs = self.receiver.observations[20][0]
        self.assertNotIn(GnssType.parse('C5QG'), obs.types)
        self.assertEqual(len(obs.types), 5)


if __name__ == '__main__':
    unittest.main()
