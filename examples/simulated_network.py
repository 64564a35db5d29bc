#!/usr/bin/env python3
"""
Simulated Station Network Preprocessing Example using pygnssprep

This example demonstrates:
1. Writing station metadata, antenna and accuracy definitions and a station list
2. Simulating transmitter orbits and receiver observations
3. Selecting one receiver per station on a worker group
4. Running the preprocessing sequence (tracks, clock, cycle slips, quality gates)
"""

import argparse
import logging
import tempfile
from pathlib import Path

import numpy as np
from pygnssprep.coordinate.transforms import llh2ecef
from pygnssprep.core.config import PreprocessingSettings, StationNetworkConfig
from pygnssprep.core.station_info import DefinitionRegistry
from pygnssprep.io.station_info import write_definition_registry, write_station_info
from pygnssprep.io.station_list import write_station_list
from pygnssprep.logger import setup_logger_from_config
from pygnssprep.network import preprocess_network, run_parallel
from pygnssprep.simulation import simple_definition, simulate_transmitters, simulated_station_info


def write_network(directory, station_count):
    """Station files of a small network around Wettzell"""
    directory = Path(directory)
    write_definition_registry(directory / 'antennaDefinition.json',
                              DefinitionRegistry([simple_definition('SIMANT')]))
    write_definition_registry(directory / 'accuracyDefinition.json',
                              DefinitionRegistry([simple_definition('SIMANT', 0.3, 0.002)]))
    rng = np.random.default_rng(42)
    stations = []
    for i in range(station_count):
        name = f"sim{i + 1:02d}"
        lat = np.radians(49.14 + rng.uniform(-2.0, 2.0))
        lon = np.radians(12.88 + rng.uniform(-3.0, 3.0))
        position = llh2ecef(np.array([lat, lon, rng.uniform(100.0, 900.0)]))
        write_station_info(directory / 'stationInfo' / f'{name}.json',
                           simulated_station_info(name, position))
        stations.append([name])
    write_station_list(directory / 'stationList.txt', stations)
    return llh2ecef(np.array([np.radians(49.14), np.radians(12.88), 0.0]))


def main():
    parser = argparse.ArgumentParser(description='Preprocess a simulated GNSS station network')
    parser.add_argument('--stations', type=int, default=6, help='number of stations')
    parser.add_argument('--epochs', type=int, default=240, help='number of 30 s epochs')
    parser.add_argument('--workers', type=int, default=2, help='size of the worker group')
    parser.add_argument('--backend', choices=['thread', 'process'], default='thread')
    parser.add_argument('--tracks', help='directory for track dumps after preprocessing')
    parser.add_argument('--log-level', default='INFO')
    parser.add_argument('--debug-module', action='append', default=[],
                        help='module logged at DEBUG, e.g. pygnssprep.preprocessing.cycle_slip')
    args = parser.parse_args()

    setup_logger_from_config({
        'default_level': args.log_level,
        'module_levels': {module: 'DEBUG' for module in args.debug_module},
    })
    logger = logging.getLogger('pygnssprep.examples')

    with tempfile.TemporaryDirectory() as tmpdir:
        tmpdir = Path(tmpdir)
        center = write_network(tmpdir, args.stations)
        times = 1.0e9 + 30.0 * np.arange(args.epochs)
        transmitters = simulate_transmitters(times, center, count=10, seed=7)

        preprocessing = PreprocessingSettings()
        if args.tracks:
            preprocessing.output_track_after = str(Path(args.tracks) / '{station}' /
                                                   '{prn}_{timeStart}_{timeEnd}.csv')
        config = StationNetworkConfig(
            station_list=str(tmpdir / 'stationList.txt'),
            station_info=str(tmpdir / 'stationInfo' / '{station}.json'),
            antenna_definition=str(tmpdir / 'antennaDefinition.json'),
            accuracy_definition=str(tmpdir / 'accuracyDefinition.json'),
            preprocessing=preprocessing,
        )
        config.validate()

        summaries = run_parallel(preprocess_network, args.workers,
                                 args=(config, times, transmitters),
                                 kwargs={'simulate': True}, backend=args.backend)

    logger.info("stations used: %s", ', '.join(summaries[0].stations))
    for rank, summary in enumerate(summaries):
        for name, count in sorted(summary.tracks.items()):
            logger.info("worker %d: %s with %d tracks", rank, name, count)
        for name, reason in sorted(summary.disabled.items()):
            logger.warning("worker %d: %s disabled (%s)", rank, name, reason)
    logger.info("%d stations disabled during preprocessing", summaries[0].disabled_count)


if __name__ == '__main__':
    main()
