"""Tests for receiver-transmitter geometry helpers."""

import numpy as np

from pygnssprep.core.constants import CLIGHT, OMGE
from pygnssprep.gnss.geometry import (
    azel_local, finite_difference_velocities, geodist, sagnac_correction,
    tropmodel_simple, transmit_position
)


def test_geodist_returns_unit_vector():
    r, e = geodist(np.array([3.0, 4.0, 12.0]), np.zeros(3))
    assert r == 13.0
    np.testing.assert_allclose(e, [3 / 13, 4 / 13, 12 / 13])

    r, e = geodist(np.ones(3), np.ones(3))
    assert r == 0.0
    np.testing.assert_array_equal(e, np.zeros(3))


def test_sagnac_correction_sign():
    sat = np.array([2.0e7, 0.0, 1.0e7])
    rec = np.array([0.0, 6.4e6, 0.0])
    expected = OMGE / CLIGHT * 2.0e7 * 6.4e6
    assert np.isclose(sagnac_correction(sat, rec), expected)
    assert sagnac_correction(sat, sat) == 0.0


def test_azel_local():
    az, el = azel_local(np.array([0.0, 0.0, 1.0]))
    assert np.isclose(el, np.pi / 2)

    az, el = azel_local(np.array([-1.0, 0.0, 0.0]))
    assert np.isclose(az, 1.5 * np.pi)
    assert np.isclose(el, 0.0)


def test_transmit_position_moves_back_along_velocity():
    positions = np.array([[1.0e7, 0.0, 0.0], [1.0e7, 1.0e3, 0.0]])
    velocities = np.array([[0.0, 1.0e3, 0.0], [0.0, 1.0e3, 0.0]])
    np.testing.assert_allclose(transmit_position(positions, velocities, 1, 0.07),
                               [1.0e7, 1.0e3 - 70.0, 0.0])
    np.testing.assert_array_equal(transmit_position(positions, None, 1, 0.07), positions[1])


def test_tropmodel_decreases_with_elevation():
    llh = np.array([np.radians(49.0), np.radians(12.9), 600.0])
    zenith = tropmodel_simple(llh, np.pi / 2)
    low = tropmodel_simple(llh, np.radians(10.0))
    assert 2.0 < zenith < 2.6
    assert low > 5 * zenith
    assert tropmodel_simple(llh, np.radians(3.0)) == 0.0


def test_finite_difference_velocities():
    times = np.arange(5) * 30.0
    positions = np.outer(times, [1.0, -2.0, 3.0])
    np.testing.assert_allclose(finite_difference_velocities(times, positions),
                               np.tile([1.0, -2.0, 3.0], (5, 1)))
    single = finite_difference_velocities(times[:1], positions[:1])
    np.testing.assert_array_equal(single, np.zeros((1, 3)))
