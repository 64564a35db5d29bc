# Copyright 2024 inuex35
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""GNSS Constants and System Parameters"""

# Physical Constants
CLIGHT = 299792458.0  # speed of light (m/s)

# GPS frequencies
FREQ_L1 = 1.57542E9   # L1 frequency (Hz)
FREQ_L2 = 1.22760E9   # L2 frequency (Hz)
FREQ_L5 = 1.17645E9   # L5 frequency (Hz)

# GLONASS frequencies
FREQ_G1 = 1.60200E9   # GLONASS G1 base frequency (Hz)
FREQ_G2 = 1.24600E9   # GLONASS G2 base frequency (Hz)
FREQ_G3 = 1.202025E9  # GLONASS G3 CDMA frequency (Hz)
DFREQ_G1 = 0.56250E6  # GLONASS G1 channel spacing (Hz)
DFREQ_G2 = 0.43750E6  # GLONASS G2 channel spacing (Hz)

# Galileo frequencies
FREQ_E1 = 1.57542E9   # E1 frequency (Hz) - same as GPS L1
FREQ_E5a = 1.17645E9  # E5a frequency (Hz) - same as GPS L5
FREQ_E5b = 1.20714E9  # E5b frequency (Hz)
FREQ_E5 = 1.191795E9  # E5 (E5a+E5b) frequency (Hz)
FREQ_E6 = 1.27875E9   # E6 frequency (Hz)

# BeiDou frequencies
FREQ_B1I = 1.561098E9  # BeiDou B1I frequency (Hz)
FREQ_B1C = 1.57542E9   # BeiDou B1C frequency (Hz) - same as GPS L1
FREQ_B2a = 1.17645E9   # BeiDou B2a frequency (Hz) - same as GPS L5
FREQ_B2b = 1.20714E9   # BeiDou B2b frequency (Hz) - same as Galileo E5b
FREQ_B2 = 1.191795E9   # BeiDou B2 (B2a+B2b) frequency (Hz)
FREQ_B3 = 1.26852E9    # BeiDou B3 frequency (Hz)

# QZSS frequencies (same as GPS)
FREQ_J1 = FREQ_L1      # QZSS L1 frequency (Hz)
FREQ_J2 = FREQ_L2      # QZSS L2 frequency (Hz)
FREQ_J5 = FREQ_L5      # QZSS L5 frequency (Hz)
FREQ_J6 = 1.27875E9    # QZSS L6 frequency (Hz)

# RINEX band digit -> carrier frequency, per system character
# GLONASS FDMA bands are resolved with the frequency channel number
SYSTEM_FREQUENCIES = {
    'G': {1: FREQ_L1, 2: FREQ_L2, 5: FREQ_L5},
    'R': {1: FREQ_G1, 2: FREQ_G2, 3: FREQ_G3},
    'E': {1: FREQ_E1, 5: FREQ_E5a, 6: FREQ_E6, 7: FREQ_E5b, 8: FREQ_E5},
    'C': {1: FREQ_B1C, 2: FREQ_B1I, 5: FREQ_B2a, 6: FREQ_B3, 7: FREQ_B2b, 8: FREQ_B2},
    'J': {1: FREQ_J1, 2: FREQ_J2, 5: FREQ_J5, 6: FREQ_J6},
}

GLONASS_CHANNEL_SPACING = {1: DFREQ_G1, 2: DFREQ_G2}

SYSTEM_CHARS = ('G', 'R', 'E', 'C', 'J')

# Earth parameters
OMGE = 7.2921151467E-5         # earth angular velocity (rad/s)
RE_WGS84 = 6378137.0           # earth semimajor axis (WGS84) (m)
FE_WGS84 = 1.0 / 298.257223563  # earth flattening (WGS84)

# Preprocessing defaults
MAX_ITERATIONS = 10            # robust least squares iteration cap
WEIGHT_CONVERGENCE = 1e-3      # max weight change for IRLS convergence
JUMP_THRESHOLD = 0.5           # [cycles] step in denoised combination treated as slip
MIN_COMBINATION_SIGMA = 0.02   # [cycles] floor of the moving standard deviation
REPAIR_MIN_EPOCHS = 3          # epochs required on each side of a slip for repair
REPAIR_FIT_EPOCHS = 10         # epochs used on each side to extrapolate a combination
REPAIR_TOLERANCE = 0.25        # [cycles] accepted fraction after integer correction
