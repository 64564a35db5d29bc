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

"""
pygnssprep - GNSS Station Network Preprocessing

Turns raw code and phase observations of a ground receiver network into
track-segmented, outlier-free observation sets: track segmentation, robust
code-only clock estimation, cycle slip detection by total variation
denoising, slip repair and quality gates, run in parallel over the network.
"""

__version__ = "0.1.0"
__author__ = "PyINS Development Team"
__title__ = "pygnssprep"
__description__ = "GNSS station network preprocessing"

from .core import *
from .coordinate import *
from .network import *
from .parametrization import *
from .preprocessing import *
