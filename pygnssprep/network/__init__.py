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

"""Station network selection and parallel execution"""

from .parallel import Communicator, GroupCommunicator, SingleCommunicator, run_parallel
from .selection import TransceiverSelector, select_alternatives
from .station_network import NetworkSummary, StationNetwork, preprocess_network

__all__ = [
    'Communicator', 'GroupCommunicator', 'SingleCommunicator', 'run_parallel',
    'TransceiverSelector', 'select_alternatives',
    'NetworkSummary', 'StationNetwork', 'preprocess_network',
]
