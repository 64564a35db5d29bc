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

"""Signal bias files: whitespace table ``type bias`` (meters)"""

from pathlib import Path

import pandas as pd

from ..core.signal_bias import SignalBias
from ..core.signal_types import GnssType


def read_signal_bias(path) -> SignalBias:
    """Read a bias file; OSError / ValueError on missing or corrupt files"""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Signal bias file not found: {path}")
    df = pd.read_csv(path, sep=r'\s+', comment='#', header=None, names=['type', 'bias'],
                     dtype={'type': str})
    if df['bias'].isna().any():
        raise ValueError(f"Missing bias values in {path}")
    bias = SignalBias()
    for gnss_type, value in zip(df['type'], df['bias'].astype(float)):
        bias.set(GnssType.parse(gnss_type), value)
    return bias


def write_signal_bias(path, bias: SignalBias):
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    df = pd.DataFrame({'type': [str(t) for t in bias.types], 'bias': bias.biases})
    df.to_csv(path, sep=' ', header=False, index=False, float_format='%.6f')
