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

"""GNSS signal type identifiers.

A signal type follows the RINEX 3 observation code with the satellite system
appended, e.g. ``C1CG`` (GPS L1 C/A pseudorange) or ``L2WG`` (GPS L2 P(Y)
carrier phase). Patterns may use ``*`` and ``?`` wildcards; a three
character pattern matches every system.
"""

from dataclasses import dataclass
from fnmatch import fnmatchcase
from typing import Iterable, List, Optional

from .constants import CLIGHT, GLONASS_CHANNEL_SPACING, SYSTEM_FREQUENCIES

RANGE = 'C'
PHASE = 'L'


@dataclass(frozen=True, order=True)
class GnssType:
    """Observation type of a single GNSS signal.

    Attributes
    ----------
    obs : str
        Observable kind, ``'C'`` for code range or ``'L'`` for carrier phase
    band : int
        RINEX frequency band digit
    attribute : str
        Tracking mode / channel attribute (``'C'``, ``'W'``, ``'X'``, ...)
    system : str
        Satellite system character (``'G'``, ``'R'``, ``'E'``, ``'C'``, ``'J'``)
    """
    obs: str
    band: int
    attribute: str
    system: str

    @classmethod
    def parse(cls, text: str, system: Optional[str] = None) -> 'GnssType':
        """Parse ``C1CG`` or ``C1C`` (with ``system`` given separately)"""
        text = text.strip()
        if len(text) == 3 and system is not None:
            text = text + system
        if len(text) != 4 or not text[1].isdigit():
            raise ValueError(f"Invalid GNSS type: '{text}'")
        return cls(obs=text[0].upper(), band=int(text[1]),
                   attribute=text[2].upper(), system=text[3].upper())

    def __str__(self):
        return f"{self.obs}{self.band}{self.attribute}{self.system}"

    @property
    def is_phase(self) -> bool:
        return self.obs == PHASE

    @property
    def is_code(self) -> bool:
        return self.obs == RANGE

    def frequency(self, frequency_number: int = 0) -> float:
        """Carrier frequency in Hz (GLONASS FDMA needs the channel number)"""
        try:
            freq = SYSTEM_FREQUENCIES[self.system][self.band]
        except KeyError:
            raise ValueError(f"No frequency defined for {self}") from None
        if self.system == 'R' and self.band in GLONASS_CHANNEL_SPACING:
            freq += frequency_number * GLONASS_CHANNEL_SPACING[self.band]
        return freq

    def wavelength(self, frequency_number: int = 0) -> float:
        """Carrier wavelength in meters"""
        return CLIGHT / self.frequency(frequency_number)

    def same_frequency(self, other: 'GnssType') -> bool:
        return self.system == other.system and self.band == other.band

    def with_obs(self, obs: str) -> 'GnssType':
        """Same signal with a different observable kind (e.g. code of a phase)"""
        return GnssType(obs, self.band, self.attribute, self.system)

    def matches(self, pattern: str) -> bool:
        """Test against a wildcard pattern such as ``L1*G`` or ``C2W``"""
        pattern = pattern.strip().upper()
        if len(pattern) == 3:
            pattern += '*'
        return fnmatchcase(str(self), pattern)


def match_any(gnss_type: GnssType, patterns: Iterable[str]) -> bool:
    """True if the type matches at least one pattern"""
    return any(gnss_type.matches(p) for p in patterns)


def filter_types(types: Iterable[GnssType],
                 use_patterns: Optional[List[str]] = None,
                 ignore_patterns: Optional[List[str]] = None) -> List[GnssType]:
    """Apply ``useType`` / ``ignoreType`` selection

    An empty ``use_patterns`` list selects every type.
    """
    selected = []
    for gnss_type in types:
        if use_patterns and not match_any(gnss_type, use_patterns):
            continue
        if ignore_patterns and match_any(gnss_type, ignore_patterns):
            continue
        selected.append(gnss_type)
    return selected
