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

"""Signal bias input and output for transmitters and receivers"""

import logging
from pathlib import Path
from typing import List, Optional, Sequence

from ..core.config import SignalBiasConfig
from ..core.data_structures import Receiver, Transmitter
from ..core.status import DisableReason
from ..io.signal_bias import read_signal_bias, write_signal_bias
from ..io.templates import FileTemplate
from ..logger import PreprocessingReporter
from ..network.parallel import Communicator, SingleCommunicator
from ..network.selection import TransceiverSelector

logger = logging.getLogger(__name__)


class SignalBiasParametrization:
    """Reads a priori signal biases and writes the current ones

    Transmitter files use the variable ``{prn}``, receiver files
    ``{station}``. An entity whose bias file cannot be read is disabled.
    Written phase biases are wrapped into half a wavelength, except the
    GLONASS FDMA phase biases of receivers, which serve several channels.
    """

    def __init__(self, config: SignalBiasConfig, comm: Optional[Communicator] = None,
                 reporter: Optional[PreprocessingReporter] = None):
        self.config = config
        self.comm = comm or SingleCommunicator()
        self.reporter = reporter or PreprocessingReporter(is_master=self.comm.is_master)
        self.select_transmitters = TransceiverSelector(config.select_transmitters)
        self.select_receivers = TransceiverSelector(config.select_receivers)

    def init(self, transmitters: Sequence[Transmitter], receivers: Sequence[Receiver]):
        """Read the input bias files of the selected, usable entities"""
        input_transmitter = FileTemplate(self.config.input_transmitter)
        input_receiver = FileTemplate(self.config.input_receiver)
        if input_receiver and input_receiver == input_transmitter:
            self.reporter.warning_once(
                'signal bias templates',
                "%s: receiver and transmitter signal bias input templates are identical (%s)",
                self.config.name, input_receiver.template)

        if input_transmitter:
            selected = self.select_transmitters.select([t.name for t in transmitters])
            for transmitter, use in zip(transmitters, selected):
                if not use or not transmitter.usable():
                    continue
                path = input_transmitter.resolve(prn=transmitter.name)
                try:
                    transmitter.signal_bias = read_signal_bias(path)
                except (OSError, ValueError):
                    self.reporter.warning_once(
                        path, "Unable to read signal bias file <%s>, disabling transmitter.", path)
                    transmitter.disable(DisableReason.SIGNAL_BIAS)
                    self.reporter.entity_disabled('signal biases', transmitter.name,
                                                  DisableReason.SIGNAL_BIAS)

        if input_receiver:
            selected = self.select_receivers.select([r.name for r in receivers])
            for receiver, use in zip(receivers, selected):
                if not use or not receiver.usable():
                    continue
                path = input_receiver.resolve(station=receiver.name)
                try:
                    receiver.signal_bias = read_signal_bias(path)
                except (OSError, ValueError):
                    self.reporter.warning_once(
                        path, "Unable to read signal bias file <%s>, disabling receiver.", path)
                    receiver.disable(reason=DisableReason.SIGNAL_BIAS)
                    self.reporter.entity_disabled('signal biases', receiver.name,
                                                  DisableReason.SIGNAL_BIAS)

    def write_results(self, transmitters: Sequence[Transmitter], receivers: Sequence[Receiver],
                      suffix: str = '') -> List[Path]:
        """Write wrapped biases; transmitters on the master, receivers by their owner"""
        written = []
        output_transmitter = FileTemplate(self.config.output_transmitter).with_suffix(suffix) \
            if self.config.output_transmitter else FileTemplate()
        output_receiver = FileTemplate(self.config.output_receiver).with_suffix(suffix) \
            if self.config.output_receiver else FileTemplate()

        if output_transmitter and self.comm.is_master:
            self.reporter.status(f"write transmitter signal biases to files "
                                 f"<{output_transmitter.resolve(prn='***')}>")
            selected = self.select_transmitters.select([t.name for t in transmitters])
            for transmitter, use in zip(transmitters, selected):
                if use and transmitter.usable():
                    path = output_transmitter.resolve(prn=transmitter.name)
                    write_signal_bias(path, transmitter.signal_bias.wrapped(transmitter.frequency_number))
                    written.append(path)

        if output_receiver:
            self.reporter.status(f"write receiver signal biases to files "
                                 f"<{output_receiver.resolve(station='****')}>")
            selected = self.select_receivers.select([r.name for r in receivers])
            for receiver, use in zip(receivers, selected):
                if use and receiver.is_my_rank and receiver.usable():
                    path = output_receiver.resolve(station=receiver.name)
                    write_signal_bias(path, receiver.signal_bias.wrapped(frequency_number=None))
                    written.append(path)
        logger.debug("%d signal bias files written", len(written))
        return written
