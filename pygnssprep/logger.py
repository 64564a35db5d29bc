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

"""Logging configuration for GNSS network preprocessing"""

import logging
import sys
import time
from collections import Counter
from enum import Enum
from typing import Optional

ROOT_LOGGER = "pygnssprep"


class LogLevel(Enum):
    """Log levels for the system"""
    TRACE = 5
    DEBUG = logging.DEBUG
    INFO = logging.INFO
    WARNING = logging.WARNING
    ERROR = logging.ERROR
    CRITICAL = logging.CRITICAL


logging.addLevelName(LogLevel.TRACE.value, "TRACE")


def trace(self, message, *args, **kwargs):
    """Add trace method to logger"""
    if self.isEnabledFor(LogLevel.TRACE.value):
        self._log(LogLevel.TRACE.value, message, args, **kwargs)


logging.Logger.trace = trace


class ColoredFormatter(logging.Formatter):
    """Colored log formatter"""

    COLORS = {
        'TRACE': '\033[36m',     # Cyan
        'DEBUG': '\033[34m',     # Blue
        'INFO': '\033[32m',      # Green
        'WARNING': '\033[33m',   # Yellow
        'ERROR': '\033[31m',     # Red
        'CRITICAL': '\033[35m',  # Magenta
    }
    RESET = '\033[0m'

    def format(self, record):
        log_color = self.COLORS.get(record.levelname, self.RESET)
        record = logging.makeLogRecord(record.__dict__)
        record.levelname = f"{log_color}{record.levelname}{self.RESET}"
        return super().format(record)


def setup_logger(name: str = ROOT_LOGGER,
                 level: str = "INFO",
                 log_file: Optional[str] = None,
                 console: bool = True) -> logging.Logger:
    """
    Setup logger with specified configuration

    Parameters:
    -----------
    name : str
        Logger name
    level : str
        Log level (TRACE, DEBUG, INFO, WARNING, ERROR, CRITICAL)
    log_file : Optional[str]
        Log file path (if None, no file logging)
    console : bool
        Enable console output

    Returns:
    --------
    logging.Logger
        Configured logger
    """
    log_level = getattr(LogLevel, level.upper()).value
    logger = logging.getLogger(name)
    logger.setLevel(log_level)
    logger.handlers = []

    if console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(log_level)
        console_handler.setFormatter(ColoredFormatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%H:%M:%S'
        ))
        logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(log_level)
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))
        logger.addHandler(file_handler)

    return logger


class LogContext:
    """Context manager for temporary log level change"""

    def __init__(self, logger: logging.Logger, level: str):
        self.logger = logger
        self.new_level = getattr(LogLevel, level.upper()).value
        self.old_level = None

    def __enter__(self):
        self.old_level = self.logger.level
        self.logger.setLevel(self.new_level)
        return self.logger

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.logger.setLevel(self.old_level)


class LoggerConfig:
    """Logger configuration manager for module-specific log levels"""

    def __init__(self):
        self.module_levels = {}
        self.default_level = "INFO"
        self.log_file = None
        self.console = True

    def set_module_level(self, module_name: str, level: str):
        """Set log level for specific module"""
        self.module_levels[module_name] = level
        logging.getLogger(module_name).setLevel(getattr(LogLevel, level.upper()).value)

    def configure_from_dict(self, config: dict):
        """Configure from dictionary

        Example config:
        {
            'default_level': 'INFO',
            'log_file': 'preprocessing.log',
            'console': True,
            'module_levels': {
                'pygnssprep.preprocessing.cycle_slip': 'DEBUG',
                'pygnssprep.network.selection': 'WARNING'
            }
        }
        """
        self.default_level = config.get('default_level', self.default_level)
        self.log_file = config.get('log_file', self.log_file)
        self.console = config.get('console', self.console)
        for module, level in config.get('module_levels', {}).items():
            self.module_levels[module] = level

    def setup_all_loggers(self):
        """Setup all configured loggers"""
        root = setup_logger(ROOT_LOGGER, self.default_level, self.log_file, self.console)
        # module loggers propagate to the root handlers, which pass the lowest level
        levels = [getattr(LogLevel, level.upper()).value for level in self.module_levels.values()]
        for handler in root.handlers:
            handler.setLevel(min([root.level] + levels))
        for module, level in self.module_levels.items():
            logging.getLogger(module).setLevel(getattr(LogLevel, level.upper()).value)
        return root


logger_config = LoggerConfig()


def setup_logger_from_config(config: dict) -> logging.Logger:
    """Setup loggers from configuration dictionary"""
    logger_config.configure_from_dict(config)
    return logger_config.setup_all_loggers()


class PreprocessingReporter:
    """Observer for one preprocessing run

    Collects status lines, warnings that should appear once per key, counts
    of disabled entities per stage, and reports loop progress. Only the
    master worker prints status and progress; warnings and disabled counts
    are recorded on every worker.

    Usage::

        with PreprocessingReporter(is_master=comm.is_master) as reporter:
            reporter.status('init station network')
            for i in reporter.loop(len(stations)):
                ...
    """

    def __init__(self, logger: Optional[logging.Logger] = None, is_master: bool = True,
                 progress_every: float = 10.0):
        self.logger = logger or logging.getLogger(ROOT_LOGGER)
        self.is_master = is_master
        self.progress_every = progress_every
        self.warned = set()
        self.disabled = Counter()
        self.messages = []
        self._start = None

    def __enter__(self):
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.is_master and self._start is not None:
            self.logger.debug("preprocessing run finished after %.1f s",
                              time.perf_counter() - self._start)
        return False

    def status(self, message: str):
        self.messages.append(message)
        if self.is_master:
            self.logger.info(message)

    def info(self, message: str, *args):
        if self.is_master:
            self.logger.info(message, *args)

    def warning(self, message: str, *args):
        self.logger.warning(message, *args)

    def warning_once(self, key, message: str, *args) -> bool:
        """Log a warning only the first time ``key`` is seen"""
        if key in self.warned:
            return False
        self.warned.add(key)
        self.logger.warning(message, *args)
        return True

    def entity_disabled(self, stage: str, name: str, reason=None):
        self.disabled[stage] += 1
        self.logger.debug("%s: %s disabled (%s)", stage, name,
                          getattr(reason, 'value', reason))

    def disabled_count(self, stage: Optional[str] = None) -> int:
        if stage is None:
            return sum(self.disabled.values())
        return self.disabled[stage]

    def loop(self, count: int):
        """Iterate ``range(count)`` while logging timed progress"""
        start = last = time.perf_counter()
        for i in range(count):
            yield i
            now = time.perf_counter()
            if self.is_master and now - last >= self.progress_every:
                last = now
                remaining = (now - start) / (i + 1) * (count - i - 1)
                self.logger.info("%d of %d done, about %.0f s remaining", i + 1, count, remaining)
