# Copyright 2025 The kubernetes-embedded-testing Authors
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#      http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Logging configuration for the ket command line.

Library code only ever calls logging.getLogger(__name__); handlers and levels
are installed here, once, by the entry point.
"""

import logging
import logging.config
from typing import Any, Dict, Optional

from .config import LoggingConfig

LOG_PREFIX = "[ket]"


def log_format(logging_config: LoggingConfig) -> str:
    parts = []
    if logging_config.timestamp:
        parts.append("%(asctime)s")
    if logging_config.prefix:
        parts.append(LOG_PREFIX)
    parts.append("%(levelname)s: %(message)s")
    return " ".join(parts)


def get_logging_config(
    logging_config: Optional[LoggingConfig] = None, debug: bool = False
) -> Dict[str, Any]:
    """Build the dictConfig for the "ket" logger hierarchy."""
    logging_config = logging_config or LoggingConfig()
    level = "DEBUG" if debug else "INFO"
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": log_format(logging_config),
                "datefmt": "%Y-%m-%dT%H:%M:%S",
            }
        },
        "handlers": {
            "default": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "stream": "ext://sys.stderr",
            }
        },
        "loggers": {
            "ket": {"handlers": ["default"], "level": level, "propagate": False},
            # Connection retries of the Kubernetes client are noise at INFO.
            "urllib3": {"level": "DEBUG" if debug else "WARNING"},
        },
    }


def configure_logging(
    logging_config: Optional[LoggingConfig] = None, debug: bool = False
) -> logging.Logger:
    """Install the ket logging configuration and return the launcher logger."""
    logging.config.dictConfig(get_logging_config(logging_config, debug))
    return logging.getLogger("ket.launcher")
