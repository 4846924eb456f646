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
Tests for the logging configuration.
"""

import logging

from ket.config import LoggingConfig
from ket.logging_config import configure_logging, get_logging_config, log_format


def test_log_format_variants():
    assert log_format(LoggingConfig()) == "[ket] %(levelname)s: %(message)s"
    assert (
        log_format(LoggingConfig(prefix=False, timestamp=True))
        == "%(asctime)s %(levelname)s: %(message)s"
    )
    assert log_format(LoggingConfig(prefix=False)) == "%(levelname)s: %(message)s"


def test_debug_level():
    assert get_logging_config(debug=True)["loggers"]["ket"]["level"] == "DEBUG"
    assert get_logging_config()["loggers"]["ket"]["level"] == "INFO"


def test_config_is_accepted_by_dictconfig(mocker):
    dict_config = mocker.patch("logging.config.dictConfig")

    logger = configure_logging(LoggingConfig(timestamp=True), debug=True)

    dict_config.assert_called_once()
    assert logger is logging.getLogger("ket.launcher")
