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
Shared fixtures for ket tests.

Every test runs without KET_* variables from the developer's shell and
without reading a real kubeconfig.
"""

import pytest

from ket.config import ENV_VARS


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def no_cluster_config(mocker):
    mocker.patch("kubernetes.config.load_kube_config")
    mocker.patch("kubernetes.config.load_incluster_config")
