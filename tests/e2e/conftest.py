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
Fixtures for end-to-end tests against a real cluster.

The tests run against the cluster of the current kubeconfig (or KUBECONFIG)
and are skipped when no cluster is reachable. The workspace mounted into the
test pod is taken from KET_E2E_WORKSPACE and defaults to /tmp, which exists on
every node.
"""

import os

import pytest
import urllib3
from kubernetes import client

from ket.common.kubernetes_cluster.auth import load_api_client
from ket.errors import KetError


@pytest.fixture(scope="session")
def api_client():
    """ApiClient for the current cluster, skipping the session without one."""
    try:
        api_client = load_api_client()
        client.VersionApi(api_client).get_code(_request_timeout=5)
    except (KetError, client.ApiException, urllib3.exceptions.HTTPError) as e:
        pytest.skip(f"no reachable Kubernetes cluster: {e}")
    return api_client


@pytest.fixture(scope="session")
def core_api(api_client):
    return client.CoreV1Api(api_client)


@pytest.fixture(scope="session")
def rbac_api(api_client):
    return client.RbacAuthorizationV1Api(api_client)


@pytest.fixture(scope="session")
def batch_api(api_client):
    return client.BatchV1Api(api_client)


@pytest.fixture(scope="session")
def workspace_path():
    return os.environ.get("KET_E2E_WORKSPACE", "/tmp")
