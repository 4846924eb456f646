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
End-to-end runs of launch() on a live cluster: the tests must pass or fail
as the test command does, and no run may leave a resource behind.
"""

import pytest
from kubernetes import client

from ket.common.utils.constants import TEST_RUNNER_NAME
from ket.config import RunConfig
from ket.errors import TestExecutionError
from ket.launcher.launch import TestLauncher, launch

pytestmark = pytest.mark.e2e


def assert_gone(read, *args):
    with pytest.raises(client.ApiException) as exc_info:
        read(*args)
    assert exc_info.value.status == 404


def assert_nothing_left(launcher, core_api, rbac_api, batch_api):
    namespace = launcher.namespace
    binding = f"{TEST_RUNNER_NAME}-{namespace}"
    assert_gone(batch_api.read_namespaced_job, launcher.job_name, namespace)
    assert_gone(rbac_api.read_cluster_role_binding, binding)
    assert_gone(rbac_api.read_cluster_role, TEST_RUNNER_NAME)
    # Namespace deletion is asynchronous, a terminating namespace is gone enough.
    try:
        ns = core_api.read_namespace(namespace)
    except client.ApiException as e:
        assert e.status == 404
    else:
        assert ns.status.phase == "Terminating"


def make_config(workspace_path, test_command):
    return RunConfig(
        project_root=".",
        image="alpine:3.19",
        test_command=test_command,
        workspace_path=workspace_path,
        active_deadline_seconds=300,
    )


def test_passing_run_leaves_nothing_behind(
    api_client, core_api, rbac_api, batch_api, workspace_path
):
    lines = []
    launcher = TestLauncher(
        make_config(workspace_path, "true"), api_client, output=lines.append
    )

    result = launcher.run()

    assert result.success is True
    assert result.exit_code == 0
    assert_nothing_left(launcher, core_api, rbac_api, batch_api)


def test_failing_run_reports_exit_code_and_leaves_nothing_behind(
    api_client, core_api, rbac_api, batch_api, workspace_path
):
    lines = []
    launcher = TestLauncher(
        make_config(workspace_path, "echo failing; exit 3"),
        api_client,
        output=lines.append,
    )

    result = launcher.run()

    assert result.success is False
    assert result.exit_code == 3
    assert "failing" in lines
    assert_nothing_left(launcher, core_api, rbac_api, batch_api)


def test_launch_raises_for_failing_tests(api_client, workspace_path):
    with pytest.raises(TestExecutionError) as exc_info:
        launch(make_config(workspace_path, "exit 2"), api_client, output=print)

    assert exc_info.value.exit_code == 2


def test_launch_from_workspace_root(api_client, workspace_path):
    result = launch(make_config(workspace_path, "true"), api_client, output=print)

    assert result.success is True
    assert result.exit_code == 0
