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
Tests for the manifest builders.
"""

import pytest
import yaml
from kubernetes.client import V1PolicyRule

from ket.config import AccessScope, RunConfig
from ket.errors import ConfigError, IdentityError
from ket.kube.manifests import (
    Manifest,
    ManifestKind,
    access_manifests,
    build_all,
    job_manifest,
    namespace_manifest,
    project_identifier,
    resolve_paths,
    to_yaml,
)
from ket.kube.rbac import default_rules


@pytest.fixture(autouse=True)
def fixed_user(mocker):
    mocker.patch(
        "ket.kube.manifests.current_user_ids", return_value=(1000, 1000)
    )


@pytest.fixture()
def run_config():
    return RunConfig(
        project_root="test-project",
        image="test-image:latest",
        test_command="npm test",
        backoff_limit=2,
        active_deadline_seconds=1800,
        workspace_path="/workspace",
    )


def test_namespace_manifest():
    manifest = namespace_manifest("test-namespace")

    assert manifest.kind is ManifestKind.NAMESPACE
    assert manifest.body.api_version == "v1"
    assert manifest.body.kind == "Namespace"
    assert manifest.name == "test-namespace"
    assert manifest.namespace is None


def test_cluster_scoped_access_manifests():
    service_account, role, binding = access_manifests(
        "test-namespace", default_rules(), AccessScope.CLUSTER
    )

    assert service_account.kind is ManifestKind.SERVICE_ACCOUNT
    assert service_account.name == "ket-test-runner"
    assert service_account.namespace == "test-namespace"

    assert role.kind is ManifestKind.CLUSTER_ROLE
    assert role.body.api_version == "rbac.authorization.k8s.io/v1"
    assert role.body.kind == "ClusterRole"
    assert role.name == "ket-test-runner"
    assert role.body.rules

    assert binding.kind is ManifestKind.CLUSTER_ROLE_BINDING
    assert binding.name == "ket-test-runner-test-namespace"
    subject = binding.body.subjects[0]
    assert subject.kind == "ServiceAccount"
    assert subject.name == "ket-test-runner"
    assert subject.namespace == "test-namespace"
    assert binding.body.role_ref.kind == "ClusterRole"
    assert binding.body.role_ref.name == "ket-test-runner"


def test_namespace_scoped_access_manifests():
    _, role, binding = access_manifests(
        "test-namespace", default_rules(), AccessScope.NAMESPACE
    )

    assert role.kind is ManifestKind.ROLE
    assert role.namespace == "test-namespace"
    assert binding.kind is ManifestKind.ROLE_BINDING
    assert binding.namespace == "test-namespace"
    assert binding.body.role_ref.kind == "Role"


def test_role_with_additional_rules():
    custom = V1PolicyRule(
        api_groups=["custom.io"], resources=["customresources"], verbs=["get"]
    )
    rules = default_rules() + [custom]

    _, role, _ = access_manifests("ns", rules)

    assert len(role.body.rules) == len(default_rules()) + 1
    assert role.body.rules[-1].api_groups == ["custom.io"]


def test_job_manifest(run_config):
    manifest = job_manifest(run_config, "test-namespace")
    job = manifest.body

    assert manifest.kind is ManifestKind.JOB
    assert job.api_version == "batch/v1"
    assert job.kind == "Job"
    assert job.metadata.name == "ket-test-project"
    assert job.metadata.namespace == "test-namespace"
    assert job.spec.backoff_limit == 2
    assert job.spec.active_deadline_seconds == 1800

    pod_spec = job.spec.template.spec
    assert pod_spec.restart_policy == "Never"
    assert pod_spec.service_account_name == "ket-test-runner"

    container = pod_spec.containers[0]
    assert container.name == "test-runner"
    assert container.image == "test-image:latest"
    assert container.command == ["/bin/sh", "-c", "npm test"]
    assert container.working_dir == "/workspace/test-project"

    env = {e.name: e.value for e in container.env}
    assert env == {
        "KET_TEST_NAMESPACE": "test-namespace",
        "KET_PROJECT_ROOT": "test-project",
        "KET_WORKSPACE_PATH": "/workspace",
    }

    mounts = {m.name: m.mount_path for m in container.volume_mounts}
    assert mounts == {"source-code": "/workspace", "reports": "/reports"}

    volumes = {v.name: v for v in pod_spec.volumes}
    assert volumes["source-code"].host_path.path == "/workspace/test-project"
    assert volumes["source-code"].host_path.type == "Directory"
    assert volumes["reports"].empty_dir is not None

    security = pod_spec.security_context
    assert security.run_as_user == 1000
    assert security.run_as_group == 1000
    assert security.fs_group == 1000


@pytest.mark.parametrize(
    "project_root,workspace_path,expected",
    [
        (".", "/workspace", "/workspace"),
        ("src", "/workspace", "/workspace/src"),
        ("backend/api", "/workspace", "/workspace/backend/api"),
        ("app", "/app", "/app/app"),
        ("src/", "/workspace/", "/workspace/src"),
        ("/abs/dir", "/workspace", "/workspace/abs/dir"),
    ],
)
def test_working_directory_resolution(project_root, workspace_path, expected):
    working_dir, host_path = resolve_paths(project_root, workspace_path)
    assert working_dir == expected
    assert host_path == expected
    assert "//" not in working_dir


@pytest.mark.parametrize(
    "project_root,expected_job",
    [
        ("my-app", "ket-my-app"),
        ("backend/api", "ket-api"),
        ("Backend/My_Service", "ket-my-service"),
    ],
)
def test_job_name_generation(project_root, expected_job):
    cfg = RunConfig(project_root=project_root, test_command="true")
    assert job_manifest(cfg, "ns").name == expected_job


def test_job_name_from_current_directory(mocker):
    mocker.patch("os.getcwd", return_value="/home/dev/checkout")
    cfg = RunConfig(project_root=".", test_command="true")

    manifest = job_manifest(cfg, "ns")

    assert manifest.name == "ket-checkout"
    env = {e.name: e.value for e in manifest.body.spec.template.spec.containers[0].env}
    assert env["KET_PROJECT_ROOT"] == "."
    assert manifest.body.spec.template.spec.containers[0].working_dir == "/workspace"


@pytest.mark.parametrize("project_root", ["..", "!!!", "a/.."])
def test_project_identifier_not_derivable(project_root, mocker):
    mocker.patch("os.getcwd", return_value="/")
    with pytest.raises(ConfigError, match="cannot derive a project name"):
        project_identifier(project_root)


def test_job_manifest_identity_failure(run_config, mocker):
    mocker.patch(
        "ket.kube.manifests.current_user_ids",
        side_effect=IdentityError("failed to get current user IDs"),
    )
    with pytest.raises(IdentityError):
        job_manifest(run_config, "ns")


def test_job_manifest_is_deterministic(run_config):
    first = job_manifest(run_config, "ns").body
    second = job_manifest(run_config, "ns").body
    assert first == second


def test_build_all_order_and_rule_file(tmp_path):
    rule_file = tmp_path / "rbac.yaml"
    rule_file.write_text(
        "rules:\n  - apiGroups: ['custom.io']\n    resources: ['things']\n    verbs: ['get']\n"
    )
    cfg = RunConfig(project_root="svc", test_command="true", rbac_file=str(rule_file))

    manifests = build_all(cfg, "ns")

    assert [m.kind for m in manifests] == [
        ManifestKind.NAMESPACE,
        ManifestKind.SERVICE_ACCOUNT,
        ManifestKind.CLUSTER_ROLE,
        ManifestKind.CLUSTER_ROLE_BINDING,
        ManifestKind.JOB,
    ]
    assert manifests[2].body.rules[-1].api_groups == ["custom.io"]


def test_to_yaml(run_config):
    manifests = [namespace_manifest("ns"), job_manifest(run_config, "ns")]

    documents = list(yaml.safe_load_all(to_yaml(manifests)))

    assert documents[0] == {
        "apiVersion": "v1",
        "kind": "Namespace",
        "metadata": {
            "labels": {"app.kubernetes.io/managed-by": "kubernetes-embedded-testing"},
            "name": "ns",
        },
    }
    job = documents[1]
    assert job["kind"] == "Job"
    container = job["spec"]["template"]["spec"]["containers"][0]
    assert container["workingDir"] == "/workspace/test-project"
    assert job["spec"]["activeDeadlineSeconds"] == 1800


def test_manifest_is_a_tagged_value():
    manifest = Manifest(ManifestKind.JOB, namespace_manifest("x").body)
    assert manifest.kind.namespaced is True
    assert ManifestKind.NAMESPACE.namespaced is False
    assert ManifestKind.CLUSTER_ROLE.namespaced is False
