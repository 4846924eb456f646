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
Builders for every Kubernetes resource a test run creates.

Each builder is a pure function of the run configuration and the target
namespace; nothing here talks to the cluster. Resources are returned as
Manifest values, a kind tag plus the kubernetes client model for that kind,
so callers can dispatch on the kind without a shared base type.
"""

import os
import posixpath
from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Optional, Sequence, Tuple

import yaml
from kubernetes import client
from kubernetes.client import (
    RbacV1Subject,
    V1ClusterRole,
    V1ClusterRoleBinding,
    V1Container,
    V1EmptyDirVolumeSource,
    V1EnvVar,
    V1HostPathVolumeSource,
    V1Job,
    V1JobSpec,
    V1Namespace,
    V1ObjectMeta,
    V1PodSecurityContext,
    V1PodSpec,
    V1PodTemplateSpec,
    V1PolicyRule,
    V1Role,
    V1RoleBinding,
    V1RoleRef,
    V1ServiceAccount,
    V1Volume,
    V1VolumeMount,
)

from ..common.utils.constants import (
    CONTAINER_NAME,
    ENV_NAMESPACE,
    ENV_PROJECT_ROOT,
    ENV_WORKSPACE_PATH,
    MANAGED_BY_LABEL,
    MANAGED_BY_VALUE,
    RBAC_API_GROUP,
    REPORTS_MOUNT_PATH,
    REPORTS_VOLUME,
    RESOURCE_PREFIX,
    SERVICE_ACCOUNT_NAME,
    SOURCE_MOUNT_PATH,
    SOURCE_VOLUME,
    TEST_RUNNER_NAME,
)
from ..common.utils.utils import current_user_ids, to_kube_safe
from ..config import CURRENT_DIRECTORY, AccessScope, RunConfig
from ..errors import ConfigError
from .rbac import default_rules, load_supplemental_rules, merge_rules

_MAX_NAME_LENGTH = 63


class ManifestKind(Enum):
    """Kinds of resources created for a run, with their API version."""

    NAMESPACE = ("v1", "Namespace", False)
    SERVICE_ACCOUNT = ("v1", "ServiceAccount", True)
    ROLE = (f"{RBAC_API_GROUP}/v1", "Role", True)
    ROLE_BINDING = (f"{RBAC_API_GROUP}/v1", "RoleBinding", True)
    CLUSTER_ROLE = (f"{RBAC_API_GROUP}/v1", "ClusterRole", False)
    CLUSTER_ROLE_BINDING = (f"{RBAC_API_GROUP}/v1", "ClusterRoleBinding", False)
    JOB = ("batch/v1", "Job", True)

    def __init__(self, api_version: str, kind: str, namespaced: bool):
        self.api_version = api_version
        self.kind = kind
        self.namespaced = namespaced


@dataclass(frozen=True)
class Manifest:
    """A resource description tagged with its kind."""

    kind: ManifestKind
    body: Any

    @property
    def name(self) -> str:
        return self.body.metadata.name

    @property
    def namespace(self) -> Optional[str]:
        return self.body.metadata.namespace


def _metadata(name: str, namespace: Optional[str] = None) -> V1ObjectMeta:
    return V1ObjectMeta(
        name=name,
        namespace=namespace,
        labels={MANAGED_BY_LABEL: MANAGED_BY_VALUE},
    )


def resolve_paths(project_root: str, workspace_path: str) -> Tuple[str, str]:
    """
    Return (working_dir, host_path) for the test container.

    The project root "." maps both to the workspace itself. Any other project
    root is joined onto the workspace with path semantics.
    """
    if project_root == CURRENT_DIRECTORY:
        return workspace_path, workspace_path
    joined = posixpath.normpath(
        posixpath.join(workspace_path, project_root.lstrip("/"))
    )
    return joined, joined


def project_identifier(project_root: str) -> str:
    """
    Derive a short project identifier from the last segment of the project
    root, or of the current working directory when the root is ".".
    """
    if project_root == CURRENT_DIRECTORY:
        source = os.getcwd()
        segment = os.path.basename(os.path.normpath(source))
    else:
        source = project_root
        segment = posixpath.basename(posixpath.normpath(project_root))

    identifier = to_kube_safe(segment).lower()
    if not identifier:
        raise ConfigError(f"cannot derive a project name from {source!r}")
    return identifier


def job_name(project_root: str) -> str:
    name = f"{RESOURCE_PREFIX}-{project_identifier(project_root)}"
    return name[:_MAX_NAME_LENGTH].rstrip("-")


def namespace_manifest(namespace: str) -> Manifest:
    return Manifest(
        ManifestKind.NAMESPACE,
        V1Namespace(
            api_version=ManifestKind.NAMESPACE.api_version,
            kind=ManifestKind.NAMESPACE.kind,
            metadata=_metadata(namespace),
        ),
    )


def service_account_manifest(namespace: str) -> Manifest:
    return Manifest(
        ManifestKind.SERVICE_ACCOUNT,
        V1ServiceAccount(
            api_version=ManifestKind.SERVICE_ACCOUNT.api_version,
            kind=ManifestKind.SERVICE_ACCOUNT.kind,
            metadata=_metadata(SERVICE_ACCOUNT_NAME, namespace),
        ),
    )


def role_manifest(
    namespace: str, rules: Sequence[V1PolicyRule], scope: AccessScope
) -> Manifest:
    if scope is AccessScope.CLUSTER:
        kind = ManifestKind.CLUSTER_ROLE
        body = V1ClusterRole(
            api_version=kind.api_version,
            kind=kind.kind,
            metadata=_metadata(TEST_RUNNER_NAME),
            rules=list(rules),
        )
    else:
        kind = ManifestKind.ROLE
        body = V1Role(
            api_version=kind.api_version,
            kind=kind.kind,
            metadata=_metadata(TEST_RUNNER_NAME, namespace),
            rules=list(rules),
        )
    return Manifest(kind, body)


def role_binding_manifest(namespace: str, scope: AccessScope) -> Manifest:
    subjects = [
        RbacV1Subject(
            kind="ServiceAccount", name=SERVICE_ACCOUNT_NAME, namespace=namespace
        )
    ]
    if scope is AccessScope.CLUSTER:
        kind = ManifestKind.CLUSTER_ROLE_BINDING
        # Bound per namespace, the ClusterRole itself is shared.
        body = V1ClusterRoleBinding(
            api_version=kind.api_version,
            kind=kind.kind,
            metadata=_metadata(f"{TEST_RUNNER_NAME}-{namespace}"),
            subjects=subjects,
            role_ref=V1RoleRef(
                api_group=RBAC_API_GROUP, kind="ClusterRole", name=TEST_RUNNER_NAME
            ),
        )
    else:
        kind = ManifestKind.ROLE_BINDING
        body = V1RoleBinding(
            api_version=kind.api_version,
            kind=kind.kind,
            metadata=_metadata(TEST_RUNNER_NAME, namespace),
            subjects=subjects,
            role_ref=V1RoleRef(
                api_group=RBAC_API_GROUP, kind="Role", name=TEST_RUNNER_NAME
            ),
        )
    return Manifest(kind, body)


def access_manifests(
    namespace: str,
    rules: Sequence[V1PolicyRule],
    scope: AccessScope = AccessScope.CLUSTER,
) -> List[Manifest]:
    """Service account, role and role binding, in creation order."""
    return [
        service_account_manifest(namespace),
        role_manifest(namespace, rules, scope),
        role_binding_manifest(namespace, scope),
    ]


def job_manifest(config: RunConfig, namespace: str) -> Manifest:
    """
    Build the Job that runs the test command.

    The pod runs as the invoking user's uid/gid so files written to the
    host-mounted source tree keep the user's ownership.

    Raises:
        ConfigError: If no job name can be derived from the project root.
        IdentityError: If the invoking user's uid/gid cannot be resolved.
    """
    working_dir, host_path = resolve_paths(config.project_root, config.workspace_path)
    name = job_name(config.project_root)
    uid, gid = current_user_ids()

    container = V1Container(
        name=CONTAINER_NAME,
        image=config.image,
        image_pull_policy="IfNotPresent",
        command=["/bin/sh", "-c", config.test_command],
        working_dir=working_dir,
        env=[
            V1EnvVar(name=ENV_NAMESPACE, value=namespace),
            V1EnvVar(name=ENV_PROJECT_ROOT, value=config.project_root),
            V1EnvVar(name=ENV_WORKSPACE_PATH, value=config.workspace_path),
        ],
        volume_mounts=[
            V1VolumeMount(name=SOURCE_VOLUME, mount_path=SOURCE_MOUNT_PATH),
            V1VolumeMount(name=REPORTS_VOLUME, mount_path=REPORTS_MOUNT_PATH),
        ],
    )

    pod_spec = V1PodSpec(
        service_account_name=SERVICE_ACCOUNT_NAME,
        restart_policy="Never",
        containers=[container],
        volumes=[
            V1Volume(
                name=SOURCE_VOLUME,
                host_path=V1HostPathVolumeSource(path=host_path, type="Directory"),
            ),
            V1Volume(name=REPORTS_VOLUME, empty_dir=V1EmptyDirVolumeSource()),
        ],
        security_context=V1PodSecurityContext(
            run_as_user=uid,
            run_as_group=gid,
            fs_group=gid,
            supplemental_groups=[gid],
        ),
    )

    job = V1Job(
        api_version=ManifestKind.JOB.api_version,
        kind=ManifestKind.JOB.kind,
        metadata=_metadata(name, namespace),
        spec=V1JobSpec(
            backoff_limit=config.backoff_limit,
            active_deadline_seconds=config.active_deadline_seconds,
            template=V1PodTemplateSpec(
                metadata=V1ObjectMeta(labels={MANAGED_BY_LABEL: MANAGED_BY_VALUE}),
                spec=pod_spec,
            ),
        ),
    )
    return Manifest(ManifestKind.JOB, job)


def run_rules(config: RunConfig) -> List[V1PolicyRule]:
    """Default rules followed by the config's supplemental rule file, if any."""
    return merge_rules(default_rules(), load_supplemental_rules(config.rbac_file))


def build_all(config: RunConfig, namespace: str) -> List[Manifest]:
    """Every manifest of a run, in creation order."""
    return [
        namespace_manifest(namespace),
        *access_manifests(namespace, run_rules(config), config.access_scope),
        job_manifest(config, namespace),
    ]


def to_yaml(manifests: Sequence[Manifest]) -> str:
    """Render manifests as a multi-document YAML stream."""
    api_client = client.ApiClient()
    documents = [
        api_client.sanitize_for_serialization(manifest.body) for manifest in manifests
    ]
    return yaml.safe_dump_all(documents, sort_keys=False, default_flow_style=False)
