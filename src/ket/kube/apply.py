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
The apply sub-module creates and deletes the cluster resources of a run.

Creates tolerate "already exists" and deletes tolerate "not found", so both
can be repeated safely against the leftovers of an interrupted run.
"""

import logging
from typing import Optional

import urllib3
from kubernetes import client

from ..common.kubernetes_cluster.kube_api_helpers import (
    format_api_error,
    is_already_exists,
    is_not_found,
)
from ..errors import ResourceCreateError, ResourceDeleteError
from .manifests import Manifest, ManifestKind

logger = logging.getLogger(__name__)

_TRANSPORT_ERRORS = (client.ApiException, urllib3.exceptions.HTTPError)


def is_namespace_scoped(kind: ManifestKind) -> bool:
    """True when deleting the run namespace also removes resources of this kind."""
    return kind.namespaced


class ResourceApplier:
    """
    Thin wrapper over the core, RBAC and batch APIs with one create and one
    delete per resource kind.

    Every call accepts a request_timeout (seconds) that is forwarded to the
    client as _request_timeout.
    """

    def __init__(self, api_client: Optional[client.ApiClient] = None):
        self.core_api = client.CoreV1Api(api_client)
        self.rbac_api = client.RbacAuthorizationV1Api(api_client)
        self.batch_api = client.BatchV1Api(api_client)

    # Create

    def create_namespace(self, manifest: Manifest, request_timeout=None):
        return self._create(manifest, self.core_api.create_namespace, request_timeout)

    def create_service_account(self, manifest: Manifest, request_timeout=None):
        return self._create(
            manifest, self.core_api.create_namespaced_service_account, request_timeout
        )

    def create_role(self, manifest: Manifest, request_timeout=None):
        if manifest.kind is ManifestKind.CLUSTER_ROLE:
            fn = self.rbac_api.create_cluster_role
        else:
            fn = self.rbac_api.create_namespaced_role
        return self._create(manifest, fn, request_timeout)

    def create_role_binding(self, manifest: Manifest, request_timeout=None):
        if manifest.kind is ManifestKind.CLUSTER_ROLE_BINDING:
            fn = self.rbac_api.create_cluster_role_binding
        else:
            fn = self.rbac_api.create_namespaced_role_binding
        return self._create(manifest, fn, request_timeout)

    def create_job(self, manifest: Manifest, request_timeout=None):
        return self._create(
            manifest, self.batch_api.create_namespaced_job, request_timeout
        )

    def create(self, manifest: Manifest, request_timeout=None):
        """
        Create any manifest by dispatching on its kind.

        Returns:
            False when the resource already existed and was left as it is.
        """
        creators = {
            ManifestKind.NAMESPACE: self.create_namespace,
            ManifestKind.SERVICE_ACCOUNT: self.create_service_account,
            ManifestKind.ROLE: self.create_role,
            ManifestKind.CLUSTER_ROLE: self.create_role,
            ManifestKind.ROLE_BINDING: self.create_role_binding,
            ManifestKind.CLUSTER_ROLE_BINDING: self.create_role_binding,
            ManifestKind.JOB: self.create_job,
        }
        return creators[manifest.kind](manifest, request_timeout=request_timeout)

    # Delete

    def delete_namespace(self, name: str, request_timeout=None):
        self._delete(
            ManifestKind.NAMESPACE,
            name,
            None,
            self.core_api.delete_namespace,
            request_timeout,
        )

    def delete_service_account(self, name: str, namespace: str, request_timeout=None):
        self._delete(
            ManifestKind.SERVICE_ACCOUNT,
            name,
            namespace,
            self.core_api.delete_namespaced_service_account,
            request_timeout,
        )

    def delete_role(
        self,
        name: str,
        namespace: Optional[str] = None,
        request_timeout=None,
    ):
        """Delete a Role, or the ClusterRole when no namespace is given."""
        if namespace is None:
            kind, fn = ManifestKind.CLUSTER_ROLE, self.rbac_api.delete_cluster_role
        else:
            kind, fn = ManifestKind.ROLE, self.rbac_api.delete_namespaced_role
        self._delete(kind, name, namespace, fn, request_timeout)

    def delete_role_binding(
        self,
        name: str,
        namespace: Optional[str] = None,
        request_timeout=None,
    ):
        if namespace is None:
            kind = ManifestKind.CLUSTER_ROLE_BINDING
            fn = self.rbac_api.delete_cluster_role_binding
        else:
            kind = ManifestKind.ROLE_BINDING
            fn = self.rbac_api.delete_namespaced_role_binding
        self._delete(kind, name, namespace, fn, request_timeout)

    def delete_job(self, name: str, namespace: str, request_timeout=None):
        # Background propagation removes the Job's pods as well.
        self._delete(
            ManifestKind.JOB,
            name,
            namespace,
            self.batch_api.delete_namespaced_job,
            request_timeout,
            propagation_policy="Background",
        )

    def delete(self, manifest: Manifest, request_timeout=None):
        """Delete the resource described by a manifest."""
        kind = manifest.kind
        namespace = manifest.namespace if kind.namespaced else None
        if kind is ManifestKind.NAMESPACE:
            self.delete_namespace(manifest.name, request_timeout=request_timeout)
        elif kind is ManifestKind.SERVICE_ACCOUNT:
            self.delete_service_account(
                manifest.name, namespace, request_timeout=request_timeout
            )
        elif kind in (ManifestKind.ROLE, ManifestKind.CLUSTER_ROLE):
            self.delete_role(manifest.name, namespace, request_timeout=request_timeout)
        elif kind in (ManifestKind.ROLE_BINDING, ManifestKind.CLUSTER_ROLE_BINDING):
            self.delete_role_binding(
                manifest.name, namespace, request_timeout=request_timeout
            )
        else:
            self.delete_job(manifest.name, namespace, request_timeout=request_timeout)

    def _create(self, manifest: Manifest, fn, request_timeout):
        kwargs = _timeout_kwargs(request_timeout)
        if manifest.kind.namespaced:
            kwargs["namespace"] = manifest.namespace
        try:
            fn(body=manifest.body, **kwargs)
        except _TRANSPORT_ERRORS as e:
            if is_already_exists(e):
                logger.debug(
                    "%s '%s' already exists, reusing it",
                    manifest.kind.kind,
                    manifest.name,
                )
                return False
            raise ResourceCreateError(
                manifest.kind.kind, manifest.name, format_api_error(e)
            ) from e
        logger.debug("Created %s '%s'", manifest.kind.kind, manifest.name)
        return True

    def _delete(self, kind, name, namespace, fn, request_timeout, **extra):
        kwargs = _timeout_kwargs(request_timeout)
        kwargs.update(extra)
        if namespace is not None:
            kwargs["namespace"] = namespace
        try:
            fn(name=name, **kwargs)
        except _TRANSPORT_ERRORS as e:
            if is_not_found(e):
                logger.debug("%s '%s' already gone", kind.kind, name)
                return
            raise ResourceDeleteError(kind.kind, name, format_api_error(e)) from e
        logger.debug("Deleted %s '%s'", kind.kind, name)


def _timeout_kwargs(request_timeout) -> dict:
    if request_timeout is None:
        return {}
    return {"_request_timeout": request_timeout}
