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
The launch sub-module drives a single test run from namespace creation to
cleanup.

TestLauncher provisions the namespace, the access resources and the Job one
after the other, records each successful create in a ResourceTracker, hands
the Job to an ExecutionObserver and, on every exit path, deletes exactly the
resources the tracker recorded.
"""

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

from kubernetes import client

from ..common.kubernetes_cluster.auth import load_api_client
from ..common.utils.constants import CLEANUP_TIMEOUT_SECONDS
from ..common.utils.utils import generate_namespace_name
from ..config import RunConfig
from ..errors import (
    KetError,
    ProvisioningError,
    RunCancelledError,
    TestExecutionError,
)
from ..kube.apply import ResourceApplier, is_namespace_scoped
from ..kube.manifests import (
    Manifest,
    ManifestKind,
    access_manifests,
    job_manifest,
    namespace_manifest,
    run_rules,
)
from ..kube.observer import ExecutionObserver
from ..kube.status import ExecutionResult


class LauncherState(Enum):
    """
    Defines the states a test run moves through.
    """

    INIT = "init"
    NAMESPACE_CREATED = "namespace_created"
    ACCESS_CREATED = "access_created"
    WORKLOAD_CREATED = "workload_created"
    OBSERVING = "observing"
    TERMINAL = "terminal"
    CLEANING_UP = "cleaning_up"
    DONE = "done"


@dataclass
class ResourceTracker:
    """Which resources of the current run have been created."""

    namespace: bool = False
    access: bool = False
    workload: bool = False


class TestLauncher:
    """
    Runs one test workload in an ephemeral namespace.

    Args:
        config: The run configuration.
        api_client: Kubernetes ApiClient used for every cluster call.
        logger: Logger for progress messages, defaults to "ket.launcher".
        output: Callable receiving each line of test output.
    """

    __test__ = False

    def __init__(
        self,
        config: RunConfig,
        api_client: Optional[client.ApiClient] = None,
        logger: Optional[logging.Logger] = None,
        output: Optional[Callable[[str], None]] = None,
    ):
        self.config = config
        self.api_client = api_client
        self.logger = logger or logging.getLogger("ket.launcher")
        self.output = output
        self.applier = ResourceApplier(api_client)
        self.namespace = generate_namespace_name(
            config.namespace, config.namespace_prefix
        )
        self.tracker = ResourceTracker()
        self.state = LauncherState.INIT
        self._access: List[Manifest] = []
        self._job: Optional[Manifest] = None
        self._single_flight = threading.Lock()

    @property
    def job_name(self) -> Optional[str]:
        """Name of the test Job once it has been built."""
        return self._job.name if self._job else None

    def run(self, cancel: Optional[threading.Event] = None) -> ExecutionResult:
        """
        Provision, observe and clean up.

        Returns:
            The ExecutionResult of the test Job.

        Raises:
            ProvisioningError: If a resource could not be prepared or created.
            RunCancelledError: If cancel was set before the Job finished.
        """
        if not self._single_flight.acquire(blocking=False):
            raise KetError("this launcher is already running")
        cancel = cancel or threading.Event()
        self.tracker = ResourceTracker()
        self._access = []
        self._job = None
        self.state = LauncherState.INIT
        try:
            return self._provision_and_observe(cancel)
        finally:
            self._set_state(LauncherState.CLEANING_UP)
            self._cleanup()
            self._set_state(LauncherState.DONE)
            self._single_flight.release()

    def _provision_and_observe(self, cancel: threading.Event) -> ExecutionResult:
        config = self.config
        self.logger.info("Using test namespace: %s", self.namespace)

        self._check_cancelled(cancel)
        try:
            self.applier.create_namespace(namespace_manifest(self.namespace))
        except KetError as e:
            raise ProvisioningError("namespace", e) from e
        self.tracker.namespace = True
        self._set_state(LauncherState.NAMESPACE_CREATED)

        self._check_cancelled(cancel)
        try:
            self._access = access_manifests(
                self.namespace, run_rules(config), config.access_scope
            )
            for manifest in self._access:
                created = self.applier.create(manifest)
                self.tracker.access = True
                if (
                    not created
                    and manifest.kind is ManifestKind.CLUSTER_ROLE
                    and config.rbac_file
                ):
                    self.logger.warning(
                        "ClusterRole %s already exists and is reused as it is, "
                        "rules from %s are not applied",
                        manifest.name,
                        config.rbac_file,
                    )
        except KetError as e:
            raise ProvisioningError("access", e) from e
        self._set_state(LauncherState.ACCESS_CREATED)

        self._check_cancelled(cancel)
        try:
            self._job = job_manifest(config, self.namespace)
            self.applier.create_job(self._job)
        except KetError as e:
            raise ProvisioningError("workload", e) from e
        self.tracker.workload = True
        self._set_state(LauncherState.WORKLOAD_CREATED)

        self._set_state(LauncherState.OBSERVING)
        observer = ExecutionObserver(
            namespace=self.namespace,
            job_name=self._job.name,
            active_deadline_seconds=config.active_deadline_seconds,
            api_client=self.api_client,
            output=self.output,
        )
        result = observer.observe(cancel)
        self._set_state(LauncherState.TERMINAL)

        if result.success:
            self.logger.info("Test execution completed successfully")
        else:
            self.logger.error("Test execution failed: %s", result.error)
        return result

    def _check_cancelled(self, cancel: threading.Event):
        if cancel.is_set():
            raise RunCancelledError(
                f"run cancelled while in state {self.state.value}"
            )

    def _set_state(self, state: LauncherState):
        self.logger.debug("%s -> %s", self.state.value, state.value)
        self.state = state

    def _cleanup(self):
        """
        Delete what the tracker recorded, under a fixed time budget.

        Cluster-scoped access resources go first since namespace deletion does
        not reclaim them. Namespaced resources are deleted one by one only when
        the namespace itself stays behind. A kept namespace keeps its Job.
        """
        deadline = time.monotonic() + CLEANUP_TIMEOUT_SECONDS
        tracker = self.tracker
        keep = self.config.keep_namespace

        if tracker.access:
            for manifest in reversed(self._access):
                if not is_namespace_scoped(manifest.kind):
                    self._delete(manifest, deadline)

        namespace_deleted = False
        if tracker.namespace and not keep:
            self.logger.info("Cleaning up test namespace %s", self.namespace)
            namespace_deleted = self._delete(
                namespace_manifest(self.namespace), deadline
            )
        elif tracker.namespace:
            self.logger.info("Keeping test namespace %s", self.namespace)

        if namespace_deleted:
            return
        if tracker.workload and not keep:
            self._delete(self._job, deadline)
        if tracker.access:
            for manifest in reversed(self._access):
                if is_namespace_scoped(manifest.kind):
                    self._delete(manifest, deadline)

    def _delete(self, manifest: Manifest, deadline: float) -> bool:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            self.logger.warning(
                "Cleanup timed out, %s '%s' was not deleted",
                manifest.kind.kind,
                manifest.name,
            )
            return False
        try:
            self.applier.delete(manifest, request_timeout=remaining)
        except KetError as e:
            self.logger.warning("Failed to clean up: %s", e)
            return False
        return True


def launch(
    config: RunConfig,
    api_client: Optional[client.ApiClient] = None,
    cancel: Optional[threading.Event] = None,
    logger: Optional[logging.Logger] = None,
    output: Optional[Callable[[str], None]] = None,
) -> ExecutionResult:
    """
    Run the tests described by config and raise if they failed.

    Raises:
        TestExecutionError: If the test Job ran and did not succeed.
        ProvisioningError: If the run could not be set up.
        RunCancelledError: If cancel was set before the Job finished.
    """
    if api_client is None:
        api_client = load_api_client()
    launcher = TestLauncher(config, api_client, logger=logger, output=output)
    result = launcher.run(cancel)
    if not result.success:
        raise TestExecutionError(result.exit_code, str(result.error))
    return result
