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
The observer sub-module follows a running test Job until it is terminal.

Two worker threads run side by side: one streams the test container's output
to a sink, the other polls the Job status. Only the status poll decides the
outcome; a failing log stream is retried with backoff and then abandoned.
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Callable, Optional, Tuple

import urllib3
from kubernetes import client

from ..common.kubernetes_cluster.kube_api_helpers import format_api_error, is_not_found
from ..common.utils.constants import (
    CONTAINER_NAME,
    DEADLINE_GRACE_SECONDS,
    LOG_DRAIN_SECONDS,
    POLL_INTERVAL_SECONDS,
    STATUS_READ_RETRIES,
    STREAM_BACKOFF_BASE_SECONDS,
    STREAM_BACKOFF_MAX_SECONDS,
    STREAM_RETRIES,
)
from ..errors import (
    DeadlineExceededError,
    ExecutionError,
    RunCancelledError,
    StreamError,
    WorkloadExitError,
)
from .status import ExecutionResult, WorkloadStatus

logger = logging.getLogger(__name__)

_TRANSPORT_ERRORS = (client.ApiException, urllib3.exceptions.HTTPError)
_FAILED_CONDITIONS = ("Failed", "FailureTarget")
_FINISHED_POD_PHASES = ("Succeeded", "Failed")


def job_status(job) -> Tuple[WorkloadStatus, Optional[str]]:
    """
    Classify a V1Job into a WorkloadStatus.

    Returns the status and, for failed Jobs, the condition's reason/message.
    """
    status = job.status
    if status is None:
        return WorkloadStatus.PENDING, None

    for condition in status.conditions or []:
        if condition.status != "True":
            continue
        if condition.type == "Complete":
            return WorkloadStatus.SUCCEEDED, None
        if condition.type in _FAILED_CONDITIONS:
            if condition.reason == "DeadlineExceeded":
                return WorkloadStatus.DEADLINE_EXCEEDED, condition.message
            detail = ": ".join(p for p in (condition.reason, condition.message) if p)
            return WorkloadStatus.FAILED, detail or None

    if status.succeeded:
        return WorkloadStatus.SUCCEEDED, None
    if status.active:
        return WorkloadStatus.RUNNING, None
    return WorkloadStatus.PENDING, None


def _backoff(attempt: int) -> float:
    return min(
        STREAM_BACKOFF_BASE_SECONDS * 2 ** (attempt - 1), STREAM_BACKOFF_MAX_SECONDS
    )


class ExecutionObserver:
    """
    Streams the output of a test Job and waits for it to finish.

    Args:
        namespace: Namespace of the Job.
        job_name: Name of the Job.
        active_deadline_seconds: The Job's active deadline, used to bound the wait.
        api_client: Kubernetes ApiClient to use.
        output: Callable receiving each line of test output.
        poll_interval: Seconds between two Job status reads.
        stream_retries: Reconnect attempts for the log stream.
        grace_seconds: Extra wait past the deadline before giving up.
    """

    def __init__(
        self,
        namespace: str,
        job_name: str,
        active_deadline_seconds: int,
        api_client: Optional[client.ApiClient] = None,
        output: Optional[Callable[[str], None]] = None,
        poll_interval: float = POLL_INTERVAL_SECONDS,
        stream_retries: int = STREAM_RETRIES,
        grace_seconds: float = DEADLINE_GRACE_SECONDS,
    ):
        self.namespace = namespace
        self.job_name = job_name
        self.active_deadline_seconds = active_deadline_seconds
        self.output = output or print
        self.poll_interval = poll_interval
        self.stream_retries = stream_retries
        self.grace_seconds = grace_seconds
        self.core_api = client.CoreV1Api(api_client)
        self.batch_api = client.BatchV1Api(api_client)

        self._stop = threading.Event()
        self._finished = threading.Event()
        self._last_timestamp = None
        self._status_failures = 0
        self._last_status_error = None
        self._response = None
        self._response_lock = threading.Lock()

    def observe(self, cancel: Optional[threading.Event] = None) -> ExecutionResult:
        """
        Block until the Job is terminal and return its ExecutionResult.

        Raises:
            RunCancelledError: If cancel is set before the Job is terminal.
        """
        cancel = cancel or threading.Event()
        self._stop.clear()
        self._finished.clear()
        self._status_failures = 0
        self._last_status_error = None
        executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="ket-observer")
        try:
            stream_future = executor.submit(self._stream_logs)
            poll_future = executor.submit(self._poll_status, cancel)
            result = poll_future.result()
            self._finished.set()
            try:
                stream_future.result(timeout=LOG_DRAIN_SECONDS)
            except FutureTimeoutError:
                logger.debug("Log stream still open after the job finished, closing it")
            except Exception as e:
                logger.warning("Test output streaming failed: %s", e)
            return result
        finally:
            self._stop.set()
            self._finished.set()
            self._close_stream()
            executor.shutdown(wait=False)

    # Status

    def _poll_status(self, cancel: threading.Event) -> ExecutionResult:
        give_up_at = (
            time.monotonic() + self.active_deadline_seconds + self.grace_seconds
        )
        while True:
            if cancel.is_set():
                raise RunCancelledError(
                    f"run cancelled while waiting for job '{self.job_name}'"
                )
            result = self._check_job()
            if result is not None:
                return result
            if time.monotonic() >= give_up_at:
                if self._last_status_error is not None:
                    return ExecutionResult.failed(
                        ExecutionError(
                            f"could not read status of job '{self.job_name}': "
                            f"{self._last_status_error}"
                        )
                    )
                return ExecutionResult.failed(
                    DeadlineExceededError(
                        f"test job '{self.job_name}' did not finish within "
                        f"{self.active_deadline_seconds}s"
                    )
                )
            if cancel.wait(self.poll_interval) or self._stop.is_set():
                raise RunCancelledError(
                    f"run cancelled while waiting for job '{self.job_name}'"
                )

    def _check_job(self) -> Optional[ExecutionResult]:
        try:
            job = self.batch_api.read_namespaced_job_status(
                name=self.job_name, namespace=self.namespace
            )
        except _TRANSPORT_ERRORS as e:
            if is_not_found(e):
                return ExecutionResult.failed(
                    ExecutionError(f"test job '{self.job_name}' no longer exists")
                )
            self._status_failures += 1
            self._last_status_error = format_api_error(e)
            if self._status_failures > STATUS_READ_RETRIES:
                return ExecutionResult.failed(
                    ExecutionError(
                        f"could not read status of job '{self.job_name}' after "
                        f"{self._status_failures} attempts: {self._last_status_error}"
                    )
                )
            logger.warning(
                "Failed to read status of job '%s': %s",
                self.job_name,
                self._last_status_error,
            )
            return None

        self._status_failures = 0
        self._last_status_error = None

        status, detail = job_status(job)
        logger.debug("Job '%s' is %s", self.job_name, status.value)
        if status is WorkloadStatus.SUCCEEDED:
            return ExecutionResult.succeeded()
        if status is WorkloadStatus.DEADLINE_EXCEEDED:
            return ExecutionResult.failed(
                DeadlineExceededError(
                    f"test job '{self.job_name}' exceeded its active deadline of "
                    f"{self.active_deadline_seconds}s"
                )
            )
        if status is WorkloadStatus.FAILED:
            exit_code = self._exit_code()
            if exit_code:
                return ExecutionResult.failed(WorkloadExitError(exit_code))
            return ExecutionResult.failed(
                ExecutionError(f"test job '{self.job_name}' failed: {detail}")
            )
        return None

    def _exit_code(self) -> Optional[int]:
        """Exit code of the test container in the Job's newest pod, if terminated."""
        try:
            pod = self._newest_pod()
        except _TRANSPORT_ERRORS as e:
            logger.warning(
                "Failed to read pods of job '%s': %s",
                self.job_name,
                format_api_error(e),
            )
            return None
        if pod is None or pod.status is None:
            return None
        for container in pod.status.container_statuses or []:
            if container.name != CONTAINER_NAME or container.state is None:
                continue
            if container.state.terminated is not None:
                return container.state.terminated.exit_code
        return None

    def _newest_pod(self):
        pods = self.core_api.list_namespaced_pod(
            namespace=self.namespace, label_selector=f"job-name={self.job_name}"
        ).items
        if not pods:
            return None
        return max(pods, key=lambda p: p.metadata.creation_timestamp)

    # Logs

    def _stream_logs(self):
        attempt = 0
        followed = set()
        while not self._stop.is_set():
            try:
                pod_name = self._wait_for_pod(followed)
                if pod_name is None:
                    return
                self._follow(pod_name)
                if self._stop.is_set():
                    return
                if self._pod_finished(pod_name):
                    # A retried Job starts its next pod after this one ends.
                    followed.add(pod_name)
                    attempt = 0
                    continue
                raise StreamError(f"log stream of pod '{pod_name}' ended early")
            except (StreamError,) + _TRANSPORT_ERRORS as e:
                if self._stop.is_set():
                    return
                attempt += 1
                if attempt > self.stream_retries:
                    logger.warning(
                        "Giving up on test output after %d attempts: %s",
                        attempt,
                        format_api_error(e),
                    )
                    return
                delay = _backoff(attempt)
                logger.debug(
                    "Log stream interrupted (%s), reconnecting in %ss", e, delay
                )
                self._stop.wait(delay)
            except Exception as e:
                # A closed output sink, e.g. stdout piped into head.
                logger.warning("Stopped streaming test output: %s", e)
                return

    def _wait_for_pod(self, followed=()) -> Optional[str]:
        """
        Name of the oldest pod of the Job that has left Pending and is not in
        followed, None once the Job is finished and no such pod exists.
        """
        while True:
            pods = self.core_api.list_namespaced_pod(
                namespace=self.namespace, label_selector=f"job-name={self.job_name}"
            ).items
            for pod in sorted(pods, key=lambda p: p.metadata.creation_timestamp):
                if pod.metadata.name in followed or pod.status is None:
                    continue
                if pod.status.phase not in (None, "Pending"):
                    return pod.metadata.name
            if self._stop.is_set() or self._finished.is_set():
                return None
            self._finished.wait(self.poll_interval)

    def _follow(self, pod_name: str):
        response = self.core_api.read_namespaced_pod_log(
            name=pod_name,
            namespace=self.namespace,
            container=CONTAINER_NAME,
            follow=True,
            timestamps=True,
            _preload_content=False,
        )
        with self._response_lock:
            self._response = response
        try:
            for raw in response:
                line = raw.decode("utf-8", errors="replace").rstrip("\r\n")
                timestamp, _, text = line.partition(" ")
                # Lines already written before a reconnect.
                seen = self._last_timestamp
                if seen is not None and timestamp <= seen:
                    continue
                self._last_timestamp = timestamp
                self.output(text)
        finally:
            with self._response_lock:
                self._response = None
            response.release_conn()

    def _pod_finished(self, pod_name: str) -> bool:
        pod = self.core_api.read_namespaced_pod(name=pod_name, namespace=self.namespace)
        return pod.status is not None and pod.status.phase in _FINISHED_POD_PHASES

    def _close_stream(self):
        with self._response_lock:
            response = self._response
        if response is not None:
            response.close()
