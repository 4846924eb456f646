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
Names and defaults shared by the manifest builder, the applier and the launcher.
"""

RESOURCE_PREFIX = "ket"
TEST_RUNNER_NAME = f"{RESOURCE_PREFIX}-test-runner"
SERVICE_ACCOUNT_NAME = TEST_RUNNER_NAME
CONTAINER_NAME = "test-runner"

DEFAULT_NAMESPACE_PREFIX = "kubernetes-embedded-test"
NAMESPACE_SUFFIX_LENGTH = 8

DEFAULT_IMAGE = "alpine:latest"
DEFAULT_WORKSPACE_PATH = "/workspace"
DEFAULT_ACTIVE_DEADLINE_SECONDS = 1800
DEFAULT_BACKOFF_LIMIT = 0

SOURCE_VOLUME = "source-code"
SOURCE_MOUNT_PATH = "/workspace"
REPORTS_VOLUME = "reports"
REPORTS_MOUNT_PATH = "/reports"

ENV_NAMESPACE = "KET_TEST_NAMESPACE"
ENV_PROJECT_ROOT = "KET_PROJECT_ROOT"
ENV_WORKSPACE_PATH = "KET_WORKSPACE_PATH"

MANAGED_BY_LABEL = "app.kubernetes.io/managed-by"
MANAGED_BY_VALUE = "kubernetes-embedded-testing"
RBAC_API_GROUP = "rbac.authorization.k8s.io"

CLEANUP_TIMEOUT_SECONDS = 10
POLL_INTERVAL_SECONDS = 2
DEADLINE_GRACE_SECONDS = 60
STREAM_RETRIES = 5
STREAM_BACKOFF_BASE_SECONDS = 1
STREAM_BACKOFF_MAX_SECONDS = 10
LOG_DRAIN_SECONDS = 5
STATUS_READ_RETRIES = 5
