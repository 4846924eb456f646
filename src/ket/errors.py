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
The errors sub-module defines the exceptions raised while provisioning,
observing and tearing down a test run.

Provisioning problems (configuration, identity, rule files, cluster API
calls) are raised. Execution problems (deadline, non-zero exit) are carried
inside an ExecutionResult so the caller always gets a single outcome.
"""

from typing import Optional


class KetError(Exception):
    """Base class for every error raised by the ket package."""


class ConfigError(KetError, ValueError):
    """A configuration value is missing, invalid or cannot be derived."""


class IdentityError(KetError):
    """The uid/gid the workload should run as could not be resolved."""


class RuleLoadError(KetError):
    """A supplemental access rule file is unreadable or malformed."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"failed to load RBAC rules from {path}: {reason}")


class ResourceError(KetError):
    """A cluster API call failed for a specific resource."""

    action = "process"

    def __init__(self, kind: str, name: str, detail: str = ""):
        self.kind = kind
        self.name = name
        self.detail = detail
        message = f"failed to {self.action} {kind} '{name}'"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class ResourceCreateError(ResourceError):
    action = "create"


class ResourceDeleteError(ResourceError):
    action = "delete"


class StreamError(KetError):
    """Log streaming failed; transient unless the retry budget is exhausted."""


class ExecutionError(KetError):
    """The workload ran but did not succeed."""


class DeadlineExceededError(ExecutionError):
    """The workload ran past its active deadline."""


class WorkloadExitError(ExecutionError):
    """The workload completed with a non-zero exit code."""

    def __init__(self, exit_code: int, message: Optional[str] = None):
        self.exit_code = exit_code
        super().__init__(message or f"test container exited with code {exit_code}")


class ProvisioningError(KetError):
    """Wraps the error that aborted a run before the workload was observed."""

    def __init__(self, phase: str, cause: BaseException):
        self.phase = phase
        self.cause = cause
        super().__init__(f"provisioning failed during {phase} phase: {cause}")


class RunCancelledError(KetError):
    """The run was cancelled by the caller."""


class TestExecutionError(KetError):
    """Raised by launch() when the test workload failed."""

    __test__ = False

    def __init__(self, exit_code: int, message: str):
        self.exit_code = exit_code
        self.message = message
        super().__init__(f"{message} (exit code: {exit_code})")
