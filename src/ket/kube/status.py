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
The status sub-module defines the Enum of reportable workload states and the
dataclass carrying the outcome of a test run.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..errors import KetError, WorkloadExitError


class WorkloadStatus(Enum):
    """
    Defines the possible reportable states of the test Job.
    """

    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    DEADLINE_EXCEEDED = "deadline_exceeded"

    @property
    def terminal(self) -> bool:
        return self in (
            WorkloadStatus.SUCCEEDED,
            WorkloadStatus.FAILED,
            WorkloadStatus.DEADLINE_EXCEEDED,
        )


@dataclass(frozen=True)
class ExecutionResult:
    """
    Outcome of one observed workload.

    Attributes:
        success: True when the Job completed successfully.
        exit_code: Exit code of the test container, -1 when none was observed.
        error: The execution error for a failed run, None on success.
    """

    success: bool
    exit_code: int
    error: Optional[KetError] = None

    @classmethod
    def succeeded(cls) -> "ExecutionResult":
        return cls(success=True, exit_code=0)

    @classmethod
    def failed(
        cls, error: KetError, exit_code: Optional[int] = None
    ) -> "ExecutionResult":
        if exit_code is None:
            exit_code = error.exit_code if isinstance(error, WorkloadExitError) else -1
        return cls(success=False, exit_code=exit_code, error=error)
