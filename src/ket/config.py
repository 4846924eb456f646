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
The config sub-module contains the RunConfig dataclass, which describes a
single test run, and load_config(), which assembles one from a YAML file,
KET_* environment variables and explicit overrides.
"""

import os
import re
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Dict, Mapping, Optional

import yaml

from .common.utils.constants import (
    DEFAULT_ACTIVE_DEADLINE_SECONDS,
    DEFAULT_BACKOFF_LIMIT,
    DEFAULT_IMAGE,
    DEFAULT_NAMESPACE_PREFIX,
    DEFAULT_WORKSPACE_PATH,
)
from .errors import ConfigError

CURRENT_DIRECTORY = "."


class AccessScope(Enum):
    """
    Where the test runner's role and role binding live.

    CLUSTER creates a ClusterRole/ClusterRoleBinding, which must be deleted
    explicitly. NAMESPACE creates a Role/RoleBinding inside the run namespace.
    """

    CLUSTER = "cluster"
    NAMESPACE = "namespace"


@dataclass(frozen=True)
class LoggingConfig:
    """
    Args:
        prefix:
            Prepend "[ket]" to every log line.
        timestamp:
            Prepend a timestamp to every log line.
    """

    prefix: bool = True
    timestamp: bool = False


@dataclass(frozen=True)
class RunConfig:
    """
    This dataclass describes one test run. It is validated on creation and
    is not modified afterwards.

    Args:
        test_command:
            Shell command executed with /bin/sh -c inside the test container.
        project_root:
            Project directory relative to the workspace, "." for the workspace itself.
        image:
            Container image for the test container.
        active_deadline_seconds:
            Maximum time the workload may run before it is terminated.
        backoff_limit:
            Number of retries of the test pod before the workload is marked failed.
        workspace_path:
            Host path that holds the project source tree.
        rbac_file:
            Optional YAML file with additional RBAC rules for the test runner.
        namespace:
            Explicit namespace name. When empty, one is generated from namespace_prefix.
        namespace_prefix:
            Prefix for generated namespace names.
        keep_namespace:
            Skip namespace deletion during cleanup.
        debug:
            Enable debug logging.
        access_scope:
            AccessScope (or its string value) selecting cluster or namespaced RBAC.
        logging:
            LoggingConfig controlling the log line format.
    """

    test_command: str = ""
    project_root: str = CURRENT_DIRECTORY
    image: str = DEFAULT_IMAGE
    active_deadline_seconds: int = DEFAULT_ACTIVE_DEADLINE_SECONDS
    backoff_limit: int = DEFAULT_BACKOFF_LIMIT
    workspace_path: str = DEFAULT_WORKSPACE_PATH
    rbac_file: Optional[str] = None
    namespace: Optional[str] = None
    namespace_prefix: str = DEFAULT_NAMESPACE_PREFIX
    keep_namespace: bool = False
    debug: bool = False
    access_scope: AccessScope = AccessScope.CLUSTER
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def __post_init__(self):
        if isinstance(self.access_scope, str):
            try:
                object.__setattr__(self, "access_scope", AccessScope(self.access_scope))
            except ValueError:
                raise ConfigError(
                    f"access_scope must be one of "
                    f"{[s.value for s in AccessScope]}, got {self.access_scope!r}"
                )
        if isinstance(self.logging, Mapping):
            object.__setattr__(self, "logging", LoggingConfig(**self.logging))

        errors = []
        if not self.test_command or not self.test_command.strip():
            errors.append("test_command is required")
        if not self.image:
            errors.append("image is required")
        if not self.project_root:
            errors.append("project_root must not be empty, use '.' for the workspace root")
        if not self.workspace_path or not self.workspace_path.startswith("/"):
            errors.append("workspace_path must be an absolute path")
        if not _is_int(self.active_deadline_seconds) or self.active_deadline_seconds <= 0:
            errors.append("active_deadline_seconds must be a positive integer")
        if not _is_int(self.backoff_limit) or self.backoff_limit < 0:
            errors.append("backoff_limit must be a non-negative integer")
        if self.namespace is not None and not _is_namespace_name(self.namespace):
            errors.append(
                f"namespace {self.namespace!r} must be at most 63 lowercase "
                "alphanumerics or single hyphens, starting and ending alphanumeric"
            )
        if errors:
            raise ConfigError("Invalid run configuration:\n" + "\n".join(errors))


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


_NAMESPACE_NAME = re.compile(r"[a-z0-9]+(-[a-z0-9]+)*")


def _is_namespace_name(value) -> bool:
    return (
        isinstance(value, str)
        and len(value) <= 63
        and _NAMESPACE_NAME.fullmatch(value) is not None
    )


# Environment variables read by load_config() and the RunConfig fields they set.
ENV_VARS = {
    "KET_TEST_COMMAND": "test_command",
    "KET_PROJECT_ROOT": "project_root",
    "KET_IMAGE": "image",
    "KET_ACTIVE_DEADLINE_SECONDS": "active_deadline_seconds",
    "KET_BACKOFF_LIMIT": "backoff_limit",
    "KET_WORKSPACE_PATH": "workspace_path",
    "KET_RBAC_FILE": "rbac_file",
    "KET_NAMESPACE": "namespace",
    "KET_NAMESPACE_PREFIX": "namespace_prefix",
    "KET_KEEP_NAMESPACE": "keep_namespace",
    "KET_DEBUG": "debug",
    "KET_ACCESS_SCOPE": "access_scope",
}

# Alternate spellings accepted in config files.
_ALIASES = {
    "cmd": "test_command",
    "active_deadline_s": "active_deadline_seconds",
    "timeout": "active_deadline_seconds",
}

_FIELD_NAMES = {f.name for f in fields(RunConfig)}
_INT_FIELDS = {"active_deadline_seconds", "backoff_limit"}
_BOOL_FIELDS = {"keep_namespace", "debug"}


def _snake_case(key: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", key).lower()


def _coerce(name: str, value: Any) -> Any:
    if not isinstance(value, str):
        return value
    if name in _BOOL_FIELDS:
        lowered = value.strip().lower()
        if lowered in ("1", "true", "yes", "on"):
            return True
        if lowered in ("0", "false", "no", "off", ""):
            return False
        raise ConfigError(f"{name} must be a boolean, got {value!r}")
    if name in _INT_FIELDS:
        try:
            return int(value)
        except ValueError:
            raise ConfigError(f"{name} must be an integer, got {value!r}")
    return value


def _normalise(values: Mapping[str, Any], source: str) -> Dict[str, Any]:
    normalised = {}
    for key, value in values.items():
        name = _snake_case(key)
        name = _ALIASES.get(name, name)
        if name not in _FIELD_NAMES:
            raise ConfigError(f"Unknown configuration key {key!r} in {source}")
        normalised[name] = _coerce(name, value)
    return normalised


def _read_config_file(path: str) -> Dict[str, Any]:
    try:
        with open(path) as f:
            document = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Config file {path} is not valid YAML: {e}") from e

    if document is None:
        return {}
    if not isinstance(document, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")
    return _normalise(document, path)


def _read_environment(environ: Mapping[str, str]) -> Dict[str, Any]:
    values = {
        ENV_VARS[key]: value for key, value in environ.items() if key in ENV_VARS
    }
    return {name: _coerce(name, value) for name, value in values.items()}


def load_config(
    path: Optional[str] = None,
    overrides: Optional[Mapping[str, Any]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> RunConfig:
    """
    Build a RunConfig from, in increasing priority: defaults, a YAML config
    file, KET_* environment variables and explicit overrides.

    Overrides whose value is None are ignored so CLI options that were not
    given do not mask lower priority sources.
    """
    values: Dict[str, Any] = {}
    if path:
        values.update(_read_config_file(path))
    values.update(_read_environment(os.environ if environ is None else environ))
    if overrides:
        values.update(
            _normalise({k: v for k, v in overrides.items() if v is not None}, "overrides")
        )

    try:
        return RunConfig(**values)
    except TypeError as e:
        raise ConfigError(f"Invalid run configuration: {e}") from e
