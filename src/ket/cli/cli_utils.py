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
Shared click options and helpers for the ket commands.
"""

import click

from ..config import AccessScope, RunConfig, load_config
from ..errors import ConfigError


def config_options(f):
    """Options that describe the run, shared by every command."""
    options = [
        click.option(
            "--config",
            "config_path",
            type=click.Path(dir_okay=False),
            help="YAML file with run settings.",
        ),
        click.option("--image", type=str, help="Container image for the tests."),
        click.option("--cmd", "test_command", type=str, help="Test command to run."),
        click.option(
            "--project-root",
            type=str,
            help="Project directory relative to the workspace.",
        ),
        click.option(
            "--workspace-path", type=str, help="Host path of the source tree."
        ),
        click.option("--namespace", type=str, help="Use this namespace name."),
        click.option(
            "--namespace-prefix", type=str, help="Prefix for a generated namespace."
        ),
        click.option(
            "--rbac-file",
            type=click.Path(dir_okay=False),
            help="YAML file with additional RBAC rules.",
        ),
        click.option(
            "--timeout",
            "active_deadline_seconds",
            type=int,
            help="Active deadline of the test Job, in seconds.",
        ),
        click.option("--backoff-limit", type=int, help="Retries of the test pod."),
        click.option(
            "--access-scope",
            type=click.Choice([s.value for s in AccessScope]),
            help="Create cluster or namespaced RBAC for the test runner.",
        ),
    ]
    for option in reversed(options):
        f = option(f)
    return f


def build_config(config_path=None, **overrides) -> RunConfig:
    """Load a RunConfig, reporting problems as click errors."""
    # Unset boolean flags must not mask the config file or environment.
    for flag in ("keep_namespace", "debug"):
        if overrides.get(flag) is False:
            overrides[flag] = None
    try:
        return load_config(config_path, overrides)
    except ConfigError as e:
        raise click.UsageError(str(e))
