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

import threading
import time

import click

from ...common.kubernetes_cluster.auth import load_api_client
from ...errors import KetError, ProvisioningError, RunCancelledError
from ...launcher.launch import TestLauncher
from ...logging_config import configure_logging
from ..cli_utils import build_config, config_options
from ..pretty_print import print_error, print_run_summary

INTERRUPTED_EXIT_CODE = 130


@click.command()
@config_options
@click.option("--keep-namespace", is_flag=True, help="Do not delete the namespace.")
@click.option("--debug", is_flag=True, help="Enable debug logging.")
@click.option("--log-timestamp", is_flag=True, help="Add timestamps to log lines.")
@click.option("--kubeconfig", type=click.Path(dir_okay=False), help="Kubeconfig path.")
@click.option("--context", "kube_context", type=str, help="Kubeconfig context.")
@click.option("--skip-tls", is_flag=True, help="Skip TLS verification.")
@click.pass_context
def cli(ctx, config_path, log_timestamp, kubeconfig, kube_context, skip_tls, **kwargs):
    """Run the tests in an ephemeral namespace"""
    config = build_config(config_path, **kwargs)
    if log_timestamp:
        kwargs["logging"] = {"prefix": config.logging.prefix, "timestamp": True}
        config = build_config(config_path, **kwargs)
    logger = configure_logging(config.logging, config.debug)

    try:
        api_client = load_api_client(kubeconfig, kube_context, skip_tls)
        launcher = TestLauncher(config, api_client, logger=logger, output=click.echo)
    except KetError as e:
        print_error("config", str(e))
        ctx.exit(1)

    cancel = threading.Event()
    started = time.monotonic()
    try:
        result = launcher.run(cancel)
    except (KeyboardInterrupt, RunCancelledError):
        cancel.set()
        click.echo("Test run interrupted", err=True)
        ctx.exit(INTERRUPTED_EXIT_CODE)
    except ProvisioningError as e:
        print_error(e.phase, str(e.cause))
        ctx.exit(1)
    except KetError as e:
        print_error("run", str(e))
        ctx.exit(1)

    print_run_summary(
        launcher.namespace,
        launcher.job_name,
        result,
        time.monotonic() - started,
        kept_namespace=config.keep_namespace,
    )
    if not result.success:
        ctx.exit(result.exit_code if result.exit_code > 0 else 1)
