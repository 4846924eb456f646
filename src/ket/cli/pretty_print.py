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
Rich output for the ket command line.
"""

from typing import Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..kube.status import ExecutionResult


def print_run_summary(
    namespace: str,
    job_name: Optional[str],
    result: ExecutionResult,
    elapsed_seconds: float,
    kept_namespace: bool = False,
    console: Optional[Console] = None,
):
    """
    Pretty print the outcome of a test run.
    """
    if result.success:
        status_display = "[bold green]PASSED"
        header_color = "[white on green][bold]Test run"
    else:
        status_display = "[bold red]FAILED"
        header_color = "[white on red][bold]Test run"

    table = _create_info_table(header_color, job_name or "-", status_display)
    table.add_row(f"[bold]Namespace:[/bold] {namespace}")
    table.add_row(f"[bold]Exit code:[/bold] {result.exit_code}")
    table.add_row(f"[bold]Duration:[/bold] {elapsed_seconds:.1f}s")
    if result.error is not None:
        table.add_row(f"[bold]Error:[/bold] {result.error}")
    if kept_namespace:
        table.add_row()
        table.add_row(f"[dim]Namespace {namespace} was kept for inspection[/dim]")

    _print_table_in_panel(table, console)


def print_error(phase: str, message: str, console: Optional[Console] = None):
    table = _create_info_table(
        "[white on red][bold]Test run", "-", f"[bold red]{phase.upper()} ERROR"
    )
    table.add_row(message)
    _print_table_in_panel(table, console)


def _create_info_table(header_color: str, name: str, status_display: str) -> Table:
    table = Table(box=None, show_header=False)
    table.add_row(header_color)
    table.add_row("[bold underline]" + name, status_display)
    table.add_row()
    return table


def _print_table_in_panel(table: Table, console: Optional[Console] = None):
    console = console or Console()
    main_table = Table(box=None, title="[bold] :test_tube: ket test run :test_tube:")
    main_table.add_row(Panel.fit(table))
    console.print(main_table)
