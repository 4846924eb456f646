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

import click

from .commands import manifest, run


@click.group()
@click.version_option(package_name="kubernetes-embedded-testing")
def cli():
    """Run tests inside an ephemeral Kubernetes namespace."""


cli.add_command(run.cli, name="run")
cli.add_command(manifest.cli, name="manifest")


if __name__ == "__main__":
    cli()
