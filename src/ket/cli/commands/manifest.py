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

from ...common.utils.utils import generate_namespace_name
from ...errors import KetError
from ...kube.manifests import build_all, to_yaml
from ..cli_utils import build_config, config_options


@click.command()
@config_options
def cli(config_path, **kwargs):
    """Print the manifests of a run without touching the cluster"""
    config = build_config(config_path, **kwargs)
    try:
        namespace = generate_namespace_name(config.namespace, config.namespace_prefix)
        click.echo(to_yaml(build_all(config, namespace)), nl=False)
    except KetError as e:
        raise click.ClickException(str(e))
