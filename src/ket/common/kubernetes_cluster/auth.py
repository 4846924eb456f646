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
The auth sub-module loads the Kubernetes configuration used to talk to the
target cluster.

Unlike a process-wide client, the ApiClient returned here is handed to the
launcher explicitly so that every run owns its connection settings.
"""

import logging
import os
from typing import Optional

import urllib3
from kubernetes import client, config

from ...errors import ConfigError

logger = logging.getLogger(__name__)


def load_api_client(
    kubeconfig: Optional[str] = None,
    context: Optional[str] = None,
    skip_tls: bool = False,
) -> client.ApiClient:
    """
    Build an ApiClient for the target cluster.

    Priority:
    1. An explicit kubeconfig path (and optional context).
    2. The default kubeconfig (`$KUBECONFIG` or `~/.kube/config`).
    3. In-cluster service account configuration when `KUBERNETES_PORT` is set.

    Raises:
        ConfigError:
            If no usable configuration can be found or loaded.
    """
    configuration = client.Configuration()
    default_path = os.environ.get(
        "KUBECONFIG", os.path.join(os.path.expanduser("~"), ".kube", "config")
    )
    config_file = kubeconfig or default_path.split(os.pathsep)[0]

    try:
        if kubeconfig or os.path.isfile(config_file):
            config.load_kube_config(
                config_file=config_file,
                context=context,
                client_configuration=configuration,
            )
            logger.debug(f"Loaded kubeconfig from {config_file}")
        elif "KUBERNETES_PORT" in os.environ:
            config.load_incluster_config(client_configuration=configuration)
            logger.debug("Loaded in-cluster configuration")
        else:
            raise ConfigError(
                "No Kubernetes configuration found, have you put in correct/up-to-date "
                "auth credentials?"
            )
    except config.ConfigException as e:
        raise ConfigError(
            f"Unable to load Kubernetes configuration: {e}. "
            "Verify the config file path and format."
        ) from e

    if skip_tls:
        urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)
        logger.warning("TLS verification has been disabled for the cluster API")
        configuration.verify_ssl = False

    return client.ApiClient(configuration)
