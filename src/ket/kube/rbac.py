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
Access rules granted to the test runner's service account.

The default rule set covers what an integration test typically needs inside
its namespace. Callers may append rules from a YAML file of the form::

    rules:
      - apiGroups: ["custom.io"]
        resources: ["widgets"]
        verbs: ["get", "list"]

Merging is plain concatenation: supplemental rules are appended after the
defaults and may repeat or widen them. Nothing is deduplicated.
"""

import logging
from typing import Any, List, Optional, Sequence

import yaml
from kubernetes.client import V1PolicyRule

from ..errors import RuleLoadError

logger = logging.getLogger(__name__)

_CRUD_VERBS = ["get", "list", "watch", "create", "update", "patch", "delete"]


def default_rules() -> List[V1PolicyRule]:
    """Return the built-in rules for the test runner role, in a fixed order."""
    return [
        V1PolicyRule(
            api_groups=[""],
            resources=[
                "pods",
                "services",
                "configmaps",
                "secrets",
                "persistentvolumeclaims",
                "endpoints",
            ],
            verbs=list(_CRUD_VERBS),
        ),
        V1PolicyRule(
            api_groups=[""],
            resources=["pods/log", "pods/portforward", "pods/exec"],
            verbs=["get", "list", "create"],
        ),
        V1PolicyRule(
            api_groups=[""],
            resources=["events"],
            verbs=["get", "list", "watch"],
        ),
        V1PolicyRule(
            api_groups=["apps"],
            resources=["deployments", "statefulsets", "daemonsets"],
            verbs=list(_CRUD_VERBS),
        ),
        V1PolicyRule(
            api_groups=["batch"],
            resources=["jobs", "cronjobs"],
            verbs=list(_CRUD_VERBS),
        ),
        V1PolicyRule(
            api_groups=["networking.k8s.io"],
            resources=["ingresses", "networkpolicies"],
            verbs=list(_CRUD_VERBS),
        ),
        # Core API group for Namespaces.
        V1PolicyRule(
            api_groups=[""],
            resources=["namespaces"],
            verbs=["get", "delete"],
        ),
    ]


def merge_rules(
    defaults: Sequence[V1PolicyRule],
    supplemental: Optional[Sequence[V1PolicyRule]] = None,
) -> List[V1PolicyRule]:
    """Concatenate supplemental rules after the defaults."""
    merged = list(defaults)
    if supplemental:
        merged.extend(supplemental)
    return merged


def load_supplemental_rules(path: Optional[str]) -> List[V1PolicyRule]:
    """
    Load additional rules from a YAML file.

    Args:
        path: Path to the rule file. None or an empty string means no file.

    Returns:
        The rules in file order; an empty list for no path or an empty file.

    Raises:
        RuleLoadError: If the file cannot be read or does not describe rules.
    """
    if not path:
        return []

    try:
        with open(path) as f:
            document = yaml.safe_load(f)
    except OSError as e:
        raise RuleLoadError(path, f"cannot read file: {e}") from e
    except yaml.YAMLError as e:
        raise RuleLoadError(path, f"invalid YAML: {e}") from e

    if document is None:
        return []
    if not isinstance(document, dict):
        raise RuleLoadError(path, "expected a mapping with a 'rules' list")

    raw_rules = document.get("rules") or []
    if not isinstance(raw_rules, list):
        raise RuleLoadError(path, "'rules' must be a list")

    rules = [_parse_rule(path, index, raw) for index, raw in enumerate(raw_rules)]
    logger.debug(f"Loaded {len(rules)} supplemental RBAC rule(s) from {path}")
    return rules


def _parse_rule(path: str, index: int, raw: Any) -> V1PolicyRule:
    if not isinstance(raw, dict):
        raise RuleLoadError(path, f"rule {index} must be a mapping")

    def string_list(key: str, required: bool = True) -> Optional[List[str]]:
        value = raw.get(key)
        if value is None:
            if required:
                raise RuleLoadError(path, f"rule {index} is missing '{key}'")
            return None
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise RuleLoadError(path, f"rule {index}: '{key}' must be a list of strings")
        return value

    non_resource_urls = string_list("nonResourceURLs", required=False)
    return V1PolicyRule(
        api_groups=string_list("apiGroups", required=non_resource_urls is None),
        resources=string_list("resources", required=non_resource_urls is None),
        verbs=string_list("verbs"),
        resource_names=string_list("resourceNames", required=False),
        non_resource_ur_ls=non_resource_urls,
    )
