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
Small helpers for naming cluster resources and resolving the invoking user.
"""

import os
import re
import uuid
from typing import Optional, Tuple

from ...errors import ConfigError, IdentityError
from .constants import DEFAULT_NAMESPACE_PREFIX, NAMESPACE_SUFFIX_LENGTH

_NON_ALNUM = re.compile(r"[^a-zA-Z0-9]")
_HYPHEN_RUN = re.compile(r"-+")


def to_kube_safe(value: str) -> str:
    """
    Convert a string to a Kubernetes-safe form.

    Every character outside [a-zA-Z0-9] becomes a hyphen, runs of hyphens are
    collapsed and leading/trailing hyphens are trimmed. Case is preserved.

    >>> to_kube_safe("My_Test!!Run")
    'My-Test-Run'
    """
    replaced = _NON_ALNUM.sub("-", value)
    return _HYPHEN_RUN.sub("-", replaced).strip("-")


def generate_namespace_name(
    namespace: Optional[str] = None, prefix: Optional[str] = None
) -> str:
    """
    Return the namespace a run should use.

    An explicit namespace is returned untouched. Otherwise the prefix (or the
    default prefix) is sanitised, lower-cased and suffixed with a short random id.
    """
    if namespace:
        return namespace

    clean_prefix = to_kube_safe(prefix or DEFAULT_NAMESPACE_PREFIX).lower()
    if not clean_prefix:
        raise ConfigError(
            f"namespace prefix {prefix!r} has no usable characters after sanitising"
        )
    suffix = uuid.uuid4().hex[:NAMESPACE_SUFFIX_LENGTH]
    return f"{clean_prefix}-{suffix}"


def current_user_ids() -> Tuple[int, int]:
    """Return the (uid, gid) of the invoking user."""
    try:
        return os.getuid(), os.getgid()
    except (AttributeError, OSError) as e:
        raise IdentityError(f"failed to get current user IDs: {e}") from e
