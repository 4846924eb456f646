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
This sub-module exists primarily to be used internally for Kubernetes API
error inspection and wrapping.
"""

import json

from kubernetes import client


ERROR_MESSAGES = {
    401: "Access to the API is unauthorized. Check your credentials or permissions.",
    403: "Access denied. Ensure your role has sufficient permissions and that "
    "you are logged in to the correct cluster.",
    404: "The requested resource could not be located.",
    409: "A resource with the same name already exists.",
    422: "The request was rejected because the resource definition is invalid.",
}

ERROR_MESSAGES_FALLBACK = "An error occurred while communicating with the cluster."


def _format_api_error_body(body) -> str:
    """
    Extract a short, readable detail from a Kubernetes Status API response body.
    Returns a single line like "Details: <message>" instead of raw JSON.
    """
    if not body:
        return ""
    try:
        raw = body.decode() if isinstance(body, bytes) else body
        data = json.loads(raw)
        msg = data.get("message")
        if not msg:
            return ""
        return f"Details: {msg}"
    except (json.JSONDecodeError, AttributeError, TypeError):
        return f"Response: {body}"


def is_already_exists(e: Exception) -> bool:
    return isinstance(e, client.ApiException) and e.status == 409


def is_not_found(e: Exception) -> bool:
    return isinstance(e, client.ApiException) and e.status == 404


def format_api_error(e: Exception) -> str:
    """
    Render an exception raised by the Kubernetes client as one readable line.

    ApiExceptions get the status specific message followed by the server's
    detail (or the reason and HTTP status when the body is empty). Any other
    exception is rendered with str().
    """
    if not isinstance(e, client.ApiException):
        return str(e)

    status_code = getattr(e, "status", None)
    message = ERROR_MESSAGES.get(status_code, ERROR_MESSAGES_FALLBACK)
    detail = _format_api_error_body(e.body)
    if detail:
        return f"{message} {detail}"
    status_info = f"Reason: {e.reason}"
    if status_code is not None:
        status_info += f" (HTTP {status_code})"
    return f"{message} {status_info}."
