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
Tests for kube_api_helpers module.
"""

from kubernetes import client

from ket.common.kubernetes_cluster.kube_api_helpers import (
    _format_api_error_body,
    format_api_error,
    is_already_exists,
    is_not_found,
)


class TestFormatApiErrorBody:
    """Tests for _format_api_error_body."""

    def test_empty_body_returns_empty_string(self):
        assert _format_api_error_body(None) == ""
        assert _format_api_error_body("") == ""

    def test_valid_json_with_message_returns_details_line(self):
        body = '{"message": "Something went wrong"}'
        assert _format_api_error_body(body) == "Details: Something went wrong"

    def test_bytes_body_decoded_and_parsed(self):
        body = b'{"message": "Bytes message"}'
        assert _format_api_error_body(body) == "Details: Bytes message"

    def test_json_without_message_returns_empty(self):
        assert _format_api_error_body('{"code": 404}') == ""

    def test_invalid_json_returns_response_line(self):
        result = _format_api_error_body("not json")
        assert result.startswith("Response:")
        assert "not json" in result


class TestFormatApiError:
    def test_403_with_body(self):
        e = client.ApiException(status=403, reason="Forbidden")
        e.body = '{"message": "namespaces is forbidden"}'
        result = format_api_error(e)
        assert result.startswith("Access denied.")
        assert "Details: namespaces is forbidden" in result

    def test_unknown_status_without_body(self):
        e = client.ApiException(status=500, reason="Internal Server Error")
        result = format_api_error(e)
        assert "An error occurred while communicating with the cluster." in result
        assert "Reason: Internal Server Error (HTTP 500)." in result

    def test_non_api_exception(self):
        assert format_api_error(TimeoutError("read timed out")) == "read timed out"


def test_status_predicates():
    conflict = client.ApiException(status=409, reason="Conflict")
    missing = client.ApiException(status=404, reason="Not Found")

    assert is_already_exists(conflict)
    assert not is_already_exists(missing)
    assert is_not_found(missing)
    assert not is_not_found(conflict)
    assert not is_not_found(RuntimeError("404"))
