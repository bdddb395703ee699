"""
Relay tests: the FastAPI app against a mocked upstream
"""

import json

import httpx
import pytest

from betaloom.config import DEFAULT_SETTINGS
from betaloom.headers import BETA_FLAGS

UPSTREAM = DEFAULT_SETTINGS.upstream_url

MESSAGE_RESPONSE = {"id": "msg_1", "type": "message", "content": [{"type": "text", "text": "hi"}]}


def sent_body(route):
    return json.loads(route.calls.last.request.content)


class TestMessagesRoute:
    """Tests for POST /v1/messages"""

    def test_body_headers_and_query(self, client, respx_mock):
        route = respx_mock.post(f"{UPSTREAM}/v1/messages").mock(
            return_value=httpx.Response(200, json=MESSAGE_RESPONSE)
        )

        response = client.post(
            "/v1/messages",
            json={"model": "claude-x", "messages": []},
            headers={"x-api-key": "sk-test", "anthropic-version": "2023-06-01"},
        )

        assert response.status_code == 200
        assert response.json() == MESSAGE_RESPONSE

        upstream = route.calls.last.request
        assert upstream.url.params["beta"] == "true"
        assert upstream.headers["anthropic-beta"] == BETA_FLAGS
        assert upstream.headers["x-api-key"] == "sk-test"
        assert upstream.headers["host"] == "api.anthropic.com"
        assert [t["name"] for t in sent_body(route)["tools"]] == ["code_execution", "tool_search_tool_bm25"]

    def test_existing_query_preserved_and_beta_overwritten(self, client, respx_mock):
        route = respx_mock.post(f"{UPSTREAM}/v1/messages").mock(return_value=httpx.Response(200, json={}))

        client.post("/v1/messages?beta=false&foo=bar", json={"model": "claude-x"})

        params = route.calls.last.request.url.params
        assert params.get_list("beta") == ["true"]
        assert params["foo"] == "bar"

    def test_haiku_forwarded_without_tools(self, client, respx_mock):
        route = respx_mock.post(f"{UPSTREAM}/v1/messages").mock(return_value=httpx.Response(200, json={}))

        client.post("/v1/messages", json={"model": "claude-haiku-x"})

        assert sent_body(route) == {"model": "claude-haiku-x"}

    def test_server_tool_use_input_repaired(self, client, respx_mock):
        route = respx_mock.post(f"{UPSTREAM}/v1/messages").mock(return_value=httpx.Response(200, json={}))
        body = {
            "model": "claude-x",
            "messages": [{"role": "assistant", "content": [{"type": "server_tool_use", "input": '{"a":1}'}]}],
        }

        client.post("/v1/messages", json=body)

        assert sent_body(route)["messages"][0]["content"][0]["input"] == {"a": 1}

    def test_invalid_json_forwarded_as_is(self, client, respx_mock):
        route = respx_mock.post(f"{UPSTREAM}/v1/messages").mock(
            return_value=httpx.Response(400, json={"type": "error"})
        )

        response = client.post(
            "/v1/messages", content=b"{not json", headers={"content-type": "application/json"}
        )

        assert response.status_code == 400
        assert route.calls.last.request.content == b"{not json"

    def test_streaming_response_relayed(self, client, respx_mock):
        events = (
            b'event: message_start\ndata: {"type": "message_start"}\n\n'
            b'event: message_stop\ndata: {"type": "message_stop"}\n\n'
        )
        respx_mock.post(f"{UPSTREAM}/v1/messages").mock(
            return_value=httpx.Response(
                200,
                content=events,
                headers={
                    "content-type": "text/event-stream",
                    "content-encoding": "identity",
                    "request-id": "req_123",
                },
            )
        )

        with client.stream("POST", "/v1/messages", json={"model": "claude-x", "stream": True}) as response:
            received = b"".join(response.iter_bytes())

        assert received == events
        assert response.headers["content-type"] == "text/event-stream"
        assert response.headers["request-id"] == "req_123"
        assert "content-encoding" not in response.headers

    def test_upstream_error_status_relayed(self, client, respx_mock):
        error = {"type": "error", "error": {"type": "rate_limit_error", "message": "slow down"}}
        respx_mock.post(f"{UPSTREAM}/v1/messages").mock(
            return_value=httpx.Response(429, json=error, headers={"retry-after": "30"})
        )

        response = client.post("/v1/messages", json={"model": "claude-x"})

        assert response.status_code == 429
        assert response.json() == error
        assert response.headers["retry-after"] == "30"

    def test_network_failure_returns_500(self, client, respx_mock):
        respx_mock.post(f"{UPSTREAM}/v1/messages").mock(side_effect=httpx.ConnectError("Connection refused"))

        response = client.post("/v1/messages", json={"model": "claude-x"})

        assert response.status_code == 500
        assert response.json() == {"error": "Connection refused"}

    @pytest.mark.respx(assert_all_called=False)
    def test_oversized_body_rejected(self, small_client, respx_mock):
        route = respx_mock.post(f"{UPSTREAM}/v1/messages").mock(return_value=httpx.Response(200, json={}))

        response = small_client.post("/v1/messages", json={"model": "claude-x", "padding": "x" * 200})

        assert response.status_code == 413
        assert "error" in response.json()
        assert not route.called


class TestCountTokensRoute:
    """Tests for POST /v1/messages/count_tokens"""

    def test_no_tool_injection(self, client, respx_mock):
        route = respx_mock.post(f"{UPSTREAM}/v1/messages/count_tokens").mock(
            return_value=httpx.Response(200, json={"input_tokens": 12})
        )

        response = client.post(
            "/v1/messages/count_tokens",
            json={"model": "claude-x", "tools": [{"name": "mcp__a__b"}], "messages": []},
        )

        assert response.json() == {"input_tokens": 12}
        assert route.calls.last.request.url.params["beta"] == "true"
        tools = sent_body(route)["tools"]
        assert len(tools) == 1
        assert tools[0]["defer_loading"] is True


class TestBatchesRoute:
    """Tests for POST /v1/messages/batches"""

    def test_each_request_transformed(self, client, respx_mock):
        route = respx_mock.post(f"{UPSTREAM}/v1/messages/batches").mock(
            return_value=httpx.Response(200, json={"id": "msgbatch_1"})
        )
        batch = {
            "requests": [
                {"custom_id": "a", "params": {"model": "claude-x", "messages": []}},
                {"custom_id": "b", "params": None},
                {"custom_id": "c", "params": {"model": "claude-y", "messages": []}},
            ]
        }

        client.post("/v1/messages/batches", json=batch)

        requests = sent_body(route)["requests"]
        assert route.calls.last.request.url.params["beta"] == "true"
        assert len(requests[0]["params"]["tools"]) == 2
        assert requests[1]["params"] is None
        assert len(requests[2]["params"]["tools"]) == 2


class TestPassthroughRoute:
    """Tests for every other route"""

    def test_get_forwarded_without_body_or_beta(self, client, respx_mock):
        route = respx_mock.get(f"{UPSTREAM}/v1/models").mock(
            return_value=httpx.Response(200, json={"data": []})
        )

        response = client.get("/v1/models?limit=5", headers={"anthropic-beta": "files-api-2025-04-14"})

        assert response.json() == {"data": []}
        upstream = route.calls.last.request
        assert "beta" not in upstream.url.params
        assert upstream.url.params["limit"] == "5"
        assert upstream.content == b""
        assert upstream.headers["anthropic-beta"] == f"files-api-2025-04-14,{BETA_FLAGS}"

    def test_query_forwarded_byte_for_byte(self, client, respx_mock):
        route = respx_mock.get(f"{UPSTREAM}/v1/models").mock(return_value=httpx.Response(200, json={}))

        client.get("/v1/models?flag&q=a%20b&x=%2B")

        assert route.calls.last.request.url.query == b"flag&q=a%20b&x=%2B"

    def test_encoded_slash_stays_in_segment(self, client, respx_mock):
        route = respx_mock.get(url__regex=r"^https://api\.anthropic\.com/v1/files/").mock(
            return_value=httpx.Response(200, json={})
        )

        client.get("/v1/files/a%2Fb")

        assert route.calls.last.request.url.raw_path == b"/v1/files/a%2Fb"

    def test_get_messages_is_passthrough(self, client, respx_mock):
        route = respx_mock.get(f"{UPSTREAM}/v1/messages/batches/msgbatch_1").mock(
            return_value=httpx.Response(200, json={"id": "msgbatch_1"})
        )

        client.get("/v1/messages/batches/msgbatch_1")

        assert "beta" not in route.calls.last.request.url.params

    def test_other_body_forwarded_untouched(self, client, respx_mock):
        route = respx_mock.post(f"{UPSTREAM}/v1/files").mock(return_value=httpx.Response(200, json={}))

        client.post("/v1/files", content=b'{"model": "claude-x"}', headers={"content-type": "application/json"})

        assert route.calls.last.request.content == b'{"model": "claude-x"}'

    def test_delete_forwarded(self, client, respx_mock):
        route = respx_mock.delete(f"{UPSTREAM}/v1/files/file_1").mock(
            return_value=httpx.Response(200, json={"id": "file_1", "type": "file_deleted"})
        )

        response = client.delete("/v1/files/file_1")

        assert response.status_code == 200
        assert route.called
