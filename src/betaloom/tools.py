"""Request body rewriting for the Messages API.

Every /v1/messages-shaped body passes through here before it goes upstream.
The edits are small and fixed:

- server_tool_use blocks get their `input` coerced back into a dict
  (clients sometimes echo it back as a JSON string, or null)
- every tool may be called from the code execution sandbox
- mcp__ tools and MCP servers are loaded lazily via tool search
- the code execution and BM25 tool search tools are added up front

Nothing in here raises on a malformed body. A field we don't understand is
left alone, or replaced with an empty value when the API would reject it.
"""

import copy
import json
import logging
from typing import Any

from .config import DEFAULT_SETTINGS, Settings

logger = logging.getLogger(__name__)

# Models that don't support the beta tools
LIGHTWEIGHT_MODEL_MARKER = "haiku"

# Tool names from MCP servers, as Claude Code names them
MCP_TOOL_PREFIX = "mcp__"

CODE_EXECUTION_TYPE = "code_execution_20250825"

CODE_EXECUTION_TOOL = {
    "type": CODE_EXECUTION_TYPE,
    "name": "code_execution",
}

# bm25 works better than regex for most cases
TOOL_SEARCH_TOOL = {
    "type": "tool_search_tool_bm25_20251119",
    "name": "tool_search_tool_bm25",
}


def _coerce_input(value: Any) -> dict:
    """Turn whatever a server_tool_use block carries into a dict."""
    if isinstance(value, dict):
        return value
    if isinstance(value, str):
        try:
            parsed = json.loads(value)
        except json.JSONDecodeError:
            return {}
        return parsed if isinstance(parsed, dict) else {}
    return {}


def fix_server_tool_use_input(body: dict) -> int:
    """Make sure every server_tool_use block has a dict `input`.

    Mutates body in place. Returns the number of blocks that were changed.
    """
    messages = body.get("messages")
    if not isinstance(messages, list):
        return 0

    fixed = 0
    for message in messages:
        if not isinstance(message, dict):
            continue
        content = message.get("content")
        if not isinstance(content, list):
            continue

        for block in content:
            if not isinstance(block, dict) or block.get("type") != "server_tool_use":
                continue
            original = block.get("input")
            if isinstance(original, dict):
                continue
            block["input"] = _coerce_input(original)
            fixed += 1

    if fixed:
        logger.debug(f"Fixed input on {fixed} server_tool_use block(s)")
    return fixed


def is_lightweight_model(model: Any) -> bool:
    """True for models that get no tool rewriting at all (haiku)."""
    return isinstance(model, str) and LIGHTWEIGHT_MODEL_MARKER in model


def annotate_tool(tool: dict, code_execution: bool) -> None:
    """Mark a single tool for deferred loading and programmatic calling."""
    name = tool.get("name")
    if isinstance(name, str) and name.startswith(MCP_TOOL_PREFIX):
        tool["defer_loading"] = True

    if code_execution:
        callers = tool.get("allowed_callers")
        callers = list(callers) if isinstance(callers, list) else []
        if CODE_EXECUTION_TYPE not in callers:
            callers.append(CODE_EXECUTION_TYPE)
        tool["allowed_callers"] = callers


def mcp_toolset(server_name: str) -> dict:
    """A deferred-loading toolset entry for one MCP server."""
    return {
        "type": "mcp_toolset",
        "mcp_server_name": server_name,
        "default_config": {
            "defer_loading": True,
        },
    }


def expand_mcp_servers(tools: list, mcp_servers: Any) -> int:
    """Insert one mcp_toolset per named MCP server at the front of tools.

    Each insertion goes to index 0, so the last server ends up first.
    """
    if not isinstance(mcp_servers, list):
        return 0

    expanded = 0
    for server in mcp_servers:
        if not isinstance(server, dict) or not server.get("name"):
            continue
        tools.insert(0, mcp_toolset(server["name"]))
        expanded += 1
    return expanded


def transform_body(
    body: Any,
    settings: Settings = DEFAULT_SETTINGS,
    add_beta_tools: bool = True,
) -> Any:
    """Return a copy of a Messages API body, ready to send upstream.

    Args:
        body: Parsed JSON body. Anything that isn't a dict is returned as-is.
        settings: Supplies the code execution toggle.
        add_beta_tools: Inject the code execution and tool search tools.
            Off for count_tokens.

    Returns:
        The transformed copy. The caller's body is never modified.
    """
    if not isinstance(body, dict):
        return body

    body = copy.deepcopy(body)

    fix_server_tool_use_input(body)

    if is_lightweight_model(body.get("model")):
        return body

    if body.get("tools") is None:
        body["tools"] = []
    tools = body["tools"]
    if not isinstance(tools, list):
        logger.warning(f"Ignoring non-list tools field ({type(tools).__name__})")
        return body

    for tool in tools:
        if isinstance(tool, dict):
            annotate_tool(tool, settings.code_execution)

    expanded = expand_mcp_servers(tools, body.get("mcp_servers"))

    if add_beta_tools:
        tools.insert(0, dict(TOOL_SEARCH_TOOL))
        if settings.code_execution:
            tools.insert(0, dict(CODE_EXECUTION_TOOL))

    logger.debug(
        f"Transformed body: model={body.get('model', '?')}, tools={len(tools)}, "
        f"mcp_toolsets={expanded}, beta_tools={add_beta_tools}"
    )
    return body


def transform_batch(body: Any, settings: Settings = DEFAULT_SETTINGS) -> Any:
    """Return a copy of a batch body with every request's params transformed.

    Items without a dict `params` are passed through untouched.
    """
    if not isinstance(body, dict):
        return body

    body = copy.deepcopy(body)
    requests = body.get("requests")
    if not isinstance(requests, list):
        return body

    for item in requests:
        if isinstance(item, dict) and isinstance(item.get("params"), dict):
            item["params"] = transform_body(item["params"], settings, add_beta_tools=True)

    return body
