from __future__ import annotations

from pydantic import TypeAdapter

from tilt_agent.events import (
    MCPToolCallEvent,
    MessageEvent,
    ToolCallEvent,
    ToolCallOutputEvent,
    project_events,
    render_event,
)
from tilt_agent.history import (
    AssistantMessage,
    FunctionCall,
    FunctionCallOutput,
    HistoryItem,
    UserMessage,
    to_input,
    unpaired_calls,
)

HISTORY = [
    UserMessage(content="list my files and remember them"),
    FunctionCall(call_id="c1", name="files_---_list", arguments='{"path": "/"}'),
    FunctionCallOutput(call_id="c1", output='"a.txt"'),
    FunctionCall(call_id="c2", name="write_memory", arguments='{"key": "files"}'),
    FunctionCallOutput(call_id="c2", output='{"message": "ok"}'),
    AssistantMessage(content="Done."),
]


def test_projection_maps_each_item_in_order() -> None:
    assert project_events(HISTORY) == [
        MessageEvent(role="user", content="list my files and remember them"),
        MCPToolCallEvent(server_name="files", tool_name="list", arguments='{"path": "/"}'),
        ToolCallOutputEvent(output='"a.txt"'),
        ToolCallEvent(function_name="write_memory", arguments='{"key": "files"}'),
        ToolCallOutputEvent(output='{"message": "ok"}'),
        MessageEvent(role="assistant", content="Done."),
    ]


def test_projection_is_deterministic_and_does_not_touch_history() -> None:
    history = list(HISTORY)
    assert project_events(history) == project_events(history)
    assert history == HISTORY
    assert project_events([]) == []


def test_malformed_namespaced_name_is_a_plain_tool_call() -> None:
    events = project_events([FunctionCall(call_id="c", name="a_---_b_---_c", arguments="{}")])
    assert events == [ToolCallEvent(function_name="a_---_b_---_c", arguments="{}")]


def test_render_event() -> None:
    rendered = [render_event(event) for event in project_events(HISTORY)]
    assert rendered[0] == "list my files and remember them"
    assert rendered[1] == 'MCP Tool call: files/list({"path": "/"})'
    assert rendered[2] == 'Tool output: "a.txt"'
    assert rendered[3] == 'Tool call: write_memory({"key": "files"})'


def test_history_wire_shape() -> None:
    assert to_input(HISTORY[:3]) == [
        {"type": "message", "role": "user", "content": "list my files and remember them"},
        {"type": "function_call", "call_id": "c1", "name": "files_---_list", "arguments": '{"path": "/"}'},
        {"type": "function_call_output", "call_id": "c1", "output": '"a.txt"'},
    ]


def test_history_validates_from_stored_json() -> None:
    dumped = [item.model_dump() for item in HISTORY]
    assert TypeAdapter(list[HistoryItem]).validate_python(dumped) == HISTORY


def test_unpaired_calls() -> None:
    assert unpaired_calls(HISTORY) == []
    dangling = [
        UserMessage(content="q"),
        FunctionCall(call_id="c1", name="read_memory"),
        AssistantMessage(content="a"),
        FunctionCallOutput(call_id="c9", output="late"),
    ]
    assert unpaired_calls(dangling) == ["c1", "c9"]
