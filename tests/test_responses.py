import io

import pytest

from deepseek_client.responses import (
    ChatCompletionResponse,
    Choice,
    Message,
    ResponseError,
    ToolCall,
    ToolCallFunction,
    Usage,
    api_error_from_body,
    handle_chat_completion_response,
    validate_chat_completion_response,
)


class _FailingReader:
    def __init__(self, message):
        self.message = message

    def read(self, *args):
        raise OSError(self.message)


VALID_BODY = b"""{
    "id": "chat-123",
    "object": "chat.completion",
    "created": 1677858242,
    "model": "deepseek-chat",
    "choices": [{
        "index": 0,
        "message": {"role": "assistant", "content": "Hello! How can I help you today?"},
        "finish_reason": "stop"
    }],
    "usage": {"prompt_tokens": 10, "completion_tokens": 20, "total_tokens": 30}
}"""


def test_valid_response():
    expected = ChatCompletionResponse(
        id="chat-123",
        object="chat.completion",
        created=1677858242,
        model="deepseek-chat",
        choices=[
            Choice(
                index=0,
                message=Message(role="assistant", content="Hello! How can I help you today?"),
                finish_reason="stop",
            )
        ],
        usage=Usage(prompt_tokens=10, completion_tokens=20, total_tokens=30),
    )
    assert handle_chat_completion_response(io.BytesIO(VALID_BODY)) == expected


def test_reasoning_content_present():
    body = b"""{
        "id": "chat-456", "object": "chat.completion", "created": 1677858243,
        "model": "deepseek-chat",
        "choices": [{"index": 0, "message": {"role": "assistant",
            "content": "Here is the answer.", "reasoning_content": "This is my reasoning."},
            "finish_reason": "stop"}],
        "usage": {"prompt_tokens": 5, "completion_tokens": 10, "total_tokens": 15}
    }"""
    expected = ChatCompletionResponse(
        id="chat-456",
        object="chat.completion",
        created=1677858243,
        model="deepseek-chat",
        choices=[
            Choice(
                index=0,
                message=Message(
                    role="assistant",
                    content="Here is the answer.",
                    reasoning_content="This is my reasoning.",
                ),
                finish_reason="stop",
            )
        ],
        usage=Usage(prompt_tokens=5, completion_tokens=10, total_tokens=15),
    )
    assert handle_chat_completion_response(io.BytesIO(body)) == expected


def test_reasoning_field_openrouter_style():
    body = b"""{
        "id": "chat-789", "object": "chat.completion", "created": 1677858244,
        "model": "deepseek-chat",
        "choices": [{"index": 0, "message": {"role": "assistant",
            "content": "Here is another answer.", "reasoning": "This is my OpenRouter reasoning."},
            "finish_reason": "stop"}],
        "usage": {"prompt_tokens": 6, "completion_tokens": 12, "total_tokens": 18}
    }"""
    result = handle_chat_completion_response(io.BytesIO(body))
    assert result.id == "chat-789"
    assert result.created == 1677858244
    assert result.choices[0].message == Message(
        role="assistant",
        content="Here is another answer.",
        reasoning_content="This is my OpenRouter reasoning.",
    )
    assert result.usage == Usage(prompt_tokens=6, completion_tokens=12, total_tokens=18)


def test_reasoning_content_preferred_over_reasoning():
    message = Message.from_dict(
        {"role": "assistant", "content": "x", "reasoning_content": "first", "reasoning": "second"}
    )
    assert message.reasoning_content == "first"


def test_null_reasoning_is_ignored():
    message = Message.from_dict({"role": "assistant", "content": "x", "reasoning": None})
    assert message.reasoning_content == ""


def test_tool_calls_are_parsed():
    message = Message.from_dict(
        {
            "role": "assistant",
            "content": "",
            "tool_calls": [
                {
                    "index": 0,
                    "id": "call_1",
                    "type": "function",
                    "function": {"name": "get_weather", "arguments": '{"city":"Paris"}'},
                }
            ],
        }
    )
    assert message.tool_calls == [
        ToolCall(
            index=0,
            id="call_1",
            type="function",
            function=ToolCallFunction(name="get_weather", arguments='{"city":"Paris"}'),
        )
    ]


def test_system_fingerprint_and_logprobs_kept():
    response = ChatCompletionResponse.from_dict(
        {"id": "a", "system_fingerprint": "fp_1", "choices": [{"logprobs": -0.5}]}
    )
    assert response.system_fingerprint == "fp_1"
    assert response.choices[0].logprobs == -0.5


def test_invalid_json():
    with pytest.raises(ResponseError) as info:
        handle_chat_completion_response(io.BytesIO(b'{"invalid": '))
    assert "failed to parse response JSON" in str(info.value)
    assert "unexpected end of JSON input" in str(info.value)


def test_empty_body():
    with pytest.raises(ResponseError) as info:
        handle_chat_completion_response(io.BytesIO(b""))
    assert "failed to parse response JSON" in str(info.value)
    assert "empty response body" in str(info.value)


def test_read_error():
    with pytest.raises(ResponseError) as info:
        handle_chat_completion_response(_FailingReader("read error"))
    assert "failed to read response body" in str(info.value)
    assert "read error" in str(info.value)


def test_missing_required_fields():
    body = b'{"created": 1677858242, "choices": [{}]}'
    with pytest.raises(ResponseError, match="invalid response"):
        handle_chat_completion_response(io.BytesIO(body))


def test_unexpected_field_types():
    body = b"""{
        "id": 123, "object": "chat.completion", "created": "invalid",
        "model": "deepseek-chat", "choices": [{"index": "zero"}],
        "usage": {"prompt_tokens": "ten"}
    }"""
    with pytest.raises(ResponseError, match="failed to parse response JSON"):
        handle_chat_completion_response(io.BytesIO(body))


def test_usage_rejects_wrong_type():
    with pytest.raises(TypeError):
        Usage.from_dict({"prompt_tokens": "ten"})


def test_usage_rejects_fractional_number():
    with pytest.raises(TypeError):
        Usage.from_dict({"total_tokens": 1.5})


def test_error_body_is_reported():
    body = b'{"error": {"message": "bad key"}}'
    with pytest.raises(ResponseError) as info:
        handle_chat_completion_response(io.BytesIO(body))
    assert str(info.value) == 'failed to parse response JSON: {"error": {"message": "bad key"}}'


def test_api_error_from_html_body():
    error = api_error_from_body(b"<!DOCTYPE html><html></html>")
    assert str(error).startswith("unexpected HTML response (model may not exist).")


def test_api_error_from_other_body():
    error = api_error_from_body("garbage")
    assert str(error) == "failed to parse response JSON: unexpected end of JSON input. garbage"


def test_api_error_from_empty_body():
    error = api_error_from_body(b"")
    assert str(error) == "failed to parse response JSON: empty response body"


def test_validate_none():
    with pytest.raises(ResponseError, match="nil response"):
        validate_chat_completion_response(None)


def test_validate_missing_id():
    with pytest.raises(ResponseError, match="missing response ID"):
        validate_chat_completion_response(ChatCompletionResponse(choices=[Choice()]))


def test_validate_no_choices():
    with pytest.raises(ResponseError, match="no choices in response"):
        validate_chat_completion_response(ChatCompletionResponse(id="chat-1"))


def test_validate_accepts_complete_response():
    response = ChatCompletionResponse(id="chat-1", choices=[Choice()])
    validate_chat_completion_response(response)
    assert response.id == "chat-1"
    assert len(response.choices) == 1