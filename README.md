# deepseek-client

Building blocks for talking to DeepSeek-compatible chat completion APIs and to a local Ollama server. It builds requests, sends them, parses responses, pulls JSON out of replies, estimates token counts and prepares messages that carry images.

## Install

```
pip install .
```

For the test suite:

```
pip install ".[test]"
pytest
```

## Modules

### `deepseek_client.request_builder`

`AuthedRequest(auth_token, base_url, path, body)` is a chainable builder that produces `urllib.request.Request` objects.

- `set_base_url` and `set_path` set the URL. The two are joined as they are, with no slash added or removed.
- `set_body_from_struct` serialises a value to compact JSON. Objects with a `to_dict` method and dataclasses are serialised too.
- `build` makes a POST request, `build_stream` makes a POST request with `cache-control: no-cache`, and `build_get` makes a GET request.
- Every request carries `Authorization: Bearer <token>` and `Content-Type: application/json`.
- `RequestBuildError` is raised when the base URL or the path is empty, or when the body cannot be serialised.

### `deepseek_client.transport`

- `send_request(request, opener=None, timeout=None)` sends a request and returns the response. Responses with an HTTP error status are returned, not raised. Connection failures raise `SendError`.
- `handle_timeout()` returns the timeout in seconds from the `DEEPSEEK_TIMEOUT` environment variable. The variable may also be set in a `.env` file in the working directory. The default is 300 seconds.
- `resolve_timeout(timeout)` falls back to `handle_timeout()` when `timeout` is `None` or not positive. It returns `None` when the result is not positive, which means no timeout.
- `parse_duration(text)` parses durations such as `30s`, `1m30s`, `500ms` or `1.5h` into seconds.
- A malformed duration raises `TimeoutConfigError`.

### `deepseek_client.responses`

This module holds the dataclasses of a chat completion response: `ChatCompletionResponse`, `Choice`, `Message`, `ToolCall`, `ToolCallFunction`, `Usage`, `Logprobs`, `ContentToken` and `TopLogprobToken`.

- `ChatCompletionResponse.from_dict` parses a decoded response and raises `TypeError` on wrongly typed fields.
- `Message.from_dict` takes `reasoning` when `reasoning_content` is empty.
- `handle_chat_completion_response(body_stream)` reads, parses and validates a body and raises `ResponseError` on failure.
- `validate_chat_completion_response` requires an ID and at least one choice.
- `api_error_from_body` describes an unparsable body, such as an empty body or an HTML page.

### `deepseek_client.json_extract`

`JSONExtractor(schema=None)` finds JSON in model output.

- `extract_json(response)` returns the decoded value from the first choice. The JSON may be the whole reply, sit inside a fenced code block, or be the first object or array embedded in text.
- If a schema is given, its `type` (`object` or `array`) is checked.
- `extract_json_content`, `validate_json`, `find_matching_brace` and `find_matching_bracket` are also public.
- Failures raise `JSONExtractionError`.

### `deepseek_client.tokens`

`estimate_token_count(text)` gives a rough estimate, never below 1:

- a Han character counts about 0.6 tokens;
- a letter, digit, punctuation mark or symbol counts about 0.3;
- whitespace counts nothing.

### `deepseek_client.models`

- Model name constants: `DEEPSEEK_CHAT`, `DEEPSEEK_CODER`, `DEEPSEEK_REASONER`, and Azure and OpenRouter names.
- `list_all_models(auth_token, opener=None, base_url="https://api.deepseek.com/")` returns an `APIModels` listing of `Model` entries.
- It raises `ResponseError` on an error status or an unparsable body.

### `deepseek_client.images`

- Dataclasses for content that can hold images: `ImageContent`, `ContentItem`, `ChatCompletionMessageWithImage`, `ChatCompletionRequestWithImage` and `StreamChatCompletionRequestWithImage`. Each has a `to_dict` that leaves out unset optional fields.
- `new_image_message(role, text, image_url)` builds a message with a text item followed by an image item.
- `image_to_base64(image_url)` reads a local file, or downloads an `http://`/`https://` URL, and returns a `data:image/...;base64,` URL.
- Only `.png`, `.jpg`, `.jpeg` and `.webp` are accepted. Failures raise `ImageError`.

### `deepseek_client.ollama`

- `is_ollama_running(url)` checks that the server answers `200 OK`. The default URL is `http://localhost:11434/api/tags`.
- `convert_messages_with_image` turns messages with data-URL images into `OllamaMessage` objects.
- `create_ollama_chat_completion_with_image(request, base_url)` sends a non-streamed request and returns a `ChatCompletionResponse`.
- `create_ollama_chat_completion_stream_with_image(request, base_url)` returns an `OllamaStream`. Its `recv()` returns each chunk as a dict with `model` and `choices[...]["delta"]`, and raises `EOFError` at the end. The stream can also be iterated and used as a context manager.
- `chat_response_to_completion` converts a decoded Ollama reply.
- Failures raise `OllamaError`.

## Examples

```python
from deepseek_client.json_extract import JSONExtractor
from deepseek_client.responses import ChatCompletionResponse

response = ChatCompletionResponse.from_dict({
    "id": "chat-1",
    "choices": [{"message": {"role": "assistant",
                             "content": "```json\n{\"name\": \"test\"}\n```"}}],
})
print(JSONExtractor().extract_json(response))  # {'name': 'test'}
```

```python
from deepseek_client.request_builder import AuthedRequest
from deepseek_client.responses import handle_chat_completion_response
from deepseek_client.transport import resolve_timeout, send_request

request = (
    AuthedRequest("placeholder")
    .set_base_url("https://api.example.com/")
    .set_path("chat/completions")
    .set_body_from_struct({"model": "deepseek-chat",
                           "messages": [{"role": "user", "content": "Hi"}]})
    .build()
)
with send_request(request, timeout=resolve_timeout(None)) as response:
    completion = handle_chat_completion_response(response)
```

## What it does not do

- There is no ready-made client object with a single call for a chat completion against the DeepSeek API. Requests are assembled with `AuthedRequest`, sent with `send_request` and parsed with `handle_chat_completion_response`, as shown above.
- There is no parser for streamed (server-sent events) DeepSeek responses. Only Ollama streams are read, through `OllamaStream`.
- The Ollama functions take requests of the image-capable types. Plain-text messages are passed as `ChatCompletionMessageWithImage` with a string `content`.
- There is no command-line program.