import json

import pytest

from deltaweave.decoder import ResponsesDecoder


# ---------------------------------------------------------------------------
# SSE builders (mirror the Responses API wire format)
# ---------------------------------------------------------------------------

def sse_record(event: dict | str) -> str:
    """One ``data:`` record; strings are sent verbatim."""
    data = event if isinstance(event, str) else json.dumps(event)
    return f"data: {data}\n\n"


def sse_stream(*events: dict | str, done: bool = True) -> bytes:
    """Encode events as an SSE byte stream, ending with ``[DONE]``."""
    body = "".join(sse_record(e) for e in events)
    if done:
        body += "data: [DONE]\n\n"
    return body.encode("utf-8")


def text_delta(delta: str, item_id: str = "msg_1", output_index: int = 0) -> dict:
    return {
        "type": "response.output_text.delta",
        "item_id": item_id,
        "output_index": output_index,
        "delta": delta,
    }


def text_done(text: str, item_id: str = "msg_1", output_index: int = 0) -> dict:
    return {
        "type": "response.output_text.done",
        "item_id": item_id,
        "output_index": output_index,
        "text": text,
    }


def function_call_item(
    item_id: str | None = None,
    call_id: str | None = None,
    name: str | None = None,
    arguments: str | None = None,
) -> dict:
    item = {"type": "function_call"}
    if item_id is not None:
        item["id"] = item_id
    if call_id is not None:
        item["call_id"] = call_id
    if name is not None:
        item["name"] = name
    if arguments is not None:
        item["arguments"] = arguments
    return item


def message_item(text: str, item_id: str = "msg_1") -> dict:
    return {
        "type": "message",
        "id": item_id,
        "role": "assistant",
        "status": "completed",
        "content": [{"type": "output_text", "text": text}],
    }


def item_added(item: dict, output_index: int | None = None) -> dict:
    event = {"type": "response.output_item.added", "item": item}
    if output_index is not None:
        event["output_index"] = output_index
    return event


def item_done(item: dict, output_index: int | None = None) -> dict:
    event = {"type": "response.output_item.done", "item": item}
    if output_index is not None:
        event["output_index"] = output_index
    return event


def arguments_delta(delta: str, **ids) -> dict:
    return {"type": "response.function_call_arguments.delta", "delta": delta, **ids}


def arguments_done(arguments: str, **fields) -> dict:
    return {
        "type": "response.function_call_arguments.done",
        "arguments": arguments,
        **fields,
    }


def usage(input_tokens: int = 1, output_tokens: int = 2, total_tokens: int = 3) -> dict:
    return {
        "input_tokens": input_tokens,
        "output_tokens": output_tokens,
        "total_tokens": total_tokens,
    }


def completed(
    output: list[dict] | None = None,
    response_usage: dict | None = None,
    event_type: str = "response.completed",
) -> dict:
    return {
        "type": event_type,
        "response": {
            "id": "resp_1",
            "object": "response",
            "created_at": 0,
            "status": "completed",
            "model": "gpt-5-mini",
            "output": output or [],
            "usage": response_usage or usage(),
        },
    }


def drain(decoder: ResponsesDecoder) -> list:
    """Pull every chunk the decoder can currently produce."""
    chunks = []
    while (chunk := decoder.next_chunk()) is not None:
        chunks.append(chunk)
    return chunks


def decode(data: bytes) -> list:
    """Feed *data* in one go, end the input and pull everything."""
    decoder = ResponsesDecoder()
    decoder.feed(data)
    decoder.end_input()
    return drain(decoder)


@pytest.fixture
def decoder():
    return ResponsesDecoder()
