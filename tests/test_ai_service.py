"""Tests for the retrying chat client."""

import httpx
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from mystery_maker.ai_service import (
    HISTORY_WINDOWS,
    MARKDOWN_INSTRUCTION,
    AIServiceError,
    extract_content,
    get_ai_response,
    normalize_headings,
    window_history,
)
from mystery_maker.config import Settings


def _mock_response(body: dict, status: int = 200) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status
    resp.json.return_value = body
    resp.raise_for_status = MagicMock(
        side_effect=None if status < 400 else httpx.HTTPStatusError(
            "", request=MagicMock(), response=resp
        )
    )
    return resp


def _reply(text: str) -> dict:
    return {"choices": [{"message": {"content": text, "role": "assistant"}}]}


SETTINGS = Settings(proxy_url="https://primary.example.com/chat", fallback_proxy_url="https://fallback.example.com/chat")


@pytest.fixture(autouse=True)
def no_backoff():
    with patch("asyncio.sleep", AsyncMock()) as sleep:
        yield sleep


def _history(n: int) -> list[dict]:
    return [
        {"role": "user" if i % 2 == 0 else "assistant", "content": f"m{i}"}
        for i in range(n)
    ]


class TestHelpers:
    def test_window_keeps_first_and_recent(self) -> None:
        msgs = _history(30)
        window = window_history(msgs, 10)
        assert len(window) == 10
        assert window[0]["content"] == "m0"
        assert window[-1]["content"] == "m29"
        assert window[1]["content"] == "m21"

    def test_each_retry_window_sends_exactly_that_many(self) -> None:
        msgs = _history(30)
        for limit in HISTORY_WINDOWS[1:]:
            window = window_history(msgs, limit)
            assert len(window) == limit
            assert window[0] == msgs[0]
            assert window[1:] == msgs[-(limit - 1):]

    def test_window_none_or_short_is_unchanged(self) -> None:
        msgs = _history(5)
        assert window_history(msgs, None) == msgs
        assert window_history(msgs, 10) == msgs

    def test_extract_content_both_shapes(self) -> None:
        assert extract_content(_reply("a")) == "a"
        assert extract_content({"content": [{"type": "text", "text": "b"}]}) == "b"
        with pytest.raises(AIServiceError):
            extract_content({"unexpected": True})

    def test_normalize_headings(self) -> None:
        text = "Intro\nVICTIM: Lord Black\nCLUES: a glove\nThe VICTIM: stays"
        assert normalize_headings(text) == "Intro\n## VICTIM: Lord Black\n## CLUES: a glove\nThe VICTIM: stays"


async def test_success_first_attempt() -> None:
    mock_post = AsyncMock(return_value=_mock_response(_reply("SOLUTION: the butler")))
    with patch("httpx.AsyncClient.post", mock_post):
        result = await get_ai_response(_history(1), "paid", SETTINGS)
    assert result == "## SOLUTION: the butler"
    assert mock_post.call_count == 1
    assert mock_post.call_args[0][0] == SETTINGS.proxy_url
    body = mock_post.call_args.kwargs["json"]
    assert body["promptVersion"] == "paid"
    assert body["messages"][-1] == {"role": "user", "content": MARKDOWN_INSTRUCTION}


async def test_no_markdown_instruction_after_assistant_message() -> None:
    mock_post = AsyncMock(return_value=_mock_response(_reply("ok")))
    with patch("httpx.AsyncClient.post", mock_post):
        await get_ai_response(_history(2), "free", SETTINGS)
    assert mock_post.call_args.kwargs["json"]["messages"][-1]["content"] == "m1"


async def test_retries_alternate_to_fallback_and_shrink_history(no_backoff) -> None:
    mock_post = AsyncMock(side_effect=[
        _mock_response({}, status=502),
        _mock_response(_reply("recovered")),
    ])
    with patch("httpx.AsyncClient.post", mock_post):
        result = await get_ai_response(_history(41), "free", SETTINGS)
    assert result == "recovered"
    urls = [call[0][0] for call in mock_post.call_args_list]
    assert urls == [SETTINGS.proxy_url, SETTINGS.fallback_proxy_url]
    sizes = [len(call.kwargs["json"]["messages"]) for call in mock_post.call_args_list]
    assert sizes == [42, 20]
    no_backoff.assert_awaited_once_with(1.0)


async def test_without_fallback_uses_primary_every_time() -> None:
    settings = Settings(proxy_url="https://primary.example.com/chat")
    mock_post = AsyncMock(return_value=_mock_response({}, status=500))
    with patch("httpx.AsyncClient.post", mock_post):
        await get_ai_response(_history(1), "free", settings)
    assert {call[0][0] for call in mock_post.call_args_list} == {"https://primary.example.com/chat"}


async def test_gives_up_with_error_string(no_backoff) -> None:
    mock_post = AsyncMock(return_value=_mock_response({}, status=500))
    with patch("httpx.AsyncClient.post", mock_post):
        result = await get_ai_response(_history(1), "free", SETTINGS, max_attempts=3)
    assert mock_post.call_count == 3
    assert result == "There was an error: API returned status 500. Please try again."
    assert [c.args[0] for c in no_backoff.await_args_list] == [1.0, 2.0]


async def test_network_error_message() -> None:
    mock_post = AsyncMock(side_effect=httpx.ConnectError("refused"))
    with patch("httpx.AsyncClient.post", mock_post):
        result = await get_ai_response(_history(1), "free", SETTINGS)
    assert "network error" in result
    assert "internet connection" in result


async def test_invalid_json_body_is_retried() -> None:
    bad = _mock_response({})
    bad.json.side_effect = ValueError("not json")
    mock_post = AsyncMock(side_effect=[bad, _mock_response(_reply("fine"))])
    with patch("httpx.AsyncClient.post", mock_post):
        assert await get_ai_response(_history(1), "free", SETTINGS) == "fine"
