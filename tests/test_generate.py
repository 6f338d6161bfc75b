"""Tests for outline generation."""

import itertools
import json
from unittest.mock import MagicMock, patch

import httpx
import pytest
from openai import APIConnectionError, APITimeoutError, InternalServerError, RateLimitError

from moge.generate.stream import (
    GenerationError,
    OutlineRequest,
    SensitiveContentError,
    StreamEvent,
    build_messages,
    check_request,
    generate_outline,
    stream_outline,
)
from moge.sensitive import SensitiveFilter

OUTLINE_CHUNKS = [
    "### 第一卷 初入江湖\n",
    "#### 第一章 初见\n",
    "##### 场景1 主角登场\n",
    "",
    "##### 场景2 偶遇师父\n",
]

API_REQUEST = httpx.Request("POST", "https://api.example.com/v1/chat/completions")


def make_chunk(content: str | None) -> MagicMock:
    return MagicMock(choices=[MagicMock(delta=MagicMock(content=content))])


def make_stream(contents: list[str | None]) -> MagicMock:
    stream = MagicMock()
    stream.__iter__.return_value = iter([make_chunk(c) for c in contents])
    return stream


def make_client(*streams_or_errors) -> MagicMock:
    client = MagicMock()
    client.chat.completions.create.side_effect = list(streams_or_errors)
    return client


@pytest.fixture
def request_() -> OutlineRequest:
    return OutlineRequest(name="青云志", type="仙侠", era="古代", tags=["修仙", "成长"])


class TestOutlineRequest:
    """Tests for OutlineRequest."""

    def test_defaults(self, request_: OutlineRequest) -> None:
        assert request_.volumes == 3
        assert request_.chapters_per_volume == 10
        assert request_.scenes_per_chapter == 3

    def test_prompt_contains_fields(self, request_: OutlineRequest) -> None:
        prompt = request_.to_prompt()

        assert "青云志" in prompt
        assert "修仙, 成长" in prompt
        assert "共 3 卷" in prompt
        assert "### 第一卷" in prompt

    def test_build_messages(self, request_: OutlineRequest) -> None:
        messages = build_messages(request_)
        assert [m["role"] for m in messages] == ["system", "user"]

    def test_filter_text(self, request_: OutlineRequest) -> None:
        request_.remark = "多写打斗"
        text = request_.filter_text()

        assert "青云志" in text
        assert "修仙 成长" in text
        assert "多写打斗" in text


class TestStreamEvent:
    """Tests for SSE rendering."""

    def test_content(self) -> None:
        event = StreamEvent(type="content", data="第一卷")
        assert event.to_sse() == 'data: {"type": "content", "data": "第一卷"}\n\n'

    def test_complete(self) -> None:
        assert StreamEvent(type="complete").to_sse() == 'data: {"type": "complete"}\n\n'

    def test_error_sent_as_content(self) -> None:
        event = StreamEvent(type="error", data="出错了", code="UNKNOWN_ERROR")
        payload = event.payload()

        assert payload["type"] == "content"
        assert json.loads(payload["data"]) == {
            "error": {"message": "出错了", "code": "UNKNOWN_ERROR"}
        }


class TestCheckRequest:
    """Tests for sensitive-word vetting."""

    def test_rejects_sensitive_input(self, request_: OutlineRequest) -> None:
        request_.remark = "要有大量血腥场面"
        with pytest.raises(SensitiveContentError):
            check_request(request_)

    def test_custom_filter(self, request_: OutlineRequest) -> None:
        with pytest.raises(SensitiveContentError):
            check_request(request_, SensitiveFilter(words=["仙侠"]))

    def test_clean_input(self, request_: OutlineRequest) -> None:
        check_request(request_)


class TestStreamOutline:
    """Tests for streaming generation."""

    def test_missing_api_key(self, request_: OutlineRequest, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("MOONSHOT_API_KEY", raising=False)

        with pytest.raises(GenerationError, match="MOONSHOT_API_KEY"):
            list(stream_outline(request_))

    def test_unknown_provider(self, request_: OutlineRequest) -> None:
        with pytest.raises(ValueError, match="Unsupported AI provider"):
            list(stream_outline(request_, provider="nope"))

    def test_sensitive_request_never_calls_api(self, request_: OutlineRequest) -> None:
        request_.conflict = "暴力"
        with patch("moge.generate.stream._get_client") as mock_get_client:
            with pytest.raises(SensitiveContentError):
                list(stream_outline(request_))
        mock_get_client.assert_not_called()

    def test_client_uses_provider_base_url(
        self, request_: OutlineRequest, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("MOONSHOT_API_KEY", "sk-test")

        with patch("moge.generate.stream.OpenAI") as mock_openai:
            mock_openai.return_value = make_client(make_stream(["x"]))
            list(stream_outline(request_))

        mock_openai.assert_called_once_with(
            api_key="sk-test", base_url="https://api.moonshot.cn/v1"
        )

    @patch("moge.generate.stream._get_client")
    def test_content_then_complete(self, mock_get_client: MagicMock, request_: OutlineRequest) -> None:
        stream = make_stream(OUTLINE_CHUNKS + [None])
        mock_get_client.return_value = make_client(stream)

        events = list(stream_outline(request_))

        assert [e.type for e in events] == ["content"] * 4 + ["complete"]
        assert "".join(e.data for e in events[:-1]) == "".join(OUTLINE_CHUNKS)
        stream.close.assert_called_once()

    @patch("moge.generate.stream._get_client")
    def test_request_options(self, mock_get_client: MagicMock, request_: OutlineRequest) -> None:
        client = make_client(make_stream(["x"]))
        mock_get_client.return_value = client

        list(stream_outline(request_, timeout=30.0))

        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "moonshot-v1-8k"
        assert kwargs["stream"] is True
        assert kwargs["max_tokens"] == 2000
        assert kwargs["timeout"] == 30.0

    @patch("moge.generate.stream._get_client")
    def test_chunk_without_choices_skipped(
        self, mock_get_client: MagicMock, request_: OutlineRequest
    ) -> None:
        stream = MagicMock()
        stream.__iter__.return_value = iter([MagicMock(choices=[]), make_chunk("正文")])
        mock_get_client.return_value = make_client(stream)

        events = list(stream_outline(request_))
        assert [(e.type, e.data) for e in events] == [("content", "正文"), ("complete", None)]

    @patch("moge.generate.stream._get_client")
    def test_rate_limit(self, mock_get_client: MagicMock, request_: OutlineRequest) -> None:
        error = RateLimitError(
            "429 Too Many Requests",
            response=httpx.Response(429, request=API_REQUEST),
            body=None,
        )
        mock_get_client.return_value = make_client(error)

        events = list(stream_outline(request_))

        assert len(events) == 1
        assert events[0].type == "error"
        assert events[0].code == "RATE_LIMIT_EXCEEDED"

    @patch("moge.generate.stream._get_client")
    def test_api_error(self, mock_get_client: MagicMock, request_: OutlineRequest) -> None:
        error = InternalServerError(
            "boom",
            response=httpx.Response(500, request=API_REQUEST),
            body=None,
        )
        mock_get_client.return_value = make_client(error)

        events = list(stream_outline(request_))
        assert [(e.type, e.code) for e in events] == [("error", "UNKNOWN_ERROR")]

    @patch("moge.generate.stream.time.sleep")
    @patch("moge.generate.stream._get_client")
    def test_connection_error_retried(
        self, mock_get_client: MagicMock, mock_sleep: MagicMock, request_: OutlineRequest
    ) -> None:
        client = make_client(APIConnectionError(request=API_REQUEST), make_stream(["正文"]))
        mock_get_client.return_value = client

        events = list(stream_outline(request_))

        assert [e.type for e in events] == ["content", "complete"]
        assert client.chat.completions.create.call_count == 2
        mock_sleep.assert_called_once_with(2)

    @patch("moge.generate.stream.time.sleep")
    @patch("moge.generate.stream._get_client")
    def test_request_timeout_ends_silently(
        self, mock_get_client: MagicMock, _mock_sleep: MagicMock, request_: OutlineRequest
    ) -> None:
        errors = [APITimeoutError(request=API_REQUEST) for _ in range(3)]
        mock_get_client.return_value = make_client(*errors)

        assert list(stream_outline(request_)) == []

    @patch("moge.generate.stream._get_client")
    def test_stream_timeout_drops_complete(
        self, mock_get_client: MagicMock, request_: OutlineRequest
    ) -> None:
        stream = make_stream(["第一块", "第二块"])
        mock_get_client.return_value = make_client(stream)
        ticks = itertools.chain([0.0, 1.0], itertools.repeat(500.0))

        with patch("moge.generate.stream.time.monotonic", side_effect=lambda: next(ticks)):
            events = list(stream_outline(request_, timeout=120.0))

        assert [(e.type, e.data) for e in events] == [("content", "第一块")]
        stream.close.assert_called_once()


class TestGenerateOutline:
    """Tests for full generation with parsing."""

    @patch("moge.generate.stream._get_client")
    def test_parses_result(self, mock_get_client: MagicMock, request_: OutlineRequest) -> None:
        mock_get_client.return_value = make_client(make_stream(OUTLINE_CHUNKS))
        received: list[str] = []

        generated = generate_outline(request_, on_chunk=received.append)

        assert generated.markdown == "".join(OUTLINE_CHUNKS)
        assert received == [c for c in OUTLINE_CHUNKS if c]
        assert generated.valid is True
        assert generated.provider == "moonshot"
        assert generated.structure.volumes[0].chapters[0].scenes == ["主角登场", "偶遇师父"]

    @patch("moge.generate.stream._get_client")
    def test_unstructured_result_is_invalid(
        self, mock_get_client: MagicMock, request_: OutlineRequest
    ) -> None:
        mock_get_client.return_value = make_client(make_stream(["抱歉，我无法完成。"]))

        generated = generate_outline(request_)

        assert generated.structure.is_empty()
        assert generated.valid is False

    @patch("moge.generate.stream._get_client")
    def test_error_event_raises(self, mock_get_client: MagicMock, request_: OutlineRequest) -> None:
        error = RateLimitError(
            "429 Too Many Requests",
            response=httpx.Response(429, request=API_REQUEST),
            body=None,
        )
        mock_get_client.return_value = make_client(error)

        with pytest.raises(GenerationError, match="RATE_LIMIT_EXCEEDED"):
            generate_outline(request_)

    @patch("moge.generate.stream.time.sleep")
    @patch("moge.generate.stream._get_client")
    def test_unfinished_stream_raises(
        self, mock_get_client: MagicMock, _mock_sleep: MagicMock, request_: OutlineRequest
    ) -> None:
        errors = [APITimeoutError(request=API_REQUEST) for _ in range(3)]
        mock_get_client.return_value = make_client(*errors)

        with pytest.raises(GenerationError, match="did not finish"):
            generate_outline(request_)
