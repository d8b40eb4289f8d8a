"""Tests for summaries, titles, definitions and the chat-completions provider."""

from __future__ import annotations

import asyncio
from types import SimpleNamespace

import pytest

from tutorcli.exceptions import ProviderError
from tutorcli.models import ChatMessage, ProviderName, Role
from tutorcli.providers import format_provider_error
from tutorcli.providers.base import GEMINI_MODEL_HINT, error_hint
from tutorcli.providers.openai import OpenAIChatProvider
from tutorcli.summary import (
    FALLBACK_TITLE,
    MAX_TITLE_CHARS,
    build_resume_context,
    clean_title,
    generate_session_summary,
    generate_session_title,
)
from tutorcli.vocab_definitions import fetch_definitions, parse_definitions


def run(coro):
    return asyncio.run(coro)


class ReplyProvider:
    name = "openai"
    model = "gpt-test"

    def __init__(self, reply="", error=None):
        self.reply = reply
        self.error = error
        self.requests = []

    async def send_message(self, history, model=None):
        self.requests.append((history, model))
        if self.error:
            raise self.error
        return self.reply


TURNS = [
    ChatMessage(role=Role.SYSTEM, content="context"),
    ChatMessage(role=Role.USER, content="I goed home."),
    ChatMessage(role=Role.ASSISTANT, content="Say: I went home."),
    ChatMessage(role=Role.ASSISTANT, content="Mode set to grammar.", notice=True),
]


class TestSessionSummary:
    def test_summary_request(self):
        """The transcript labels speakers and skips notices and system text."""
        provider = ReplyProvider("  Practised past tense.  ")
        summary = run(generate_session_summary(provider, TURNS, model="gpt-mini"))
        assert summary == "Practised past tense."
        request, model = provider.requests[0]
        assert model == "gpt-mini"
        assert request[0]["role"] == "system"
        assert "Learner: I goed home.\n\nTutor: Say: I went home." in request[1]["content"]
        assert "Mode set to grammar." not in request[1]["content"]

    def test_empty_session(self):
        """No provider call for an empty conversation."""
        provider = ReplyProvider("unused")
        assert run(generate_session_summary(provider, [])) == "Empty session."
        assert provider.requests == []

    def test_failure_is_swallowed(self):
        """Provider failures produce a fallback line."""
        provider = ReplyProvider(error=ProviderError("boom"))
        assert run(generate_session_summary(provider, TURNS)) == "Summary generation failed."

    def test_blank_reply(self):
        assert run(generate_session_summary(ReplyProvider("   "), TURNS)) == "Unable to generate summary."

    def test_long_transcript_is_truncated(self):
        """Very long conversations are cut before sending."""
        provider = ReplyProvider("ok")
        turns = [ChatMessage(role=Role.USER, content="word " * 2000)]
        run(generate_session_summary(provider, turns))
        assert provider.requests[0][0][1]["content"].endswith("[...conversation truncated...]")


class TestSessionTitle:
    def test_title(self):
        assert run(generate_session_title(ReplyProvider('"Ordering coffee"'), TURNS)) == "Ordering coffee"

    def test_title_fallbacks(self):
        """Errors and empty conversations use the fallback title."""
        assert run(generate_session_title(ReplyProvider(error=ProviderError("x")), TURNS)) == FALLBACK_TITLE
        assert run(generate_session_title(ReplyProvider("Title"), [])) == FALLBACK_TITLE

    def test_clean_title(self):
        """Titles lose quotes, prefixes and extra lines, and are capped."""
        assert clean_title("Title: 'Job interview'\nExtra text") == "Job interview"
        assert clean_title("   ") == FALLBACK_TITLE
        long_title = clean_title("x" * 100)
        assert len(long_title) == MAX_TITLE_CHARS
        assert long_title.endswith("...")

    def test_resume_context(self):
        context = build_resume_context("Worked on verbs.", "beginner", "grammar")
        assert context.startswith("[Resuming previous session]\n")
        assert "Previous session summary: Worked on verbs." in context
        assert "Current difficulty: beginner" in context
        assert "Practice mode: grammar" in context


class TestDefinitions:
    def test_parse(self):
        """Only requested words with real definitions are kept."""
        text = (
            "Here you go:\n"
            "1. Apple: a round fruit with firm flesh\n"
            "banana: long fruit\n"
            "cherry: red\n"
            "durian: a spiky fruit with a strong smell"
        )
        parsed = parse_definitions(text, ["apple", "banana", "cherry"])
        assert parsed == {"apple": "a round fruit with firm flesh", "banana": "long fruit"}

    def test_fetch(self):
        provider = ReplyProvider("apple: a round fruit")
        assert run(fetch_definitions(provider, ["apple"])) == {"apple": "a round fruit"}
        assert "1. apple" in provider.requests[0][0][1]["content"]

    def test_fetch_failure(self):
        provider = ReplyProvider(error=ProviderError("down"))
        assert run(fetch_definitions(provider, ["apple"])) == {}

    def test_fetch_nothing(self):
        provider = ReplyProvider("unused")
        assert run(fetch_definitions(provider, [])) == {}
        assert provider.requests == []


class TestProviderErrors:
    def test_gemini_not_found_hint(self):
        error = RuntimeError("Error code: 404 - model not found")
        assert error_hint("gemini", error) == GEMINI_MODEL_HINT
        assert error_hint("openai", error) == ""
        assert format_provider_error("gemini", error).endswith(GEMINI_MODEL_HINT)

    def test_format_uses_message_and_hint(self):
        error = ProviderError("Invalid key", provider="openai", hint=" (Check OPENAI_API_KEY.)")
        assert format_provider_error("openai", error) == "Error: Invalid key (Check OPENAI_API_KEY.)"

    def test_format_empty_error(self):
        assert format_provider_error("openai", ValueError()) == "Error: ValueError"


def _chunk(text):
    return SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=text))])


class FakeStream:
    def __init__(self, chunks, fail=None):
        self._chunks = list(chunks)
        self._fail = fail

    def __aiter__(self):
        return self

    async def __anext__(self):
        await asyncio.sleep(0)
        if self._chunks:
            return self._chunks.pop(0)
        if self._fail:
            raise self._fail
        raise StopAsyncIteration


class FakeCompletions:
    def __init__(self, reply="", chunks=(), error=None, stream_error=None):
        self.reply = reply
        self.chunks = chunks
        self.error = error
        self.stream_error = stream_error
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error:
            raise self.error
        if kwargs.get("stream"):
            return FakeStream(self.chunks, self.stream_error)
        message = SimpleNamespace(content=self.reply)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


class FakeModels:
    def __init__(self, ids):
        self.ids = ids

    async def list(self):
        return SimpleNamespace(data=[SimpleNamespace(id=i) for i in self.ids])


def fake_client(completions=None, model_ids=()):
    return SimpleNamespace(
        chat=SimpleNamespace(completions=completions or FakeCompletions()),
        models=FakeModels(list(model_ids)),
    )


class TestOpenAIChatProvider:
    def test_send_message(self):
        completions = FakeCompletions(reply="Hello!")
        provider = OpenAIChatProvider(ProviderName.OPENAI, "sk", "gpt-5.2", client=fake_client(completions))
        history = [{"role": "user", "content": "Hi"}]
        assert run(provider.send_message(history, model="gpt-mini")) == "Hello!"
        assert completions.calls[0] == {"model": "gpt-mini", "messages": history}

    def test_send_message_wraps_errors(self):
        completions = FakeCompletions(error=RuntimeError("404 model not found"))
        provider = OpenAIChatProvider(ProviderName.GEMINI, "g", "gemini-x", client=fake_client(completions))
        with pytest.raises(ProviderError) as exc_info:
            run(provider.send_message([]))
        assert exc_info.value.provider == "gemini"
        assert exc_info.value.hint == GEMINI_MODEL_HINT

    def test_list_models_filters(self):
        """Only chat models are listed, sorted; Gemini ids lose their prefix."""
        ids = ["whisper-1", "gpt-5.2", "o3-mini", "dall-e-3", "gpt-4o"]
        provider = OpenAIChatProvider(ProviderName.OPENAI, "sk", "gpt-5.2", client=fake_client(model_ids=ids))
        assert run(provider.list_models()) == ["gpt-4o", "gpt-5.2", "o3-mini"]

        gemini_ids = ["models/gemini-2.5-flash", "models/embedding-001", "models/gemini-2.5-pro"]
        gemini = OpenAIChatProvider(ProviderName.GEMINI, "g", "x", client=fake_client(model_ids=gemini_ids))
        assert run(gemini.list_models()) == ["gemini-2.5-flash", "gemini-2.5-pro"]

    def test_stream(self):
        """Chunks arrive in order and completion carries the full text."""
        completions = FakeCompletions(chunks=[_chunk("Hel"), _chunk(None), _chunk("lo")])
        provider = OpenAIChatProvider(ProviderName.OPENAI, "sk", "gpt", client=fake_client(completions))
        events = []

        async def scenario():
            controller = provider.stream_message(
                [], lambda t: events.append(("chunk", t)),
                lambda t: events.append(("done", t)),
                lambda e: events.append(("error", e)),
            )
            await controller.task

        run(scenario())
        assert events == [("chunk", "Hel"), ("chunk", "lo"), ("done", "Hello")]
        assert completions.calls[0]["stream"] is True

    def test_stream_error(self):
        """Failures mid-stream go to the error callback as ProviderError."""
        completions = FakeCompletions(chunks=[_chunk("Hi")], stream_error=RuntimeError("connection reset"))
        provider = OpenAIChatProvider(ProviderName.OPENAI, "sk", "gpt", client=fake_client(completions))
        errors = []

        async def scenario():
            controller = provider.stream_message([], lambda t: None, lambda t: None, errors.append)
            await controller.task

        run(scenario())
        assert len(errors) == 1
        assert isinstance(errors[0], ProviderError)
        assert errors[0].message == "connection reset"

    def test_abort_completes_with_partial_text(self):
        """Abort cancels the request and completes once with what arrived."""
        completions = FakeCompletions(chunks=[_chunk("Par"), _chunk("tial"), _chunk(" more")])
        provider = OpenAIChatProvider(ProviderName.OPENAI, "sk", "gpt", client=fake_client(completions))
        done = []

        async def scenario():
            chunks = []

            def on_chunk(text):
                chunks.append(text)
                if len(chunks) == 2:
                    controller.abort()

            controller = provider.stream_message([], on_chunk, done.append, lambda e: None)
            await asyncio.gather(controller.task, return_exceptions=True)

        run(scenario())
        assert done == ["Partial"]
