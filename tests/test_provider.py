# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Tests for InlineCompletionProvider."""

import asyncio

import pytest

from victor_autocomplete.config import AutocompleteSettings
from victor_autocomplete.errors import ModelClientError
from victor_autocomplete.events import CompletionAccepted, CompletionFinished
from victor_autocomplete.protocol import (
    MAX_LATENCY_SAMPLES,
    CancellationToken,
    CompletionMetrics,
    CompletionTriggerKind,
    InlineCompletionContext,
    Position,
    SelectedCompletionInfo,
    TextChange,
    TextDocument,
)
from victor_autocomplete.provider import InlineCompletionProvider, validate_trigger
from victor_autocomplete.state import CompletionStatus
from victor_autocomplete.templating import TemplateRegistry

from conftest import FakeStreamClient, GatedStreamClient

CURSOR = Position(1, 11)
AUTOMATIC = InlineCompletionContext(trigger_kind=CompletionTriggerKind.AUTOMATIC)


def make_settings(**overrides):
    values = {
        "debounce_delay_ms": 0,
        "include_clipboard": False,
        "include_diff": False,
        "first_line_accept_delay_ms": 0,
        "model": "qwen2.5-coder-7b",
    }
    values.update(overrides)
    return AutocompleteSettings(**values)


def make_provider(client, host, **overrides):
    return InlineCompletionProvider(
        client,
        settings=make_settings(**overrides),
        host=host,
        workspace_roots=["/repo"],
        registry=TemplateRegistry(),
    )


@pytest.fixture
def client():
    return FakeStreamClient(chunks=["a + b\n", "# done"])


@pytest.fixture
def provider(client, host):
    return make_provider(client, host)


def inserted(document, text):
    """Document after ``text`` was inserted at its end, plus the change."""
    change = TextChange(offset=len(document.text), inserted_text=text)
    updated = TextDocument(
        uri=document.uri,
        text=document.text + text,
        language_id=document.language_id,
        version=document.version + 1,
    )
    return updated, change


class TestValidateTrigger:
    """Tests for validate_trigger."""

    def test_invoke_always_passes(self):
        document = TextDocument(uri="file:///a.py", text="x")
        context = InlineCompletionContext(trigger_kind=CompletionTriggerKind.INVOKE)

        assert validate_trigger(document, Position(0, 1), context, 4)
        assert validate_trigger(document, Position(0, 1), None, 4)

    def test_minimum_typed_length(self):
        document = TextDocument(uri="file:///a.py", text="    ret\n    return")

        assert not validate_trigger(document, Position(0, 7), AUTOMATIC, 4)
        assert validate_trigger(document, Position(1, 10), AUTOMATIC, 4)

    def test_selected_suggestion_start_is_used(self):
        document = TextDocument(uri="file:///a.py", text="foo.barbaz")
        context = InlineCompletionContext(
            trigger_kind=CompletionTriggerKind.AUTOMATIC,
            selected_completion_info=SelectedCompletionInfo(text="bar", start=Position(0, 4)),
        )

        assert validate_trigger(document, Position(0, 10), context, 4)
        assert not validate_trigger(document, Position(0, 10), context, 5)


class TestProvideInlineCompletion:
    """Tests for requesting completions."""

    @pytest.mark.asyncio
    async def test_returns_first_line(self, provider, client, host, python_document):
        item = await provider.provide_inline_completion(python_document, CURSOR, AUTOMATIC)

        assert item.insert_text == "a + b"
        assert item.is_remainder is False
        assert item.request_id == provider.session.active_request.id
        assert provider.session.status == CompletionStatus.PREVIEWING_FIRST_LINE
        assert client.prompts == [
            "<|fim_prefix|>def add(a, b):\n    return <|fim_suffix|>\n<|fim_middle|>"
        ]
        assert client.calls[0]["stop_tokens"][-1] == "\n# Path:"
        assert provider.metrics.total_requests == 1
        assert provider.metrics.successful_requests == 1
        assert len(provider.metrics.latencies_ms) == 1
        assert host.shown == 1
        assert host.hidden == 1

    @pytest.mark.asyncio
    async def test_visible_preview_is_served_again(self, provider, client, python_document):
        first = await provider.provide_inline_completion(python_document, CURSOR)
        second = await provider.provide_inline_completion(python_document, CURSOR)

        assert second == first
        assert len(client.prompts) == 1
        assert provider.metrics.total_requests == 1

    @pytest.mark.asyncio
    async def test_generation_parameters_from_settings(self, client, host, python_document):
        provider = make_provider(
            client, host, temperature=0.5, model_parameters={"maxTokens": 32}
        )

        await provider.provide_inline_completion(python_document, CURSOR)

        assert client.calls[0]["temperature"] == 0.5
        assert client.calls[0]["max_tokens"] == 32

    @pytest.mark.asyncio
    async def test_language_detected_from_path(self, provider, client):
        document = TextDocument(uri="file:///repo/app.py", text="import os\nvalue = ")

        await provider.provide_inline_completion(document, Position(1, 8))

        assert client.prompts[0].startswith("<|fim_prefix|>import os\n\nimport os\nvalue = ")

    @pytest.mark.asyncio
    async def test_recently_edited_ranges_reach_prompt(self, provider, client, python_document):
        other = TextDocument(
            uri="file:///repo/util.py",
            text="def mul(a, b):\n    return a * b",
            language_id="python",
        )
        provider.on_document_changed(other, TextChange(offset=0, inserted_text="def"))

        await provider.provide_inline_completion(python_document, CURSOR)

        assert "# Path: util.py\ndef mul(a, b):\n    return a * b\n\n" in client.prompts[0]

    @pytest.mark.asyncio
    async def test_too_little_typed_text(self, provider, client):
        document = TextDocument(uri="file:///repo/a.py", text="x = ", language_id="python")

        assert await provider.provide_inline_completion(document, Position(0, 4), AUTOMATIC) is None
        assert client.prompts == []
        assert provider.metrics.total_requests == 0

        invoke = InlineCompletionContext(trigger_kind=CompletionTriggerKind.INVOKE)
        item = await provider.provide_inline_completion(document, Position(0, 4), invoke)
        assert item.insert_text == "a + b"

    @pytest.mark.asyncio
    async def test_rapid_requests_are_debounced(self, client, host, python_document):
        provider = make_provider(client, host, debounce_delay_ms=20)

        results = await asyncio.gather(
            provider.provide_inline_completion(python_document, CURSOR),
            provider.provide_inline_completion(python_document, CURSOR),
        )

        assert results[0] is None
        assert results[1].insert_text == "a + b"
        assert len(client.prompts) == 1
        assert provider.metrics.total_requests == 2
        assert provider.metrics.debounced_requests == 1

    @pytest.mark.asyncio
    async def test_model_failure_is_counted(self, host, python_document):
        client = FakeStreamClient(error=ModelClientError("backend down"))
        provider = make_provider(client, host)

        assert await provider.provide_inline_completion(python_document, CURSOR) is None
        assert provider.metrics.failed_requests == 1
        assert provider.metrics.successful_requests == 0
        assert provider.session.status == CompletionStatus.IDLE

    @pytest.mark.asyncio
    async def test_non_streaming_client(self, host, python_document):
        class CompleteOnly:
            async def complete(self, prompt):
                return "a + b\n# done<|endoftext|>ignored"

        provider = make_provider(CompleteOnly(), host)
        item = await provider.provide_inline_completion(python_document, CURSOR)

        assert item.insert_text == "a + b"
        assert provider.session.preview.remaining_lines == "# done"


class TestCaching:
    """Tests for cache use by the provider."""

    @pytest.mark.asyncio
    async def test_cache_hit_after_dismiss(self, provider, client, python_document):
        finished = []
        provider.events.subscribe(finished.append, CompletionFinished)
        await provider.provide_inline_completion(python_document, CURSOR)
        assert provider.dismiss() is True

        item = await provider.provide_inline_completion(python_document, CURSOR)

        assert item.insert_text == "a + b"
        assert len(client.prompts) == 1
        assert provider.metrics.cache_hits == 1
        assert provider.metrics.successful_requests == 2
        assert [e.from_cache for e in finished] == [False, True]
        assert provider.session.preview.remaining_lines == "# done"

    @pytest.mark.asyncio
    async def test_cache_disabled(self, client, host, python_document):
        provider = make_provider(client, host, use_cache=False)

        await provider.provide_inline_completion(python_document, CURSOR)
        provider.dismiss()
        await provider.provide_inline_completion(python_document, CURSOR)

        assert len(client.prompts) == 2
        assert len(provider.cache) == 0

    @pytest.mark.asyncio
    async def test_edit_invalidates_cache(self, provider, client, python_document):
        await provider.provide_inline_completion(python_document, CURSOR)
        updated, change = inserted(python_document, "x")

        provider.on_document_changed(updated, change)

        assert python_document.uri not in provider.cache


class TestAcceptance:
    """Tests for two-stage acceptance."""

    @pytest.mark.asyncio
    async def test_two_stage_flow(self, provider, host, python_document):
        accepted = []
        provider.events.subscribe(accepted.append, CompletionAccepted)
        await provider.provide_inline_completion(python_document, CURSOR)
        assert host.redraws == 1

        assert await provider.accept() is True
        assert host.inserted == [("a + b", False)]
        assert provider.session.status == CompletionStatus.PREVIEWING_REMAINDER
        assert provider.session.has_accepted_first_line

        document, change = inserted(python_document, "a + b")
        provider.on_document_changed(document, change)
        provider.on_selection_changed(document, Position(1, 16))
        assert provider.session.status == CompletionStatus.PREVIEWING_REMAINDER
        assert python_document.uri in provider.cache

        await asyncio.sleep(0.01)
        assert host.redraws == 2

        item = await provider.provide_inline_completion(document, Position(1, 16))
        assert item.insert_text == "# done"
        assert item.is_remainder is True

        assert await provider.accept() is True
        assert host.inserted[1] == ("# done", True)
        assert provider.session.status == CompletionStatus.ACCEPTED
        assert provider.session.active_request is None
        assert [e.stage for e in accepted] == ["first_line", "remainder"]
        assert provider.metrics.accepted_first_lines == 1
        assert provider.metrics.accepted_completions == 1

    @pytest.mark.asyncio
    async def test_first_line_accepted_while_streaming(self, host, python_document):
        client = GatedStreamClient(first="a + b\n# do", second="ne")
        provider = make_provider(client, host)

        task = asyncio.create_task(provider.provide_inline_completion(python_document, CURSOR))
        await client.first_sent.wait()
        visible = await provider.provide_inline_completion(python_document, CURSOR)
        assert visible.insert_text == "a + b"
        assert await provider.accept() is True
        client.release.set()

        item = await task
        assert provider.session.status == CompletionStatus.PREVIEWING_REMAINDER
        assert item.insert_text == "# done"
        assert item.is_remainder is True

        assert await provider.accept() is True
        assert host.inserted == [("a + b", False), ("# done", True)]

    @pytest.mark.asyncio
    async def test_single_line_accepted_at_once(self, host, python_document):
        provider = make_provider(FakeStreamClient(chunks=["a + b"]), host)
        await provider.provide_inline_completion(python_document, CURSOR)

        assert await provider.accept() is True
        assert host.inserted == [("a + b", False)]
        assert provider.session.status == CompletionStatus.ACCEPTED
        assert provider.metrics.accepted_completions == 1
        assert await provider.accept() is False

    @pytest.mark.asyncio
    async def test_accept_without_preview(self, provider, host):
        assert await provider.accept() is False
        assert host.inserted == []

    @pytest.mark.asyncio
    async def test_failed_insertion_cancels(self, client, python_document):
        class BrokenHost:
            def show_indicator(self):
                pass

            def hide_indicator(self):
                pass

            def request_redraw(self):
                pass

            async def insert_text(self, text, on_new_line=False):
                raise RuntimeError("read-only buffer")

        provider = make_provider(client, BrokenHost())
        await provider.provide_inline_completion(python_document, CURSOR)

        assert await provider.accept() is False
        assert provider.session.status == CompletionStatus.CANCELLED


class TestEditorEvents:
    """Tests for document and selection changes."""

    @pytest.mark.asyncio
    async def test_typing_cancels_preview(self, provider, host, python_document):
        await provider.provide_inline_completion(python_document, CURSOR)
        updated, change = inserted(python_document, "x")

        provider.on_document_changed(updated, change)

        assert provider.session.status == CompletionStatus.CANCELLED
        assert provider.session.preview is None
        assert host.hidden == 2

    @pytest.mark.asyncio
    async def test_edit_in_other_document_keeps_preview(self, provider, python_document):
        await provider.provide_inline_completion(python_document, CURSOR)
        other = TextDocument(uri="file:///repo/other.py", text="y", language_id="python")

        provider.on_document_changed(other, TextChange(offset=0, inserted_text="y"))

        assert provider.session.status == CompletionStatus.PREVIEWING_FIRST_LINE

    @pytest.mark.asyncio
    async def test_cursor_moves(self, provider, python_document):
        await provider.provide_inline_completion(python_document, CURSOR)

        provider.on_selection_changed(python_document, CURSOR)
        assert provider.session.status == CompletionStatus.PREVIEWING_FIRST_LINE

        provider.on_selection_changed(python_document, Position(0, 0), by_command=True)
        assert provider.session.status == CompletionStatus.PREVIEWING_FIRST_LINE

        provider.on_selection_changed(python_document, Position(0, 0))
        assert provider.session.status == CompletionStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_cancelled_token_skips_generation(self, provider, client, python_document):
        token = CancellationToken()
        token.cancel()

        item = await provider.provide_inline_completion(python_document, CURSOR, token=token)
        assert item is None
        assert client.prompts == []
        assert provider.metrics.cancelled_requests == 1

    @pytest.mark.asyncio
    async def test_token_cancelled_while_loading(self, host, python_document):
        client = GatedStreamClient(first="a + b", second=" + c")
        provider = make_provider(client, host)
        token = CancellationToken()

        task = asyncio.create_task(
            provider.provide_inline_completion(python_document, CURSOR, token=token)
        )
        await client.first_sent.wait()
        token.cancel()
        client.release.set()

        assert await task is None
        assert provider.session.status == CompletionStatus.CANCELLED
        assert provider.metrics.cancelled_requests == 1

    @pytest.mark.asyncio
    async def test_token_cancelled_after_first_line(self, host, python_document):
        client = GatedStreamClient(first="a + b\n#", second=" done")
        provider = make_provider(client, host)
        token = CancellationToken()

        task = asyncio.create_task(
            provider.provide_inline_completion(python_document, CURSOR, token=token)
        )
        await client.first_sent.wait()
        token.cancel()
        client.release.set()

        item = await task
        assert item.insert_text == "a + b"
        assert provider.session.preview.remaining_lines == "# done"


class TestProviderSettings:
    """Tests for enabling, disabling and reconfiguring."""

    @pytest.mark.asyncio
    async def test_disabled_file_patterns(self, client, host):
        provider = make_provider(client, host, disabled_file_patterns=["*.md"])
        document = TextDocument(uri="file:///repo/README.md", text="Some text here")

        assert provider.is_file_disabled(document)
        assert await provider.provide_inline_completion(document, Position(0, 14)) is None
        assert client.prompts == []

    @pytest.mark.asyncio
    async def test_toggle(self, provider, client, python_document):
        await provider.provide_inline_completion(python_document, CURSOR)

        assert provider.toggle() is False
        assert provider.session.status == CompletionStatus.DISMISSED
        assert await provider.provide_inline_completion(python_document, CURSOR) is None

        assert provider.toggle() is True
        assert provider.enabled

    @pytest.mark.asyncio
    async def test_update_settings(self, provider, client, python_document):
        await provider.provide_inline_completion(python_document, CURSOR)

        provider.update_settings(make_settings(use_cache=False, multiline_mode="two_stage"))

        assert len(provider.cache) == 0
        assert provider.session.multiline_mode.value == "two_stage"

        provider.update_settings(make_settings(enabled=False))
        assert not provider.enabled

    def test_metrics_reset(self, provider):
        provider.metrics.total_requests = 3
        provider.reset_metrics()
        assert provider.metrics.total_requests == 0

    def test_latency_history_is_bounded(self):
        metrics = CompletionMetrics()
        for i in range(MAX_LATENCY_SAMPLES + 50):
            metrics.record_latency(float(i))

        assert len(metrics.latencies_ms) == MAX_LATENCY_SAMPLES
        assert metrics.latencies_ms[0] == 50.0
        assert metrics.latency_samples == MAX_LATENCY_SAMPLES + 50
        assert metrics.avg_latency_ms == pytest.approx((MAX_LATENCY_SAMPLES + 49) / 2)

    @pytest.mark.asyncio
    async def test_dispose(self, provider, python_document):
        await provider.provide_inline_completion(python_document, CURSOR)

        provider.dispose()

        assert provider.session.preview is None
        assert len(provider.cache) == 0
        assert len(provider.events) == 0
