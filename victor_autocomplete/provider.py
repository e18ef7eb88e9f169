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

"""Inline completion provider.

The single entry point a host editor calls on every keystroke or cursor
move. It gates requests through the debouncer and the cache, assembles
the prompt, drives generation, and implements two-stage acceptance of
multi-line suggestions.

Example usage:
    provider = InlineCompletionProvider(client, settings=load_settings("victor.yaml"))

    item = await provider.provide_inline_completion(document, Position(10, 8))
    if item is not None:
        await provider.accept()
"""

import asyncio
import dataclasses
import logging
from typing import List, Optional, Sequence, Union

from victor_autocomplete.cache import CompletionCache
from victor_autocomplete.client import CompletionModelClient, ModelClient, as_streaming_client
from victor_autocomplete.config import AutocompleteSettings
from victor_autocomplete.context.gatherer import ContextGatherer
from victor_autocomplete.context.recently_edited import RecentlyEditedTracker
from victor_autocomplete.context.snippet_provider import (
    AuxiliarySnippetProvider,
    SnippetSources,
    generate_snippets,
)
from victor_autocomplete.debouncer import AutocompleteDebouncer
from victor_autocomplete.events import (
    CompletionEvent,
    CompletionFailed,
    CompletionFinished,
    EventDispatcher,
)
from victor_autocomplete.file_filter import is_file_disabled
from victor_autocomplete.generator import CompletionGenerator
from victor_autocomplete.host import EditorHost, NullEditorHost
from victor_autocomplete.languages import detect_language
from victor_autocomplete.protocol import (
    CancellationToken,
    CompletionMetrics,
    CompletionTriggerKind,
    InlineCompletionContext,
    InlineCompletionItem,
    Position,
    TextChange,
    TextDocument,
)
from victor_autocomplete.state import CompletionRequest, CompletionSession, CompletionStatus
from victor_autocomplete.templating.registry import TemplateRegistry
from victor_autocomplete.templating.renderer import PromptOptions, PromptRenderer

logger = logging.getLogger(__name__)


def validate_trigger(
    document: TextDocument,
    position: Position,
    context: Optional[InlineCompletionContext],
    min_typed_length: int,
) -> bool:
    """Check that an automatic trigger follows enough typed text.

    Explicit invocations always pass. Otherwise the text before the cursor
    (or before the start of the editor's selected suggestion) on that
    line must have at least ``min_typed_length`` non-blank characters.
    """
    if context is None or context.trigger_kind == CompletionTriggerKind.INVOKE:
        return True

    selected = context.selected_completion_info
    anchor = selected.start if selected is not None else position
    text_before = document.line_at(anchor.line)[: anchor.character]
    return len(text_before.strip()) >= min_typed_length


class InlineCompletionProvider:
    """Inline (ghost text) completion façade for one editor."""

    def __init__(
        self,
        client: Union[ModelClient, CompletionModelClient],
        settings: Optional[AutocompleteSettings] = None,
        host: Optional[EditorHost] = None,
        snippet_sources: Optional[SnippetSources] = None,
        workspace_roots: Sequence[str] = (),
        registry: Optional[TemplateRegistry] = None,
        cache: Optional[CompletionCache] = None,
        events: Optional[EventDispatcher] = None,
    ):
        """Initialize the provider.

        Args:
            client: Streaming or non-streaming model client
            settings: Engine settings (defaults if not provided)
            host: Editor capability for indicators, redraws and insertion
            snippet_sources: Clipboard/diff capabilities
            workspace_roots: Workspace folders, used for relative paths
            registry: Template registry (uses global if not provided)
            cache: Completion cache
            events: Dispatcher for lifecycle events
        """
        self._settings = settings or AutocompleteSettings()
        self._enabled = self._settings.enabled
        self.workspace_roots = list(workspace_roots)
        self.host = host or NullEditorHost()
        self.events = events or EventDispatcher()
        self.session = CompletionSession(self._settings.multiline_mode, self.events)
        self.cache = cache or CompletionCache()
        self.tracker = RecentlyEditedTracker()

        self._debouncer = AutocompleteDebouncer()
        self._gatherer = self._build_gatherer(self._settings)
        self._renderer = PromptRenderer(registry)
        self._snippets = AuxiliarySnippetProvider(
            snippet_sources, self.tracker, timeout_ms=self._settings.snippet_timeout_ms
        )
        self._generator = CompletionGenerator(
            as_streaming_client(client),
            self.session,
            self.host,
            preview_delay_ms=self._settings.debounce_delay_ms,
        )
        self._metrics = CompletionMetrics()
        self._pending_insertions: List[str] = []
        self._ignore_next_selection = False
        self._redraw_handle: Optional[asyncio.TimerHandle] = None

        self.events.subscribe(self._count_failure, CompletionFailed)

    @staticmethod
    def _build_gatherer(settings: AutocompleteSettings) -> ContextGatherer:
        return ContextGatherer(
            max_preceding_lines=settings.max_preceding_lines,
            max_following_lines=settings.max_following_lines,
            max_definitions=settings.max_definitions,
        )

    @property
    def settings(self) -> AutocompleteSettings:
        return self._settings

    @property
    def metrics(self) -> CompletionMetrics:
        """Get completion metrics."""
        return self._metrics

    def reset_metrics(self) -> None:
        self._metrics = CompletionMetrics()

    @property
    def enabled(self) -> bool:
        return self._enabled

    def set_enabled(self, enabled: bool) -> None:
        self._enabled = enabled
        if not enabled:
            self.dismiss()

    def toggle(self) -> bool:
        """Flip the enabled state and return the new value."""
        self.set_enabled(not self._enabled)
        logger.info(f"Autocomplete {'enabled' if self._enabled else 'disabled'}")
        return self._enabled

    def update_settings(self, settings: AutocompleteSettings) -> None:
        """Apply new settings; takes effect from the next request."""
        self._settings = settings
        self._enabled = settings.enabled
        self.session.multiline_mode = settings.multiline_mode
        self._gatherer = self._build_gatherer(settings)
        self._snippets.timeout_ms = settings.snippet_timeout_ms
        self._generator.set_preview_delay(settings.debounce_delay_ms)
        if not settings.use_cache:
            self.cache.clear()

    def is_file_disabled(self, document: TextDocument) -> bool:
        return is_file_disabled(
            document.file_path, self._settings.disabled_file_patterns, self.workspace_roots
        )

    async def provide_inline_completion(
        self,
        document: TextDocument,
        position: Position,
        context: Optional[InlineCompletionContext] = None,
        token: Optional[CancellationToken] = None,
    ) -> Optional[InlineCompletionItem]:
        """Return the inline completion item for ``position``, if any.

        Args:
            document: Current document snapshot
            position: Cursor position
            context: Trigger information from the editor
            token: Editor cancellation for this call

        Returns:
            The first line of a new or visible completion, the remainder after
            the first line was accepted, or None
        """
        if not self._enabled or self.is_file_disabled(document):
            return None

        try:
            item = self._remainder_item() or self._visible_preview_item(document, position)
            if item is not None:
                return item

            if not validate_trigger(document, position, context, self._settings.min_typed_length):
                return None

            self._metrics.total_requests += 1
            if await self._debouncer.should_skip(self._settings.debounce_delay_ms):
                self._metrics.debounced_requests += 1
                logger.debug(f"Debounced completion request for {document.file_name}")
                return None
            if token is not None and token.is_cancellation_requested:
                self._metrics.cancelled_requests += 1
                return None

            return await self._complete(document, position, token)

        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Inline completion failed: {e}")
            return None

    async def _complete(
        self,
        document: TextDocument,
        position: Position,
        token: Optional[CancellationToken],
    ) -> Optional[InlineCompletionItem]:
        offset = document.offset_at(position)
        request = self.session.start(document.uri, offset)
        unlink = (
            token.on_cancellation_requested(lambda: self._on_editor_cancel(request.id))
            if token is not None
            else None
        )
        try:
            if self._settings.use_cache:
                cached = self.cache.get(document.uri, document.text, offset)
                if cached is not None:
                    return self._serve_cached(request, cached)

            text = await self._generate(request, document, position)
            if text is None:
                # IDLE means the request failed or produced nothing
                if (
                    request.abort.is_cancellation_requested
                    and self.session.status != CompletionStatus.IDLE
                ):
                    self._metrics.cancelled_requests += 1
                return None

            if self._settings.use_cache:
                self.cache.set(document.uri, document.text, offset, text)
            self._metrics.successful_requests += 1
            self._metrics.record_latency(request.elapsed_ms)
            # The first line may have been accepted while the stream was open
            return self._remainder_item() or self._preview_item(request.id)
        finally:
            if unlink is not None:
                unlink()

    def _serve_cached(
        self, request: CompletionRequest, text: str
    ) -> Optional[InlineCompletionItem]:
        self._metrics.cache_hits += 1
        preview = self.session.show_cached(request.id, text)
        if preview is None:
            return None
        self._metrics.successful_requests += 1
        self._metrics.record_latency(request.elapsed_ms)
        self.events.emit(
            CompletionFinished(
                request_id=request.id,
                text=preview.text,
                duration_ms=request.elapsed_ms,
                from_cache=True,
            )
        )
        return self._preview_item(request.id)

    async def _generate(
        self, request: CompletionRequest, document: TextDocument, position: Position
    ) -> Optional[str]:
        settings = self._settings
        if not document.language_id:
            document = dataclasses.replace(
                document, language_id=detect_language(document.file_path, document.text)
            )

        context = self._gatherer.gather_context(
            document, position, settings.include_imports, settings.include_definitions
        )
        snippets = generate_snippets(context, settings, document.file_path)
        snippets.extend(
            await self._snippets.gather(
                document.file_path,
                include_recently_edited=settings.include_recently_edited,
                include_diff=settings.include_diff,
                include_clipboard=settings.include_clipboard,
            )
        )
        if not self.session.is_active(request.id):
            return None

        prompt = self._renderer.render(
            context,
            snippets,
            PromptOptions(
                model=settings.model,
                language=document.language_id,
                filepath=document.file_path,
                workspace_roots=self.workspace_roots,
                temperature=settings.effective_temperature,
                max_tokens=settings.effective_max_tokens,
                include_imports=settings.include_imports,
                include_definitions=settings.include_definitions,
            ),
        )
        return await self._generator.generate(request, prompt)

    def _preview_item(self, request_id: str) -> Optional[InlineCompletionItem]:
        preview = self.session.preview
        if self.session.status != CompletionStatus.PREVIEWING_FIRST_LINE or preview is None:
            return None
        if not preview.first_line:
            return None
        return InlineCompletionItem(insert_text=preview.first_line, request_id=request_id)

    def _remainder_item(self) -> Optional[InlineCompletionItem]:
        preview = self.session.preview
        if self.session.status != CompletionStatus.PREVIEWING_REMAINDER or preview is None:
            return None
        if not preview.remaining_lines:
            return None
        request = self.session.active_request
        return InlineCompletionItem(
            insert_text=preview.remaining_lines,
            request_id=request.id if request else "",
            is_remainder=True,
        )

    def _visible_preview_item(
        self, document: TextDocument, position: Position
    ) -> Optional[InlineCompletionItem]:
        # Redraw of a preview that is already on screen
        request = self.session.active_request
        if request is None or self.session.status != CompletionStatus.PREVIEWING_FIRST_LINE:
            return None
        if request.document_uri != document.uri:
            return None
        if request.cursor_offset != document.offset_at(position):
            return None
        return self._preview_item(request.id)

    def _on_editor_cancel(self, request_id: str) -> None:
        # Once the first line is visible the stream keeps filling in the rest
        if self.session.is_active(request_id) and self.session.is_loading:
            self.session.cancel("editor cancelled request")

    def _count_failure(self, event: CompletionEvent) -> None:
        self._metrics.failed_requests += 1

    async def accept(self) -> bool:
        """Insert the next part of the visible completion.

        The first acceptance of a multi-line completion inserts only its
        first line; the remainder is offered again shortly after and the
        next acceptance inserts it on a new line.

        Returns:
            True if text was inserted
        """
        result = self.session.accept()
        if result is None:
            return False

        text, stage = result
        on_new_line = stage == "remainder"
        if stage == "first_line":
            self._metrics.accepted_first_lines += 1
        else:
            self._metrics.accepted_completions += 1

        self._pending_insertions.append(text)
        try:
            await self.host.insert_text(text, on_new_line=on_new_line)
        except Exception as e:
            self._pending_insertions.remove(text)
            logger.error(f"Failed to insert accepted completion: {e}")
            self.session.cancel("insertion failed")
            return False

        if stage == "first_line":
            self._schedule_remainder_redraw()
        return True

    def _schedule_remainder_redraw(self) -> None:
        self._cancel_redraw()
        loop = asyncio.get_running_loop()
        self._redraw_handle = loop.call_later(
            self._settings.first_line_accept_delay_ms / 1000, self._redraw_remainder
        )

    def _redraw_remainder(self) -> None:
        self._redraw_handle = None
        if self.session.status == CompletionStatus.PREVIEWING_REMAINDER:
            self.host.request_redraw()

    def _cancel_redraw(self) -> None:
        if self._redraw_handle is not None:
            self._redraw_handle.cancel()
            self._redraw_handle = None

    def dismiss(self) -> bool:
        """Clear the visible preview and abort any running request."""
        self._cancel_redraw()
        dismissed = self.session.dismiss()
        if dismissed:
            self.host.hide_indicator()
        return dismissed

    def _is_own_insertion(self, change: TextChange) -> bool:
        if not change.is_pure_insertion:
            return False
        for text in self._pending_insertions:
            if change.inserted_text in (text, "\n" + text):
                self._pending_insertions.remove(text)
                return True
        return False

    def on_document_changed(self, document: TextDocument, change: TextChange) -> None:
        """React to an edit; anything but our own insertion cancels the session."""
        if self._is_own_insertion(change):
            self._ignore_next_selection = True
            self.cache.handle_change(document.uri, change)
            return

        if self._settings.include_recently_edited:
            self.tracker.record(document, change)
        self.cache.handle_change(document.uri, change)
        self._cancel_if_showing(document.uri, "document changed")

    def on_selection_changed(
        self, document: TextDocument, position: Position, by_command: bool = False
    ) -> None:
        """React to a cursor move; command-driven moves keep the session."""
        if by_command:
            return
        if self._ignore_next_selection:
            self._ignore_next_selection = False
            return

        request = self.session.active_request
        if (
            request is not None
            and request.document_uri == document.uri
            and request.cursor_offset == document.offset_at(position)
            and self.session.status != CompletionStatus.PREVIEWING_REMAINDER
        ):
            return
        self._cancel_if_showing(document.uri, "cursor moved")

    def _cancel_if_showing(self, document_uri: str, reason: str) -> None:
        request = self.session.active_request
        if request is None and self.session.preview is None:
            return
        if request is not None and request.document_uri != document_uri:
            return
        self._cancel_redraw()
        if self.session.cancel(reason):
            self.host.hide_indicator()

    def dispose(self) -> None:
        """Release timers and state."""
        self._cancel_redraw()
        self._debouncer.clear()
        self._generator.dispose()
        self.session.cancel("disposed")
        self.cache.clear()
        self.tracker.clear()
        self.events.clear()
