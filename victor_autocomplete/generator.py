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

"""Completion generation from a model stream.

Consumes the model client's stream for one request, feeding the
accumulated text into the session. The first line is shown as soon as it
is complete; later text only refreshes the remainder, at most once per
preview delay. Every failure resolves to ``None``.
"""

import asyncio
import logging
import time
from typing import AsyncIterator, Optional

from victor_autocomplete.client import ModelClient
from victor_autocomplete.config import DEFAULT_DEBOUNCE_DELAY_MS
from victor_autocomplete.debouncer import Debouncer
from victor_autocomplete.errors import ModelClientError, StreamAbortedError
from victor_autocomplete.events import CompletionFinished
from victor_autocomplete.host import EditorHost, NullEditorHost
from victor_autocomplete.state import CompletionRequest, CompletionSession
from victor_autocomplete.templating.renderer import PromptResult

logger = logging.getLogger(__name__)


class CompletionGenerator:
    """Drives the model client for the session's active request."""

    def __init__(
        self,
        client: ModelClient,
        session: CompletionSession,
        host: Optional[EditorHost] = None,
        preview_delay_ms: float = DEFAULT_DEBOUNCE_DELAY_MS,
    ):
        """Initialize the generator.

        Args:
            client: Streaming model client
            session: Session whose active request is being generated
            host: Editor capability for indicators and redraws
            preview_delay_ms: Minimum interval between remainder redraws
        """
        self.client = client
        self.session = session
        self.host = host or NullEditorHost()
        self._preview_debouncer = Debouncer(self._redraw_preview, preview_delay_ms)

    def set_preview_delay(self, delay_ms: float) -> None:
        self._preview_debouncer.set_delay(delay_ms)

    async def generate(self, request: CompletionRequest, prompt: PromptResult) -> Optional[str]:
        """Stream a completion for ``request``.

        Args:
            request: The session's active request
            prompt: Rendered prompt and completion options

        Returns:
            The cleaned completion text, or None if the request was
            superseded, aborted, failed, or produced nothing
        """
        if not self.session.is_active(request.id):
            return None

        self.host.show_indicator()
        start_time = time.time()
        stream: Optional[AsyncIterator[str]] = None
        try:
            options = prompt.completion_options
            stream = self.client.create_completion_stream(
                prompt.prompt,
                stop_tokens=list(options.stop_tokens),
                temperature=options.temperature,
                max_tokens=options.max_tokens,
                abort_signal=request.abort,
            )
            accumulated = await self._consume(request, stream)

            preview = self.session.finish(request.id, accumulated)
            if preview is None:
                return None
            if self._preview_debouncer.is_pending():
                # Show the final remainder instead of dropping the pending redraw
                self._preview_debouncer.flush()

            duration_ms = (time.time() - start_time) * 1000
            logger.info(
                f"Completion {request.id[:8]} generated in {duration_ms:.0f}ms "
                f"({len(preview.text)} chars)"
            )
            self.session.events.emit(
                CompletionFinished(
                    request_id=request.id, text=preview.text, duration_ms=duration_ms
                )
            )
            return preview.text

        except StreamAbortedError as e:
            logger.debug(f"Completion {request.id[:8]} stopped: {e}")
            return None
        except ModelClientError as e:
            logger.warning(f"Model client error: {e}")
            self.session.fail(request.id, str(e))
            return None
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"Completion stream failed: {e}")
            self.session.fail(request.id, str(e))
            return None
        finally:
            self._preview_debouncer.cancel()
            await self._close(stream)
            if self.session.active_request is None or self.session.is_active(request.id):
                self.host.hide_indicator()

    async def _consume(self, request: CompletionRequest, stream: AsyncIterator[str]) -> str:
        accumulated = ""
        async for chunk in stream:
            if request.abort.is_cancellation_requested or not self.session.is_active(request.id):
                raise StreamAbortedError(f"Request {request.id[:8]} is no longer active")
            if not chunk:
                continue

            if accumulated == "":
                self.session.begin_streaming(request.id)

            was_showing = self.session.is_showing_preview
            accumulated += chunk
            if self.session.update_text(request.id, accumulated) is None:
                raise StreamAbortedError(f"Request {request.id[:8]} is no longer active")

            if not self.session.is_showing_preview:
                continue
            if not was_showing:
                # First line just completed
                self.host.request_redraw()
            else:
                self._preview_debouncer.debounce()

        if request.abort.is_cancellation_requested or not self.session.is_active(request.id):
            raise StreamAbortedError(f"Request {request.id[:8]} is no longer active")
        return accumulated

    def _redraw_preview(self) -> None:
        if self.session.is_showing_preview:
            self.host.request_redraw()

    async def _close(self, stream: Optional[AsyncIterator[str]]) -> None:
        aclose = getattr(stream, "aclose", None)
        if aclose is None:
            return
        try:
            await aclose()
        except Exception as e:
            logger.debug(f"Error closing completion stream: {e}")

    def dispose(self) -> None:
        self._preview_debouncer.dispose()
