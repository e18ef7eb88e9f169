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

"""Completion lifecycle state.

``CompletionSession`` is the single owner of the mutable state of one
inline completion provider: the active request, the preview being shown,
and where the session is in its lifecycle. The generator and the
provider drive it; hosts observe it through events.

Lifecycle::

    IDLE -> LOADING -> STREAMING -> PREVIEWING_FIRST_LINE
         -> PREVIEWING_REMAINDER -> ACCEPTED

LOADING, CANCELLED and DISMISSED can be entered from any state, and
``reset()`` returns to IDLE from anywhere.
"""

import logging
import re
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, Optional, Tuple

from victor_autocomplete.config import MultilineMode
from victor_autocomplete.errors import InvalidTransitionError
from victor_autocomplete.events import (
    CompletionAccepted,
    CompletionCancelled,
    CompletionFailed,
    CompletionStarted,
    EventDispatcher,
    FirstLineReady,
    PreviewUpdated,
)
from victor_autocomplete.protocol import CancellationToken

logger = logging.getLogger(__name__)


class CompletionStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    STREAMING = "streaming"
    PREVIEWING_FIRST_LINE = "previewing_first_line"
    PREVIEWING_REMAINDER = "previewing_remainder"
    ACCEPTED = "accepted"
    DISMISSED = "dismissed"
    CANCELLED = "cancelled"


_ALWAYS_ALLOWED = frozenset(
    {
        CompletionStatus.IDLE,
        CompletionStatus.LOADING,
        CompletionStatus.CANCELLED,
        CompletionStatus.DISMISSED,
    }
)

TRANSITIONS: Dict[CompletionStatus, FrozenSet[CompletionStatus]] = {
    CompletionStatus.IDLE: frozenset(),
    CompletionStatus.LOADING: frozenset(
        {CompletionStatus.STREAMING, CompletionStatus.PREVIEWING_FIRST_LINE}
    ),
    CompletionStatus.STREAMING: frozenset({CompletionStatus.PREVIEWING_FIRST_LINE}),
    CompletionStatus.PREVIEWING_FIRST_LINE: frozenset(
        {CompletionStatus.PREVIEWING_REMAINDER, CompletionStatus.ACCEPTED}
    ),
    CompletionStatus.PREVIEWING_REMAINDER: frozenset({CompletionStatus.ACCEPTED}),
    CompletionStatus.ACCEPTED: frozenset(),
    CompletionStatus.DISMISSED: frozenset(),
    CompletionStatus.CANCELLED: frozenset(),
}


def can_transition(source: CompletionStatus, target: CompletionStatus) -> bool:
    return target in _ALWAYS_ALLOWED or target in TRANSITIONS[source]


_COMPLETE_BLOCK_RE = re.compile(r"```[\w-]*\n([\s\S]*?)\n```")
_LEADING_FENCE_RE = re.compile(r"\A```[\w-]*\n")
_INNER_FENCE_RE = re.compile(r"\n```[\w-]*\n")
_TRAILING_FENCE_RE = re.compile(r"\n```\Z")
_DANGLING_FENCE_RE = re.compile(r"```[\w-]*\Z")


def clean_markdown_code_blocks(text: str) -> str:
    """Remove markdown code fences a chat-tuned model may wrap code in.

    Leading whitespace is kept since it may be indentation or a line break
    the completion starts with.

    >>> clean_markdown_code_blocks("```ts\\nconst x=1\\n```")
    'const x=1'
    >>> clean_markdown_code_blocks("const x=1")
    'const x=1'
    """
    cleaned = _COMPLETE_BLOCK_RE.sub(r"\1", text)
    cleaned = _LEADING_FENCE_RE.sub("", cleaned)
    cleaned = _INNER_FENCE_RE.sub("\n", cleaned)
    cleaned = _TRAILING_FENCE_RE.sub("", cleaned)
    cleaned = _DANGLING_FENCE_RE.sub("", cleaned)
    return cleaned.rstrip()


def split_completion(text: str) -> Tuple[str, str]:
    """Split at the first newline into ``(first_line, remaining_lines)``."""
    first_line, _, remaining = text.partition("\n")
    return first_line, remaining


@dataclass(frozen=True)
class CompletionPreview:
    """What is shown to the user for the active completion.

    ``raw_text`` is the text as received; ``first_line`` and
    ``remaining_lines`` always join back (with a newline) into its
    cleaned form.
    """

    first_line: str
    remaining_lines: str
    raw_text: str

    @classmethod
    def from_text(
        cls, raw_text: str, multiline_mode: MultilineMode = MultilineMode.AUTO
    ) -> "CompletionPreview":
        cleaned = clean_markdown_code_blocks(raw_text)
        first_line, remaining = split_completion(cleaned)
        if multiline_mode == MultilineMode.AUTO and remaining and not first_line:
            # Starts on a new line; offer it as one acceptance
            return cls(first_line=cleaned, remaining_lines="", raw_text=raw_text)
        return cls(first_line=first_line, remaining_lines=remaining, raw_text=raw_text)

    @property
    def text(self) -> str:
        if self.remaining_lines:
            return f"{self.first_line}\n{self.remaining_lines}"
        return self.first_line

    @property
    def is_two_stage(self) -> bool:
        return bool(self.remaining_lines)


@dataclass
class CompletionRequest:
    """One generation request. At most one is active per session."""

    document_uri: str
    cursor_offset: int
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: float = field(default_factory=time.time)
    abort: CancellationToken = field(default_factory=CancellationToken)

    @property
    def elapsed_ms(self) -> float:
        return (time.time() - self.created_at) * 1000


class CompletionSession:
    """Explicit state for the inline completion state machine."""

    def __init__(
        self,
        multiline_mode: MultilineMode = MultilineMode.AUTO,
        events: Optional[EventDispatcher] = None,
    ):
        """Initialize the session.

        Args:
            multiline_mode: How multi-line completions are split for acceptance
            events: Dispatcher receiving lifecycle events
        """
        self.multiline_mode = multiline_mode
        self.events = events or EventDispatcher()
        self._status = CompletionStatus.IDLE
        self._active_request: Optional[CompletionRequest] = None
        self._preview: Optional[CompletionPreview] = None
        self._first_line_accepted = False
        # Request whose preview is still on screen after its stream finished
        self._preview_request_id: Optional[str] = None

    @property
    def status(self) -> CompletionStatus:
        return self._status

    @property
    def active_request(self) -> Optional[CompletionRequest]:
        return self._active_request

    @property
    def preview(self) -> Optional[CompletionPreview]:
        return self._preview

    @property
    def has_accepted_first_line(self) -> bool:
        return self._first_line_accepted

    @property
    def is_showing_preview(self) -> bool:
        return self._preview is not None and self._status in (
            CompletionStatus.PREVIEWING_FIRST_LINE,
            CompletionStatus.PREVIEWING_REMAINDER,
        )

    @property
    def is_loading(self) -> bool:
        return self._status in (CompletionStatus.LOADING, CompletionStatus.STREAMING)

    def _transition(self, target: CompletionStatus) -> None:
        if not can_transition(self._status, target):
            raise InvalidTransitionError(
                f"Invalid completion transition: {self._status.value} -> {target.value}"
            )
        logger.debug(f"Completion state {self._status.value} -> {target.value}")
        self._status = target

    def is_active(self, request_id: str) -> bool:
        return self._active_request is not None and self._active_request.id == request_id

    def start(self, document_uri: str, cursor_offset: int) -> CompletionRequest:
        """Create the new active request, superseding any previous one.

        The previous request's id stops matching and its abort signal is
        fired before this method returns.
        """
        previous = self._active_request
        request = CompletionRequest(document_uri=document_uri, cursor_offset=cursor_offset)
        self._active_request = request
        self._clear_preview()
        self._transition(CompletionStatus.LOADING)
        if previous is not None:
            previous.abort.cancel()
        self.events.emit(
            CompletionStarted(
                request_id=request.id,
                document_uri=document_uri,
                cursor_offset=cursor_offset,
            )
        )
        return request

    def begin_streaming(self, request_id: str) -> bool:
        if not self.is_active(request_id) or self._status != CompletionStatus.LOADING:
            return False
        self._transition(CompletionStatus.STREAMING)
        return True

    def update_text(self, request_id: str, raw_text: str) -> Optional[CompletionPreview]:
        """Apply the accumulated stream text for ``request_id``.

        Returns:
            The new preview, or None if the request is no longer active
        """
        if not self.is_active(request_id):
            return None

        preview = CompletionPreview.from_text(raw_text, self.multiline_mode)
        if self._status in (CompletionStatus.LOADING, CompletionStatus.STREAMING):
            self._preview = preview
            if preview.is_two_stage:
                self._transition(CompletionStatus.PREVIEWING_FIRST_LINE)
                self.events.emit(
                    FirstLineReady(request_id=request_id, first_line=preview.first_line)
                )
            return preview

        if self._preview is not None:
            # First line stays frozen once visible
            preview = CompletionPreview(
                first_line=self._preview.first_line,
                remaining_lines=preview.remaining_lines,
                raw_text=raw_text,
            )
        self._preview = preview
        self.events.emit(
            PreviewUpdated(
                request_id=request_id,
                first_line=preview.first_line,
                remaining_lines=preview.remaining_lines,
            )
        )
        return preview

    def finish(self, request_id: str, raw_text: str) -> Optional[CompletionPreview]:
        """Apply the complete response text with a final, unfrozen split.

        Returns:
            The final preview, or None if the request is inactive or produced
            no text
        """
        if not self.is_active(request_id):
            return None

        preview = CompletionPreview.from_text(raw_text, self.multiline_mode)
        if not preview.text:
            self.reset()
            return None

        if self._status == CompletionStatus.PREVIEWING_REMAINDER:
            # First line already inserted; only the rest remains to show
            first_line, remaining = split_completion(preview.text)
            preview = CompletionPreview(
                first_line=self._preview.first_line if self._preview else first_line,
                remaining_lines=remaining,
                raw_text=raw_text,
            )
        elif self._status != CompletionStatus.PREVIEWING_FIRST_LINE:
            self._transition(CompletionStatus.PREVIEWING_FIRST_LINE)

        self._preview = preview
        self._preview_request_id = request_id
        return preview

    def show_cached(self, request_id: str, text: str) -> Optional[CompletionPreview]:
        """Show a cached completion for the active request without streaming."""
        return self.finish(request_id, text)

    def accept(self) -> Optional[Tuple[str, str]]:
        """Accept the next part of the visible preview.

        Returns:
            ``(text_to_insert, stage)`` or None when nothing is previewed
        """
        preview = self._preview
        if preview is None:
            return None

        request_id = self._preview_request_id or (
            self._active_request.id if self._active_request else ""
        )

        if self._status == CompletionStatus.PREVIEWING_FIRST_LINE:
            if preview.is_two_stage:
                self._transition(CompletionStatus.PREVIEWING_REMAINDER)
                self._first_line_accepted = True
                self.events.emit(
                    CompletionAccepted(
                        request_id=request_id, text=preview.first_line, stage="first_line"
                    )
                )
                return preview.first_line, "first_line"
            self._transition(CompletionStatus.ACCEPTED)
            self._clear_preview()
            self._release_request()
            self.events.emit(
                CompletionAccepted(request_id=request_id, text=preview.first_line, stage="full")
            )
            return preview.first_line, "full"

        if self._status == CompletionStatus.PREVIEWING_REMAINDER:
            self._transition(CompletionStatus.ACCEPTED)
            self._clear_preview()
            self._release_request()
            self.events.emit(
                CompletionAccepted(
                    request_id=request_id, text=preview.remaining_lines, stage="remainder"
                )
            )
            return preview.remaining_lines, "remainder"

        return None

    def cancel(self, reason: str = "cancelled") -> bool:
        """Abort the active request and clear the preview.

        Returns:
            True if there was anything to cancel
        """
        return self._stop(CompletionStatus.CANCELLED, reason)

    def dismiss(self) -> bool:
        return self._stop(CompletionStatus.DISMISSED, "dismissed")

    def fail(self, request_id: str, error: str) -> None:
        if not self.is_active(request_id):
            return
        self.events.emit(CompletionFailed(request_id=request_id, error=error))
        self.reset()

    def reset(self) -> None:
        """Return to IDLE, forgetting the active request and any preview."""
        request = self._active_request
        self._active_request = None
        self._clear_preview()
        self._transition(CompletionStatus.IDLE)
        if request is not None:
            request.abort.cancel()

    def _stop(self, target: CompletionStatus, reason: str) -> bool:
        request = self._active_request
        had_work = request is not None or self._preview is not None
        self._active_request = None
        self._clear_preview()
        if not had_work:
            return False
        self._transition(target)
        if request is not None:
            request.abort.cancel()
            self.events.emit(CompletionCancelled(request_id=request.id, reason=reason))
        return True

    def _clear_preview(self) -> None:
        self._preview = None
        self._preview_request_id = None
        self._first_line_accepted = False

    def _release_request(self) -> None:
        request, self._active_request = self._active_request, None
        if request is not None:
            request.abort.cancel()
