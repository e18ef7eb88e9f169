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

"""Editor-facing protocol types for inline completion.

These are the shapes the host editor exchanges with the completion
provider: documents and positions going in, at most one inline item
coming out.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Deque, List, Optional
from urllib.parse import unquote, urlparse

logger = logging.getLogger(__name__)

ACCEPT_COMMAND = "victor.acceptAutocompletePreview"
DISMISS_COMMAND = "victor.dismissAutocompletePreview"

MAX_LATENCY_SAMPLES = 100


@dataclass(frozen=True)
class Position:
    """Zero-indexed line/character position in a document."""

    line: int
    character: int


@dataclass(frozen=True)
class TextChange:
    """A single contiguous edit applied to a document.

    Attributes:
        offset: Character offset where the edit starts
        removed_length: Number of characters replaced
        inserted_text: Text inserted at ``offset``
    """

    offset: int
    removed_length: int = 0
    inserted_text: str = ""

    @property
    def is_pure_insertion(self) -> bool:
        return self.removed_length == 0 and bool(self.inserted_text)


@dataclass
class TextDocument:
    """Snapshot of an editor document."""

    uri: str
    text: str
    language_id: str = ""
    version: int = 0

    @property
    def file_path(self) -> str:
        """Filesystem path for ``file://`` URIs, the raw URI otherwise."""
        parsed = urlparse(self.uri)
        if parsed.scheme == "file":
            return unquote(parsed.path)
        return self.uri

    @property
    def file_name(self) -> str:
        return Path(self.file_path).name or "untitled"

    @property
    def lines(self) -> List[str]:
        return self.text.split("\n")

    def line_at(self, line: int) -> str:
        lines = self.lines
        if 0 <= line < len(lines):
            return lines[line]
        return ""

    def offset_at(self, position: Position) -> int:
        """Convert a position to a character offset, clamping out-of-range values."""
        lines = self.lines
        line = max(0, min(position.line, len(lines) - 1))
        character = max(0, min(position.character, len(lines[line])))
        return sum(len(text) + 1 for text in lines[:line]) + character

    def position_at(self, offset: int) -> Position:
        offset = max(0, min(offset, len(self.text)))
        before = self.text[:offset]
        line = before.count("\n")
        character = offset - (before.rfind("\n") + 1)
        return Position(line=line, character=character)


class CompletionTriggerKind(str, Enum):
    """How an inline completion request was triggered."""

    INVOKE = "invoke"
    AUTOMATIC = "automatic"


@dataclass(frozen=True)
class SelectedCompletionInfo:
    """The item currently highlighted in the editor's suggest widget."""

    text: str
    start: Position


@dataclass(frozen=True)
class InlineCompletionContext:
    """Trigger information supplied by the editor with each request."""

    trigger_kind: CompletionTriggerKind = CompletionTriggerKind.AUTOMATIC
    selected_completion_info: Optional[SelectedCompletionInfo] = None


@dataclass(frozen=True)
class InlineCompletionItem:
    """A single ghost-text suggestion returned to the editor.

    Attributes:
        insert_text: Text to display and insert
        request_id: Id of the request that produced the text
        command: Command the editor runs when the item is accepted
        is_remainder: True when this item carries the lines that follow an
            already accepted first line; the host places it on a new line
    """

    insert_text: str
    request_id: str = ""
    command: str = ACCEPT_COMMAND
    is_remainder: bool = False


class CancellationToken:
    """Cooperative cancellation signal.

    Used both for the editor's per-request cancellation and as the abort
    signal handed to model clients. Cancelling is idempotent; callbacks
    registered after cancellation run immediately.
    """

    def __init__(self) -> None:
        self._cancelled = False
        self._callbacks: List[Callable[[], None]] = []

    @property
    def is_cancellation_requested(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            try:
                callback()
            except Exception as e:
                logger.warning(f"Cancellation callback failed: {e}")

    def on_cancellation_requested(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Register a callback and return a function that unregisters it."""
        if self._cancelled:
            callback()
            return lambda: None
        self._callbacks.append(callback)

        def remove() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return remove


@dataclass
class CompletionMetrics:
    """Counters collected by the inline completion provider."""

    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    cancelled_requests: int = 0
    debounced_requests: int = 0
    cache_hits: int = 0
    accepted_first_lines: int = 0
    accepted_completions: int = 0
    total_latency_ms: float = 0.0
    latency_samples: int = 0
    # Most recent samples only
    latencies_ms: Deque[float] = field(
        default_factory=lambda: deque(maxlen=MAX_LATENCY_SAMPLES)
    )

    @property
    def avg_latency_ms(self) -> float:
        if self.latency_samples == 0:
            return 0.0
        return self.total_latency_ms / self.latency_samples

    @property
    def cache_hit_rate(self) -> float:
        if self.total_requests == 0:
            return 0.0
        return self.cache_hits / self.total_requests

    def record_latency(self, elapsed_ms: float) -> None:
        self.total_latency_ms += elapsed_ms
        self.latency_samples += 1
        self.latencies_ms.append(elapsed_ms)
