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

"""Typed lifecycle events for inline completion.

Every state change a host might care about is published as one of the
event dataclasses below through an ``EventDispatcher``. Listeners are
plain callables invoked synchronously in registration order.
"""

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Type, Union

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompletionStarted:
    request_id: str
    document_uri: str
    cursor_offset: int


@dataclass(frozen=True)
class FirstLineReady:
    """The first line of a streaming completion is complete and visible."""

    request_id: str
    first_line: str


@dataclass(frozen=True)
class PreviewUpdated:
    request_id: str
    first_line: str
    remaining_lines: str


@dataclass(frozen=True)
class CompletionFinished:
    request_id: str
    text: str
    duration_ms: float
    from_cache: bool = False


@dataclass(frozen=True)
class CompletionCancelled:
    request_id: str
    reason: str


@dataclass(frozen=True)
class CompletionAccepted:
    """Text was inserted into the document.

    ``stage`` is ``"first_line"`` for the first half of a two-stage
    acceptance, ``"remainder"`` for the second half and ``"full"`` for a
    single acceptance.
    """

    request_id: str
    text: str
    stage: str


@dataclass(frozen=True)
class CompletionFailed:
    request_id: str
    error: str


CompletionEvent = Union[
    CompletionStarted,
    FirstLineReady,
    PreviewUpdated,
    CompletionFinished,
    CompletionCancelled,
    CompletionAccepted,
    CompletionFailed,
]

EventListener = Callable[[CompletionEvent], None]


class EventDispatcher:
    """Delivers completion events to subscribed listeners."""

    def __init__(self) -> None:
        self._listeners: List[tuple[Optional[Type], EventListener]] = []

    def subscribe(
        self, listener: EventListener, event_type: Optional[Type] = None
    ) -> Callable[[], None]:
        """Register a listener, optionally for a single event type.

        Returns:
            Function that unsubscribes the listener
        """
        entry = (event_type, listener)
        self._listeners.append(entry)
        return lambda: self.unsubscribe(listener)

    def unsubscribe(self, listener: EventListener) -> bool:
        for i, (_, registered) in enumerate(self._listeners):
            if registered is listener:
                del self._listeners[i]
                return True
        return False

    def emit(self, event: CompletionEvent) -> None:
        for event_type, listener in list(self._listeners):
            if event_type is not None and not isinstance(event, event_type):
                continue
            try:
                listener(event)
            except Exception as e:
                logger.warning(f"Completion event listener failed on {type(event).__name__}: {e}")

    def clear(self) -> None:
        self._listeners.clear()

    def __len__(self) -> int:
        return len(self._listeners)
