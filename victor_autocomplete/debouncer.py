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

"""Debouncing for completion requests and preview updates.

``AutocompleteDebouncer`` gates request generation: of several calls made
within the delay window only the most recent proceeds. ``Debouncer``
postpones a plain callback until calls stop arriving, and is used to rate
limit preview redraws while a completion streams in.
"""

import asyncio
import logging
import uuid
from typing import Any, Callable, Dict, Optional, Tuple

logger = logging.getLogger(__name__)


class AutocompleteDebouncer:
    """Decides whether a request was superseded while it waited.

    Example:
        if await debouncer.should_skip(150):
            return None
    """

    def __init__(self) -> None:
        self._current_request_id: Optional[str] = None
        self._pending: Dict[str, Tuple[asyncio.TimerHandle, "asyncio.Future[bool]"]] = {}

    @property
    def has_pending(self) -> bool:
        return bool(self._pending)

    async def should_skip(self, delay_ms: float) -> bool:
        """Wait ``delay_ms`` and report whether this call should be skipped.

        Args:
            delay_ms: Debounce delay in milliseconds

        Returns:
            False if no newer call arrived during the wait, True otherwise
        """
        request_id = uuid.uuid4().hex
        self._current_request_id = request_id

        loop = asyncio.get_running_loop()
        future: "asyncio.Future[bool]" = loop.create_future()
        handle = loop.call_later(max(delay_ms, 0) / 1000, self._resolve, request_id, future)
        self._pending[request_id] = (handle, future)

        try:
            return await future
        finally:
            handle.cancel()
            self._pending.pop(request_id, None)

    def _resolve(self, request_id: str, future: "asyncio.Future[bool]") -> None:
        if future.done():
            return
        superseded = self._current_request_id != request_id
        if not superseded:
            self._current_request_id = None
        future.set_result(superseded)

    def clear(self) -> None:
        """Cancel pending timers; waiting calls resolve as skipped."""
        pending, self._pending = self._pending, {}
        for handle, future in pending.values():
            handle.cancel()
            if not future.done():
                future.set_result(True)
        self._current_request_id = None


class Debouncer:
    """Runs ``callback`` once calls have stopped for ``delay_ms``.

    Must be used from within a running event loop.
    """

    def __init__(self, callback: Callable[..., Any], delay_ms: float):
        self._callback = callback
        self._delay_ms = delay_ms
        self._handle: Optional[asyncio.TimerHandle] = None

    @property
    def delay_ms(self) -> float:
        return self._delay_ms

    def debounce(self, *args: Any) -> None:
        """Schedule the callback, replacing any pending invocation."""
        self.cancel()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self._delay_ms / 1000, self._fire, args)

    def _fire(self, args: Tuple[Any, ...]) -> None:
        self._handle = None
        try:
            self._callback(*args)
        except Exception as e:
            logger.warning(f"Debounced callback failed: {e}")

    def flush(self, *args: Any) -> None:
        """Cancel any pending invocation and run the callback now."""
        self.cancel()
        self._fire(args)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def set_delay(self, delay_ms: float) -> None:
        self._delay_ms = delay_ms

    def is_pending(self) -> bool:
        return self._handle is not None

    def dispose(self) -> None:
        self.cancel()
