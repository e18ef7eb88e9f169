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

"""Shared fixtures for autocomplete tests."""

import asyncio
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pytest

from victor_autocomplete.protocol import CancellationToken, TextDocument


class FakeStreamClient:
    """Model client that streams a fixed list of chunks."""

    def __init__(
        self,
        chunks: Sequence[str] = (),
        error: Optional[BaseException] = None,
        delay: float = 0.0,
    ):
        self.chunks = list(chunks)
        self.error = error
        self.delay = delay
        self.prompts: List[str] = []
        self.calls: List[Dict[str, Any]] = []

    async def create_completion_stream(
        self,
        prompt: str,
        *,
        stop_tokens: Sequence[str],
        temperature: float,
        max_tokens: int,
        abort_signal: CancellationToken,
    ):
        self.prompts.append(prompt)
        self.calls.append(
            {
                "stop_tokens": list(stop_tokens),
                "temperature": temperature,
                "max_tokens": max_tokens,
                "abort_signal": abort_signal,
            }
        )
        for chunk in self.chunks:
            if self.delay:
                await asyncio.sleep(self.delay)
            yield chunk
        if self.error is not None:
            raise self.error


class GatedStreamClient:
    """Yields ``first``, then waits for ``release`` before yielding ``second``."""

    def __init__(self, first: str = "foo", second: str = "bar"):
        self.first = first
        self.second = second
        self.first_sent = asyncio.Event()
        self.release = asyncio.Event()

    async def create_completion_stream(
        self,
        prompt: str,
        *,
        stop_tokens: Sequence[str],
        temperature: float,
        max_tokens: int,
        abort_signal: CancellationToken,
    ):
        yield self.first
        self.first_sent.set()
        await self.release.wait()
        yield self.second


class RecordingHost:
    """Editor host that records every call."""

    def __init__(self) -> None:
        self.shown = 0
        self.hidden = 0
        self.redraws = 0
        self.inserted: List[Tuple[str, bool]] = []

    def show_indicator(self) -> None:
        self.shown += 1

    def hide_indicator(self) -> None:
        self.hidden += 1

    def request_redraw(self) -> None:
        self.redraws += 1

    async def insert_text(self, text: str, on_new_line: bool = False) -> None:
        self.inserted.append((text, on_new_line))


@pytest.fixture
def host() -> RecordingHost:
    return RecordingHost()


@pytest.fixture
def python_document() -> TextDocument:
    return TextDocument(
        uri="file:///repo/app.py",
        text="def add(a, b):\n    return ",
        language_id="python",
    )
