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

"""Snippet assembly for inline completion prompts.

``generate_snippets`` is the deterministic part: imports then
definitions, each in source order. ``AuxiliarySnippetProvider`` adds the
optional sources (recently edited ranges, working-tree diff, clipboard),
each raced against a short timeout so a slow source can never hold up a
request.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, TypeVar

from victor_autocomplete.context.gatherer import CodeContext
from victor_autocomplete.context.recently_edited import RecentlyEditedTracker
from victor_autocomplete.templating.snippets import (
    ClipboardSnippet,
    CodeSnippet,
    ContextSnippet,
    DiffSnippet,
    Snippet,
)
from victor_autocomplete.templating.templates import uri_basename

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_SNIPPET_TIMEOUT_MS = 100
DIFF_BUCKET_SECONDS = 10


class SnippetOptions(Protocol):
    include_imports: bool
    include_definitions: bool


def generate_snippets(
    context: CodeContext, options: SnippetOptions, current_filepath: str
) -> List[Snippet]:
    """Convert gathered context into ordered snippets.

    Args:
        context: Gathered code context
        options: Anything exposing ``include_imports``/``include_definitions``
        current_filepath: Path of the document being edited

    Returns:
        Import snippets followed by definition snippets
    """
    snippets: List[Snippet] = []

    if options.include_imports:
        basename = uri_basename(current_filepath)
        snippets.extend(
            ContextSnippet(
                filepath=f"context://imports/{basename}#{index}",
                content=statement,
            )
            for index, statement in enumerate(context.imports)
        )

    if options.include_definitions:
        snippets.extend(
            CodeSnippet(filepath=definition.filepath, content=definition.content)
            for definition in context.definitions
        )

    return snippets


@dataclass(frozen=True)
class ClipboardContent:
    text: str
    copied_at: str


class SnippetSources(Protocol):
    """Host capabilities backing the auxiliary snippet sources.

    Hosts may additionally expose ``get_last_file_save_timestamp() -> float``;
    when present it keys the diff cache instead of the 10 second bucket.
    """

    async def get_clipboard_content(self) -> ClipboardContent: ...

    async def get_diff(self) -> List[str]: ...


class DiffSnippetsCache:
    """Holds the diff snippets for a single timestamp key."""

    def __init__(self) -> None:
        self._cache: Dict[float, List[DiffSnippet]] = {}
        self._last_timestamp: Optional[float] = None

    def get(self, timestamp: float) -> Optional[List[DiffSnippet]]:
        return self._cache.get(timestamp)

    def set(self, timestamp: float, value: List[DiffSnippet]) -> List[DiffSnippet]:
        if self._last_timestamp != timestamp:
            self._cache.clear()
        self._last_timestamp = timestamp
        self._cache[timestamp] = value
        return value


async def race_with_timeout(
    source: Awaitable[List[T]], timeout_ms: int, name: str = "snippet source"
) -> List[T]:
    """Await ``source`` for at most ``timeout_ms``; timeouts and failures give ``[]``."""
    try:
        return await asyncio.wait_for(source, timeout=timeout_ms / 1000)
    except asyncio.TimeoutError:
        logger.debug(f"{name} timed out after {timeout_ms}ms")
        return []
    except Exception as e:
        logger.warning(f"{name} failed: {e}")
        return []


class AuxiliarySnippetProvider:
    """Collects recently edited, diff, and clipboard snippets."""

    def __init__(
        self,
        sources: Optional[SnippetSources] = None,
        tracker: Optional[RecentlyEditedTracker] = None,
        timeout_ms: int = DEFAULT_SNIPPET_TIMEOUT_MS,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the provider.

        Args:
            sources: Clipboard/diff capabilities; ``None`` disables both
            tracker: Recently edited range tracker
            timeout_ms: Per-source time limit
            clock: Wall clock used for the diff cache bucket
        """
        self.sources = sources
        self.tracker = tracker or RecentlyEditedTracker()
        self.timeout_ms = timeout_ms
        self._clock = clock
        self._diff_cache = DiffSnippetsCache()

    def recently_edited_snippets(self, current_filepath: str) -> List[Snippet]:
        return [
            CodeSnippet(filepath=r.filepath, content=r.content)
            for r in self.tracker.get_ranges(exclude_filepath=current_filepath)
        ]

    async def diff_snippets(self) -> List[Snippet]:
        if self.sources is None:
            return []

        timestamp = self._diff_timestamp()
        cached = self._diff_cache.get(timestamp)
        if cached is not None:
            return list(cached)

        try:
            diff = await self.sources.get_diff()
        except Exception as e:
            logger.warning(f"Error getting diff for autocomplete: {e}")
            diff = []

        snippets = self._diff_cache.set(timestamp, [DiffSnippet(content=item) for item in diff])
        return list(snippets)

    async def clipboard_snippets(self) -> List[Snippet]:
        if self.sources is None:
            return []
        content = await self.sources.get_clipboard_content()
        if not content.text:
            return []
        return [ClipboardSnippet(content=content.text, copied_at=content.copied_at)]

    async def gather(
        self,
        current_filepath: str,
        include_recently_edited: bool = True,
        include_diff: bool = True,
        include_clipboard: bool = True,
    ) -> List[Snippet]:
        """Collect auxiliary snippets in a fixed order: recent edits, diff, clipboard."""
        recent = self.recently_edited_snippets(current_filepath) if include_recently_edited else []

        pending: List[Awaitable[List[Any]]] = []
        if include_diff:
            pending.append(race_with_timeout(self.diff_snippets(), self.timeout_ms, "diff"))
        if include_clipboard:
            pending.append(
                race_with_timeout(self.clipboard_snippets(), self.timeout_ms, "clipboard")
            )

        snippets: List[Snippet] = list(recent)
        for result in await asyncio.gather(*pending):
            snippets.extend(result)
        return snippets

    def _diff_timestamp(self) -> float:
        last_save = getattr(self.sources, "get_last_file_save_timestamp", None)
        if callable(last_save):
            return last_save()
        now = self._clock()
        return (now // DIFF_BUCKET_SECONDS) * DIFF_BUCKET_SECONDS
