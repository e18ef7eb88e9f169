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

"""Tracks ranges the user recently edited so other files can see them."""

import time
from dataclasses import dataclass
from typing import Callable, List, Tuple

from victor_autocomplete.protocol import TextChange, TextDocument

MAX_RECENT_RANGES = 5
MAX_RANGE_AGE_SECONDS = 120.0
CONTEXT_LINES = 2


@dataclass(frozen=True)
class RecentlyEditedRange:
    """Lines around an edit, captured right after it was applied."""

    filepath: str
    start_line: int
    end_line: int
    lines: Tuple[str, ...]
    timestamp: float

    @property
    def content(self) -> str:
        return "\n".join(self.lines)

    def overlaps(self, other: "RecentlyEditedRange") -> bool:
        return (
            self.filepath == other.filepath
            and self.start_line <= other.end_line
            and other.start_line <= self.end_line
        )


class RecentlyEditedTracker:
    """Keeps the most recent edited ranges, newest first.

    Ranges older than ``max_age_seconds`` are dropped on read. A new range
    that overlaps an existing one in the same file replaces it.
    """

    def __init__(
        self,
        max_ranges: int = MAX_RECENT_RANGES,
        max_age_seconds: float = MAX_RANGE_AGE_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_ranges = max_ranges
        self.max_age_seconds = max_age_seconds
        self._clock = clock
        self._ranges: List[RecentlyEditedRange] = []

    def record(self, document: TextDocument, change: TextChange) -> RecentlyEditedRange:
        """Record the lines touched by ``change`` in the already-updated ``document``."""
        lines = document.lines
        first = document.position_at(change.offset).line
        last = document.position_at(change.offset + len(change.inserted_text)).line
        start = max(0, first - CONTEXT_LINES)
        end = min(len(lines) - 1, last + CONTEXT_LINES)

        edited = RecentlyEditedRange(
            filepath=document.file_path,
            start_line=start,
            end_line=end,
            lines=tuple(lines[start : end + 1]),
            timestamp=self._clock(),
        )
        self._ranges = [r for r in self._ranges if not r.overlaps(edited)]
        self._ranges.insert(0, edited)
        del self._ranges[self.max_ranges :]
        return edited

    def get_ranges(self, exclude_filepath: str = "") -> List[RecentlyEditedRange]:
        """Fresh ranges from files other than ``exclude_filepath``, newest first."""
        cutoff = self._clock() - self.max_age_seconds
        self._ranges = [r for r in self._ranges if r.timestamp >= cutoff]
        return [r for r in self._ranges if r.filepath != exclude_filepath]

    def clear(self) -> None:
        self._ranges.clear()

    def __len__(self) -> int:
        return len(self._ranges)
