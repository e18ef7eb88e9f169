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

"""Completion cache keyed by exact document text and cursor offset.

Holds at most one entry per document. A lookup hits only when the URI,
the hash of the full text, and the cursor offset all match, so a hit is
always safe to serve without recontacting the model.
"""

import hashlib
import logging
import time
from dataclasses import dataclass
from typing import Dict, Optional

from victor_autocomplete.protocol import TextChange

logger = logging.getLogger(__name__)


def hash_text(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class CacheEntry:
    """Last completion generated for a document."""

    document_uri: str
    text_hash: str
    cursor_offset: int
    completion_text: str
    timestamp: float

    def matches(self, text_hash: str, cursor_offset: int) -> bool:
        return self.text_hash == text_hash and self.cursor_offset == cursor_offset


class CompletionCache:
    """Single-entry-per-document completion cache."""

    def __init__(self, ttl_seconds: Optional[float] = None):
        """Initialize the cache.

        Args:
            ttl_seconds: Optional entry lifetime; ``None`` keeps entries until replaced
        """
        self._ttl = ttl_seconds
        self._entries: Dict[str, CacheEntry] = {}

    def get(self, document_uri: str, text: str, cursor_offset: int) -> Optional[str]:
        """Return the cached completion for this exact text and offset, if any."""
        entry = self._entries.get(document_uri)
        if entry is None:
            return None
        if self._ttl is not None and time.time() - entry.timestamp >= self._ttl:
            del self._entries[document_uri]
            return None
        if not entry.matches(hash_text(text), cursor_offset):
            return None
        logger.debug(f"Cache hit for {document_uri} at offset {cursor_offset}")
        return entry.completion_text

    def set(self, document_uri: str, text: str, cursor_offset: int, completion_text: str) -> None:
        """Store a completion, replacing any previous entry for the document."""
        self._entries[document_uri] = CacheEntry(
            document_uri=document_uri,
            text_hash=hash_text(text),
            cursor_offset=cursor_offset,
            completion_text=completion_text,
            timestamp=time.time(),
        )

    def get_entry(self, document_uri: str) -> Optional[CacheEntry]:
        return self._entries.get(document_uri)

    def invalidate(self, document_uri: str) -> bool:
        """Drop the entry for a document. Returns True if one existed."""
        return self._entries.pop(document_uri, None) is not None

    def handle_change(self, document_uri: str, change: TextChange) -> bool:
        """Invalidate after a document edit unless it inserted previewed text.

        Inserting (a leading part of) the cached completion exactly at the
        cached offset keeps the entry.

        Returns:
            True if the entry was invalidated
        """
        entry = self._entries.get(document_uri)
        if entry is None:
            return False
        if (
            change.is_pure_insertion
            and change.offset == entry.cursor_offset
            and entry.completion_text.startswith(change.inserted_text)
        ):
            return False
        return self.invalidate(document_uri)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, document_uri: str) -> bool:
        return document_uri in self._entries
