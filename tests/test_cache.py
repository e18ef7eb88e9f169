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

"""Tests for the completion cache."""

from unittest.mock import patch

from victor_autocomplete.cache import CompletionCache, hash_text
from victor_autocomplete.protocol import TextChange

DOC = "file:///repo/a.py"
DOC2 = "file:///repo/b.py"


class TestCompletionCache:
    """Tests for CompletionCache."""

    def test_get_returns_stored_completion(self):
        cache = CompletionCache()
        cache.set(DOC, "abc", 3, "X")
        assert cache.get(DOC, "abc", 3) == "X"

    def test_miss_is_none(self):
        cache = CompletionCache()
        assert cache.get(DOC, "abc", 3) is None

    def test_other_documents_do_not_evict(self):
        cache = CompletionCache()
        cache.set(DOC, "abc", 3, "X")
        cache.set(DOC2, "xyz", 1, "Y")

        assert cache.get(DOC, "abc", 3) == "X"
        assert cache.get(DOC2, "xyz", 1) == "Y"
        assert len(cache) == 2

    def test_keyed_on_exact_text_and_offset(self):
        cache = CompletionCache()
        cache.set(DOC, "abc", 3, "X")

        # Edited text misses; the old pair still hits until replaced
        assert cache.get(DOC, "abcd", 3) is None
        assert cache.get(DOC, "abc", 2) is None
        assert cache.get(DOC, "abc", 3) == "X"

    def test_set_replaces_entry_for_document(self):
        cache = CompletionCache()
        cache.set(DOC, "abc", 3, "X")
        cache.set(DOC, "abcd", 4, "Y")

        assert cache.get(DOC, "abc", 3) is None
        assert cache.get(DOC, "abcd", 4) == "Y"
        assert len(cache) == 1

    def test_entry_stores_hash_not_text(self):
        cache = CompletionCache()
        cache.set(DOC, "secret text", 0, "X")

        entry = cache.get_entry(DOC)
        assert entry.text_hash == hash_text("secret text")
        assert entry.cursor_offset == 0

    def test_invalidate(self):
        cache = CompletionCache()
        cache.set(DOC, "abc", 3, "X")

        assert cache.invalidate(DOC) is True
        assert cache.invalidate(DOC) is False
        assert DOC not in cache

    def test_inserting_previewed_text_keeps_entry(self):
        cache = CompletionCache()
        cache.set(DOC, "abc", 3, "def\nghi")

        invalidated = cache.handle_change(DOC, TextChange(offset=3, inserted_text="def"))

        assert invalidated is False
        assert DOC in cache

    def test_other_edits_invalidate(self):
        cache = CompletionCache()
        cache.set(DOC, "abc", 3, "def")

        assert cache.handle_change(DOC, TextChange(offset=3, inserted_text="x")) is True
        assert DOC not in cache

        cache.set(DOC, "abc", 3, "def")
        assert cache.handle_change(DOC, TextChange(offset=1, removed_length=1)) is True

        cache.set(DOC, "abc", 3, "def")
        assert cache.handle_change(DOC, TextChange(offset=2, inserted_text="def")) is True

    def test_change_without_entry(self):
        cache = CompletionCache()
        assert cache.handle_change(DOC, TextChange(offset=0, inserted_text="a")) is False

    def test_ttl_expiry(self):
        cache = CompletionCache(ttl_seconds=10)
        now = [1000.0]
        with patch("victor_autocomplete.cache.time.time", side_effect=lambda: now[0]):
            cache.set(DOC, "abc", 3, "X")
            now[0] = 1005.0
            assert cache.get(DOC, "abc", 3) == "X"
            now[0] = 1011.0
            assert cache.get(DOC, "abc", 3) is None
        assert DOC not in cache

    def test_clear(self):
        cache = CompletionCache()
        cache.set(DOC, "abc", 3, "X")
        cache.clear()
        assert len(cache) == 0
