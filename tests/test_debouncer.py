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

"""Tests for the request debouncer and the callback debouncer."""

import asyncio
import logging

import pytest

from victor_autocomplete.debouncer import AutocompleteDebouncer, Debouncer


class TestAutocompleteDebouncer:
    """Tests for AutocompleteDebouncer."""

    @pytest.mark.asyncio
    async def test_only_last_of_rapid_calls_proceeds(self):
        """Calls at 0, 10 and 20ms with a 50ms delay: only the last proceeds."""
        debouncer = AutocompleteDebouncer()

        async def call(after_ms: int) -> bool:
            await asyncio.sleep(after_ms / 1000)
            return await debouncer.should_skip(50)

        results = await asyncio.gather(call(0), call(10), call(20))

        assert results == [True, True, False]
        assert not debouncer.has_pending

    @pytest.mark.asyncio
    async def test_single_call_waits_full_delay(self):
        debouncer = AutocompleteDebouncer()
        loop = asyncio.get_running_loop()

        started = loop.time()
        skipped = await debouncer.should_skip(40)

        assert skipped is False
        assert loop.time() - started >= 0.035

    @pytest.mark.asyncio
    async def test_sequential_calls_each_proceed(self):
        debouncer = AutocompleteDebouncer()
        assert await debouncer.should_skip(1) is False
        assert await debouncer.should_skip(1) is False

    @pytest.mark.asyncio
    async def test_clear_resolves_waiters_as_skipped(self):
        debouncer = AutocompleteDebouncer()
        task = asyncio.create_task(debouncer.should_skip(10_000))
        await asyncio.sleep(0)
        assert debouncer.has_pending

        debouncer.clear()

        assert await asyncio.wait_for(task, timeout=1) is True
        assert not debouncer.has_pending

    @pytest.mark.asyncio
    async def test_cancelled_waiter_releases_timer(self):
        debouncer = AutocompleteDebouncer()
        task = asyncio.create_task(debouncer.should_skip(10_000))
        await asyncio.sleep(0)

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert not debouncer.has_pending


class TestDebouncer:
    """Tests for the callback Debouncer."""

    @pytest.mark.asyncio
    async def test_runs_once_with_latest_arguments(self):
        calls = []
        debouncer = Debouncer(lambda value: calls.append(value), delay_ms=20)

        debouncer.debounce(1)
        debouncer.debounce(2)
        debouncer.debounce(3)
        assert debouncer.is_pending()

        await asyncio.sleep(0.06)

        assert calls == [3]
        assert not debouncer.is_pending()

    @pytest.mark.asyncio
    async def test_cancel_prevents_callback(self):
        calls = []
        debouncer = Debouncer(lambda: calls.append(True), delay_ms=10)

        debouncer.debounce()
        debouncer.cancel()
        await asyncio.sleep(0.03)

        assert calls == []
        assert not debouncer.is_pending()

    @pytest.mark.asyncio
    async def test_set_delay_applies_to_next_call(self):
        calls = []
        debouncer = Debouncer(lambda: calls.append(True), delay_ms=10_000)
        debouncer.set_delay(5)
        assert debouncer.delay_ms == 5

        debouncer.debounce()
        await asyncio.sleep(0.03)

        assert calls == [True]

    def test_flush_runs_immediately(self):
        calls = []
        debouncer = Debouncer(lambda value: calls.append(value), delay_ms=10_000)

        debouncer.flush("now")

        assert calls == ["now"]

    def test_failing_callback_is_logged(self, caplog):
        def boom():
            raise RuntimeError("redraw failed")

        debouncer = Debouncer(boom, delay_ms=0)
        with caplog.at_level(logging.WARNING, logger="victor_autocomplete.debouncer"):
            debouncer.flush()

        assert "redraw failed" in caplog.text

    @pytest.mark.asyncio
    async def test_dispose_cancels_pending_call(self):
        calls = []
        debouncer = Debouncer(lambda: calls.append(True), delay_ms=10)
        debouncer.debounce()

        debouncer.dispose()
        await asyncio.sleep(0.03)

        assert calls == []
