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

"""Tests for completion lifecycle events."""

from victor_autocomplete.events import (
    CompletionAccepted,
    CompletionFailed,
    CompletionStarted,
    EventDispatcher,
)


class TestEventDispatcher:
    """Tests for EventDispatcher."""

    def test_listeners_receive_events_in_order(self):
        dispatcher = EventDispatcher()
        calls = []
        dispatcher.subscribe(lambda e: calls.append(("first", e)))
        dispatcher.subscribe(lambda e: calls.append(("second", e)))

        event = CompletionStarted("r1", "file:///a.py", 3)
        dispatcher.emit(event)

        assert calls == [("first", event), ("second", event)]

    def test_filter_by_event_type(self):
        dispatcher = EventDispatcher()
        failures = []
        dispatcher.subscribe(failures.append, CompletionFailed)

        dispatcher.emit(CompletionStarted("r1", "file:///a.py", 0))
        dispatcher.emit(CompletionFailed("r1", "boom"))

        assert failures == [CompletionFailed("r1", "boom")]

    def test_unsubscribe(self):
        dispatcher = EventDispatcher()
        received = []
        unsubscribe = dispatcher.subscribe(received.append)

        unsubscribe()
        dispatcher.emit(CompletionAccepted("r1", "x", "full"))

        assert received == []
        assert len(dispatcher) == 0
        assert dispatcher.unsubscribe(received.append) is False

    def test_failing_listener_does_not_stop_others(self):
        dispatcher = EventDispatcher()
        received = []

        def broken(event):
            raise RuntimeError("listener bug")

        dispatcher.subscribe(broken)
        dispatcher.subscribe(received.append)
        dispatcher.emit(CompletionAccepted("r1", "x", "full"))

        assert len(received) == 1

    def test_listener_may_unsubscribe_during_emit(self):
        dispatcher = EventDispatcher()
        received = []

        def once(event):
            received.append(event)
            dispatcher.unsubscribe(once)

        dispatcher.subscribe(once)
        dispatcher.emit(CompletionStarted("r1", "u", 0))
        dispatcher.emit(CompletionStarted("r2", "u", 0))

        assert [e.request_id for e in received] == ["r1"]

    def test_clear(self):
        dispatcher = EventDispatcher()
        dispatcher.subscribe(lambda e: None)
        dispatcher.clear()
        assert len(dispatcher) == 0
