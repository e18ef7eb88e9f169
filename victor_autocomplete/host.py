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

"""Editor host capability.

The engine touches the UI only through ``EditorHost``: a loading
indicator, a redraw request that makes the editor ask for the current
preview again, and text insertion for accepted completions.
"""

import logging
from typing import Optional, Protocol

from rich.console import Console
from rich.status import Status
from rich.text import Text

from victor_autocomplete.protocol import TextChange, TextDocument

logger = logging.getLogger(__name__)


class EditorHost(Protocol):
    def show_indicator(self) -> None: ...

    def hide_indicator(self) -> None: ...

    def request_redraw(self) -> None:
        """Ask the editor to re-query the provider for the inline item."""
        ...

    async def insert_text(self, text: str, on_new_line: bool = False) -> None:
        """Insert ``text`` at the cursor, on a fresh line when ``on_new_line``."""
        ...


class NullEditorHost:
    """Host that ignores every UI request."""

    def show_indicator(self) -> None:
        pass

    def hide_indicator(self) -> None:
        pass

    def request_redraw(self) -> None:
        pass

    async def insert_text(self, text: str, on_new_line: bool = False) -> None:
        pass


class ConsoleEditorHost:
    """Terminal host editing an in-memory document.

    Shows a spinner while a completion is generated and prints the buffer
    around the cursor with the preview as dimmed ghost text.
    """

    def __init__(
        self,
        document: TextDocument,
        cursor_offset: int = 0,
        console: Optional[Console] = None,
    ):
        self.document = document
        self.cursor_offset = cursor_offset
        self.console = console or Console()
        self.redraw_requests = 0
        self._status: Optional[Status] = None

    def show_indicator(self) -> None:
        if self._status is None:
            self._status = self.console.status("[dim]Generating completion...[/]")
            self._status.start()

    def hide_indicator(self) -> None:
        if self._status is not None:
            self._status.stop()
            self._status = None

    def request_redraw(self) -> None:
        self.redraw_requests += 1

    def render(self, preview: str = "") -> None:
        text = self.document.text
        line = Text(text[: self.cursor_offset])
        if preview:
            line.append(preview, style="dim italic")
        line.append(text[self.cursor_offset :])
        self.console.print(line)

    def apply_change(self, change: TextChange) -> None:
        """Apply an edit to the buffer and move the cursor after it."""
        text = self.document.text
        end = change.offset + change.removed_length
        self.document.text = text[: change.offset] + change.inserted_text + text[end:]
        self.document.version += 1
        self.cursor_offset = change.offset + len(change.inserted_text)

    async def insert_text(self, text: str, on_new_line: bool = False) -> None:
        if on_new_line:
            text = "\n" + text
        self.apply_change(TextChange(offset=self.cursor_offset, inserted_text=text))
        self.console.print(f"[green]+ Inserted:[/] {text!r}")
