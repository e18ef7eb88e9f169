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

"""Snippet types consumed by prompt templates.

A snippet is a small unit of context (code, a diff, clipboard text, an
import line) placed into the prompt ahead of the prefix. Snippets are
immutable and their order is preserved from assembly to rendering.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Union


class SnippetType(str, Enum):
    """Discriminator for the snippet variants."""

    CODE = "code"
    DIFF = "diff"
    CLIPBOARD = "clipboard"
    CONTEXT = "context"


@dataclass(frozen=True)
class CodeSnippet:
    """Code from a real file (definitions, recently edited ranges)."""

    filepath: str
    content: str
    type: SnippetType = SnippetType.CODE


@dataclass(frozen=True)
class DiffSnippet:
    """A hunk of the working-tree diff."""

    content: str
    type: SnippetType = SnippetType.DIFF


@dataclass(frozen=True)
class ClipboardSnippet:
    """Clipboard contents with the time they were copied (ISO 8601)."""

    content: str
    copied_at: str
    type: SnippetType = SnippetType.CLIPBOARD


@dataclass(frozen=True)
class ContextSnippet:
    """General context such as import lines.

    ``filepath`` may be a synthetic locator like
    ``context://imports/main.py#0``.
    """

    filepath: str
    content: str
    type: SnippetType = SnippetType.CONTEXT


Snippet = Union[CodeSnippet, DiffSnippet, ClipboardSnippet, ContextSnippet]


def snippet_filepath(snippet: Snippet) -> str:
    """Return the snippet's path, or an empty string for path-less variants."""
    match snippet.type:
        case SnippetType.CODE | SnippetType.CONTEXT:
            return snippet.filepath
        case _:
            return ""
