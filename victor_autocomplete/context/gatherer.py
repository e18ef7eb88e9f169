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

"""Code context gathering.

Reads a bounded window of lines around the cursor and, when asked,
walks the file with tree-sitter for import statements and for local
definitions of symbols referenced near the cursor. Parse problems never
reach the caller: they degrade to a context without imports or
definitions.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, List, Optional, Set, Tuple

from victor_autocomplete.context.tree_sitter_manager import (
    DEFINITION_QUERIES,
    IMPORT_QUERIES,
    grammar_for,
    node_text,
    parse,
    run_query,
    run_query_matches,
)
from victor_autocomplete.errors import ContextGatherError
from victor_autocomplete.protocol import Position, TextDocument

if TYPE_CHECKING:
    from tree_sitter import Tree

logger = logging.getLogger(__name__)

_IDENTIFIER_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")


@dataclass(frozen=True)
class Definition:
    """A symbol definition placed into the prompt."""

    filepath: str
    content: str
    name: str = ""
    start_line: int = 0


@dataclass
class CodeContext:
    """Request-scoped view of the document around the cursor.

    Attributes:
        current_line: Current line up to the cursor
        current_line_suffix: Current line after the cursor
        preceding_lines: Lines above the cursor, oldest first
        following_lines: Lines below the cursor
        imports: Import statements in source order
        definitions: Referenced local definitions in source order
    """

    current_line: str
    preceding_lines: List[str] = field(default_factory=list)
    following_lines: List[str] = field(default_factory=list)
    imports: List[str] = field(default_factory=list)
    definitions: List[Definition] = field(default_factory=list)
    current_line_suffix: str = ""
    filepath: str = ""
    language: str = ""


class ContextGatherer:
    """Builds a bounded ``CodeContext`` for a cursor position."""

    def __init__(
        self,
        max_preceding_lines: int = 100,
        max_following_lines: int = 50,
        max_imports: int = 50,
        max_definitions: int = 5,
        max_definition_lines: int = 40,
        reference_window: int = 10,
    ):
        """Initialize the gatherer.

        Args:
            max_preceding_lines: Lines kept above the cursor
            max_following_lines: Lines kept below the cursor
            max_imports: Upper bound on collected import statements
            max_definitions: Upper bound on resolved definitions
            max_definition_lines: Definitions longer than this are truncated
            reference_window: Lines above the cursor scanned for referenced symbols
        """
        self.max_preceding_lines = max_preceding_lines
        self.max_following_lines = max_following_lines
        self.max_imports = max_imports
        self.max_definitions = max_definitions
        self.max_definition_lines = max_definition_lines
        self.reference_window = reference_window

    def gather_context(
        self,
        document: TextDocument,
        position: Position,
        include_imports: bool = True,
        include_definitions: bool = True,
    ) -> CodeContext:
        """Gather context around the cursor.

        Args:
            document: The document being edited
            position: Cursor position
            include_imports: Collect import statements
            include_definitions: Resolve definitions referenced near the cursor

        Returns:
            CodeContext for this request
        """
        lines = document.lines
        line = max(0, min(position.line, len(lines) - 1))
        text = lines[line]
        character = max(0, min(position.character, len(text)))

        preceding_start = max(0, line - self.max_preceding_lines)
        context = CodeContext(
            current_line=text[:character],
            current_line_suffix=text[character:],
            preceding_lines=lines[preceding_start:line],
            following_lines=lines[line + 1 : line + 1 + self.max_following_lines],
            filepath=document.file_path,
            language=document.language_id,
        )

        if not (include_imports or include_definitions):
            return context

        grammar = grammar_for(document.language_id)
        if grammar is None:
            return context

        try:
            tree = self._parse(document, grammar)
            if include_imports:
                context.imports = self._collect_imports(tree, grammar)
            if include_definitions:
                window = (preceding_start, line + self.max_following_lines)
                context.definitions = self._collect_definitions(
                    tree, grammar, document, Position(line, character), window
                )
        except ContextGatherError as e:
            logger.debug(f"Context gathering degraded for {document.file_name}: {e}")
            context.imports = []
            context.definitions = []

        return context

    def _parse(self, document: TextDocument, grammar: str) -> "Tree":
        try:
            return parse(document.text, grammar)
        except Exception as e:
            raise ContextGatherError(f"Failed to parse: {e}", document.file_path) from e

    def _collect_imports(self, tree: "Tree", grammar: str) -> List[str]:
        try:
            captures = run_query(tree, IMPORT_QUERIES[grammar], grammar)
        except Exception as e:
            raise ContextGatherError(f"Import query failed: {e}") from e

        nodes = sorted(captures.get("import", []), key=lambda n: n.start_byte)
        return [node_text(node) for node in nodes[: self.max_imports]]

    def _collect_definitions(
        self,
        tree: "Tree",
        grammar: str,
        document: TextDocument,
        position: Position,
        window: Tuple[int, int],
    ) -> List[Definition]:
        if self.max_definitions <= 0:
            return []

        referenced = self._referenced_symbols(document, position)
        if not referenced:
            return []

        try:
            matches = run_query_matches(tree, DEFINITION_QUERIES[grammar], grammar)
        except Exception as e:
            raise ContextGatherError(f"Definition query failed: {e}") from e

        found: List[Tuple[int, Definition]] = []
        seen: Set[str] = set()
        for captures in matches:
            names = captures.get("name", [])
            defs = captures.get("def", [])
            if not names or not defs:
                continue
            name = node_text(names[0])
            node = defs[0]
            start_row, end_row = node.start_point[0], node.end_point[0]
            if name not in referenced or name in seen:
                continue
            # Enclosing the cursor or already visible in the prompt
            if start_row <= position.line <= end_row:
                continue
            if window[0] <= start_row <= window[1]:
                continue
            seen.add(name)
            found.append(
                (
                    node.start_byte,
                    Definition(
                        filepath=document.file_path,
                        content=self._truncate(node_text(node)),
                        name=name,
                        start_line=start_row,
                    ),
                )
            )

        found.sort(key=lambda item: item[0])
        return [definition for _, definition in found[: self.max_definitions]]

    def _referenced_symbols(self, document: TextDocument, position: Position) -> Set[str]:
        lines = document.lines
        start = max(0, position.line - self.reference_window)
        nearby = lines[start : position.line] + [lines[position.line]]
        return set(_IDENTIFIER_RE.findall("\n".join(nearby)))

    def _truncate(self, content: str) -> str:
        lines = content.split("\n")
        if len(lines) <= self.max_definition_lines:
            return content
        return "\n".join(lines[: self.max_definition_lines])


def gather_context(
    document: TextDocument,
    position: Position,
    include_imports: bool = True,
    include_definitions: bool = True,
    gatherer: Optional[ContextGatherer] = None,
) -> CodeContext:
    """Gather context with a default or supplied gatherer."""
    return (gatherer or ContextGatherer()).gather_context(
        document, position, include_imports, include_definitions
    )
