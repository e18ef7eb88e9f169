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

"""Tree-sitter parsers and queries for context gathering.

Grammars come from the pre-compiled ``tree-sitter-<language>`` packages
(tree-sitter 0.25+ API). Only the languages autocomplete gathers imports
and definitions for are listed here.
"""

from typing import TYPE_CHECKING, Dict, List, Optional, Tuple

from tree_sitter import Language, Parser, Query, QueryCursor

if TYPE_CHECKING:
    from tree_sitter import Node, Tree


# Format: "language_name": ("module_name", "function_name")
LANGUAGE_MODULES: Dict[str, Tuple[str, str]] = {
    "python": ("tree_sitter_python", "language"),
    "javascript": ("tree_sitter_javascript", "language"),
    "typescript": ("tree_sitter_typescript", "language_typescript"),
    "tsx": ("tree_sitter_typescript", "language_tsx"),
    "go": ("tree_sitter_go", "language"),
    "rust": ("tree_sitter_rust", "language"),
    "java": ("tree_sitter_java", "language"),
}

# Editor language id -> grammar name
EDITOR_LANGUAGE_IDS: Dict[str, str] = {
    "python": "python",
    "javascript": "javascript",
    "javascriptreact": "javascript",
    "typescript": "typescript",
    "typescriptreact": "tsx",
    "go": "go",
    "rust": "rust",
    "java": "java",
}

# Each capture named @import is one import statement
IMPORT_QUERIES: Dict[str, str] = {
    "python": "(import_statement) @import (import_from_statement) @import",
    "javascript": "(import_statement) @import",
    "typescript": "(import_statement) @import",
    "tsx": "(import_statement) @import",
    "go": "(import_declaration) @import",
    "rust": "(use_declaration) @import",
    "java": "(import_declaration) @import",
}

# @name is the defined identifier, @def the whole definition
DEFINITION_QUERIES: Dict[str, str] = {
    "python": """
        (function_definition name: (identifier) @name) @def
        (class_definition name: (identifier) @name) @def
    """,
    "javascript": """
        (function_declaration name: (identifier) @name) @def
        (class_declaration name: (identifier) @name) @def
    """,
    "typescript": """
        (function_declaration name: (identifier) @name) @def
        (class_declaration name: (type_identifier) @name) @def
        (interface_declaration name: (type_identifier) @name) @def
        (type_alias_declaration name: (type_identifier) @name) @def
    """,
    "tsx": """
        (function_declaration name: (identifier) @name) @def
        (class_declaration name: (type_identifier) @name) @def
        (interface_declaration name: (type_identifier) @name) @def
    """,
    "go": """
        (function_declaration name: (identifier) @name) @def
        (type_declaration (type_spec name: (type_identifier) @name)) @def
    """,
    "rust": """
        (function_item name: (identifier) @name) @def
        (struct_item name: (type_identifier) @name) @def
        (enum_item name: (type_identifier) @name) @def
    """,
    "java": """
        (method_declaration name: (identifier) @name) @def
        (class_declaration name: (identifier) @name) @def
    """,
}

_language_cache: Dict[str, Language] = {}
_parser_cache: Dict[str, Parser] = {}


def grammar_for(language_id: str) -> Optional[str]:
    """Map an editor language id to a grammar name, if one is supported."""
    return EDITOR_LANGUAGE_IDS.get((language_id or "").lower())


def get_language(language: str) -> Language:
    """Load a tree-sitter Language from its pre-compiled package.

    Raises:
        ValueError: If the language has no grammar mapping
        ImportError: If the grammar package is not installed
    """
    if language in _language_cache:
        return _language_cache[language]

    module_info = LANGUAGE_MODULES.get(language)
    if not module_info:
        raise ValueError(f"Unsupported language for tree-sitter: {language}")

    module_name, func_name = module_info
    try:
        language_module = __import__(module_name)
    except ImportError:
        raise ImportError(
            f"Language package '{module_name}' not installed. "
            f"Install it with: pip install {module_name.replace('_', '-')}"
        )

    lang_obj = getattr(language_module, func_name)()
    # Older grammars expose a PyCapsule; wrap it
    lang = lang_obj if isinstance(lang_obj, Language) else Language(lang_obj)
    _language_cache[language] = lang
    return lang


def get_parser(language: str) -> Parser:
    """Return a cached Parser for the language."""
    if language in _parser_cache:
        return _parser_cache[language]
    parser = Parser(get_language(language))
    _parser_cache[language] = parser
    return parser


def parse(source: str, language: str) -> "Tree":
    return get_parser(language).parse(source.encode("utf-8"))


def run_query(tree: "Tree", query_src: str, language: str) -> Dict[str, List["Node"]]:
    """Run a query and return nodes grouped by capture name."""
    query = Query(get_language(language), query_src)
    return QueryCursor(query).captures(tree.root_node)


def run_query_matches(
    tree: "Tree", query_src: str, language: str
) -> List[Dict[str, List["Node"]]]:
    """Run a query and return the captures of each match.

    Unlike ``run_query`` this keeps captures of one match together, so
    ``@name`` can be paired with its ``@def``.
    """
    query = Query(get_language(language), query_src)
    return [captures for _, captures in QueryCursor(query).matches(tree.root_node)]


def node_text(node: "Node") -> str:
    text = node.text
    return text.decode("utf-8", errors="replace") if text is not None else ""
