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

"""Language information used by prompt rendering.

Maps editor language ids to a display name, a line comment marker and
the stop words derived from it. Language detection from file extension
and shebang is used when the host does not supply a language id.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple


@dataclass(frozen=True)
class LanguageInfo:
    """Autocomplete-relevant facts about a programming language."""

    language_id: str
    name: str
    line_comment: str = "//"
    extensions: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def stop_words(self) -> List[str]:
        """Stop tokens derived from the language.

        Snippets are rendered into the prefix under a ``<comment> Path:``
        header; a model that starts echoing one is done with the hole.
        """
        if not self.line_comment:
            return []
        return [f"\n{self.line_comment} Path:"]

    def path_comment(self, path: str) -> str:
        marker = self.line_comment or "//"
        return f"{marker} Path: {path}"


_LANGUAGES: List[LanguageInfo] = [
    LanguageInfo("python", "Python", "#", (".py", ".pyw", ".pyi")),
    LanguageInfo("javascript", "JavaScript", "//", (".js", ".jsx", ".mjs", ".cjs")),
    LanguageInfo("typescript", "TypeScript", "//", (".ts", ".mts", ".cts")),
    LanguageInfo("typescriptreact", "TypeScript", "//", (".tsx",)),
    LanguageInfo("rust", "Rust", "//", (".rs",)),
    LanguageInfo("go", "Go", "//", (".go",)),
    LanguageInfo("java", "Java", "//", (".java",)),
    LanguageInfo("c", "C", "//", (".c", ".h")),
    LanguageInfo("cpp", "C++", "//", (".cpp", ".cc", ".cxx", ".hpp")),
    LanguageInfo("csharp", "C#", "//", (".cs",)),
    LanguageInfo("ruby", "Ruby", "#", (".rb",)),
    LanguageInfo("php", "PHP", "//", (".php",)),
    LanguageInfo("swift", "Swift", "//", (".swift",)),
    LanguageInfo("kotlin", "Kotlin", "//", (".kt", ".kts")),
    LanguageInfo("scala", "Scala", "//", (".scala",)),
    LanguageInfo("r", "R", "#", (".r",)),
    LanguageInfo("sql", "SQL", "--", (".sql",)),
    LanguageInfo("shellscript", "Bash", "#", (".sh", ".bash", ".zsh")),
    LanguageInfo("lua", "Lua", "--", (".lua",)),
    LanguageInfo("yaml", "YAML", "#", (".yaml", ".yml")),
    LanguageInfo("toml", "TOML", "#", (".toml",)),
    LanguageInfo("html", "HTML", "", (".html", ".htm")),
    LanguageInfo("css", "CSS", "", (".css", ".scss", ".less")),
    LanguageInfo("json", "JSON", "", (".json",)),
    LanguageInfo("markdown", "Markdown", "", (".md",)),
]

LANGUAGES: Dict[str, LanguageInfo] = {info.language_id: info for info in _LANGUAGES}

# Editor ids that differ from ours
_ALIASES: Dict[str, str] = {
    "py": "python",
    "js": "javascript",
    "javascriptreact": "javascript",
    "ts": "typescript",
    "tsx": "typescriptreact",
    "bash": "shellscript",
    "sh": "shellscript",
    "zsh": "shellscript",
    "c++": "cpp",
    "c_sharp": "csharp",
}

_EXTENSION_MAP: Dict[str, str] = {
    ext: info.language_id for info in _LANGUAGES for ext in info.extensions
}

DEFAULT_LANGUAGE = LanguageInfo("plaintext", "Plain Text", "", ())


def get_language_info(language_id: Optional[str]) -> LanguageInfo:
    """Look up language info, falling back to plain text."""
    if not language_id:
        return DEFAULT_LANGUAGE
    key = language_id.lower()
    key = _ALIASES.get(key, key)
    return LANGUAGES.get(key, DEFAULT_LANGUAGE)


def detect_language(file_path: str, content: str = "") -> str:
    """Detect a language id from a file path and content.

    Args:
        file_path: Path to the file
        content: File content, used for shebang detection

    Returns:
        Language identifier, ``plaintext`` when unknown
    """
    ext = Path(file_path).suffix.lower()
    if ext in _EXTENSION_MAP:
        return _EXTENSION_MAP[ext]

    if content.startswith("#!"):
        first_line = content.split("\n")[0]
        if "python" in first_line:
            return "python"
        if "node" in first_line:
            return "javascript"
        if "ruby" in first_line:
            return "ruby"
        if "bash" in first_line or "sh" in first_line:
            return "shellscript"

    return DEFAULT_LANGUAGE.language_id
