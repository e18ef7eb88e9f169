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

"""Disabled-file filtering for inline completions.

Users can switch completions off for files matching glob patterns,
e.g. ``*.md`` or ``secrets/**``. Patterns are matched against the path
relative to the workspace root and against the bare file name.
"""

from fnmatch import fnmatch
from pathlib import Path, PurePosixPath
from typing import Iterable, List, Optional, Sequence


def normalize_patterns(patterns: Iterable[str]) -> List[str]:
    """Strip blanks and surrounding whitespace from patterns."""
    return [p.strip() for p in patterns if p and p.strip()]


def relative_posix_path(file_path: str, workspace_roots: Optional[Sequence[str]] = None) -> str:
    """Return ``file_path`` relative to the first workspace root containing it."""
    path = Path(file_path)
    for root in workspace_roots or ():
        try:
            return PurePosixPath(path.relative_to(Path(root))).as_posix()
        except ValueError:
            continue
    return PurePosixPath(path).as_posix()


def matches_pattern(relative_path: str, pattern: str) -> bool:
    """Check a single glob pattern.

    Example:
        >>> matches_pattern("docs/readme.md", "*.md")
        True
        >>> matches_pattern("secrets/prod/key.txt", "secrets/**")
        True
        >>> matches_pattern("app.env", "**/*.env")
        True
    """
    name = PurePosixPath(relative_path).name
    if fnmatch(relative_path, pattern) or fnmatch(name, pattern):
        return True
    # "**/" also matches zero directories
    if pattern.startswith("**/"):
        return matches_pattern(relative_path, pattern[3:])
    return False


def is_file_disabled(
    file_path: str,
    patterns: Iterable[str],
    workspace_roots: Optional[Sequence[str]] = None,
) -> bool:
    """Check if completions are disabled for a file.

    Args:
        file_path: Path of the document
        patterns: Glob patterns from settings
        workspace_roots: Roots used to relativize ``file_path``

    Returns:
        True if any pattern matches
    """
    effective = normalize_patterns(patterns)
    if not effective:
        return False
    relative = relative_posix_path(file_path, workspace_roots)
    return any(matches_pattern(relative, pattern) for pattern in effective)
