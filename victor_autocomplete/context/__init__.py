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

"""Code context for inline completion prompts."""

from victor_autocomplete.context.gatherer import (
    CodeContext,
    ContextGatherer,
    Definition,
    gather_context,
)
from victor_autocomplete.context.recently_edited import (
    RecentlyEditedRange,
    RecentlyEditedTracker,
)
from victor_autocomplete.context.snippet_provider import (
    AuxiliarySnippetProvider,
    ClipboardContent,
    DiffSnippetsCache,
    SnippetSources,
    generate_snippets,
)

__all__ = [
    "AuxiliarySnippetProvider",
    "ClipboardContent",
    "CodeContext",
    "ContextGatherer",
    "Definition",
    "DiffSnippetsCache",
    "RecentlyEditedRange",
    "RecentlyEditedTracker",
    "SnippetSources",
    "gather_context",
    "generate_snippets",
]
