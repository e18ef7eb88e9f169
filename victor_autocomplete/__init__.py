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

"""Inline code completion engine.

Turns an editor cursor position into a single streamed, fill-in-middle
suggestion with two-stage (first line, then the rest) acceptance.

Example usage:
    from victor_autocomplete import (
        InlineCompletionProvider,
        Position,
        TextDocument,
        load_settings,
    )

    provider = InlineCompletionProvider(model_client, settings=load_settings("victor.yaml"))
    document = TextDocument(uri="file:///src/app.py", text=source, language_id="python")

    item = await provider.provide_inline_completion(document, Position(line=12, character=8))
    if item is not None:
        print(item.insert_text)
        await provider.accept()
"""

from victor_autocomplete.errors import (
    AutocompleteError,
    ConfigurationError,
    ContextGatherError,
    InvalidTransitionError,
    ModelClientError,
    StreamAbortedError,
    TemplateNotFoundError,
)
from victor_autocomplete.protocol import (
    ACCEPT_COMMAND,
    DISMISS_COMMAND,
    CancellationToken,
    CompletionMetrics,
    CompletionTriggerKind,
    InlineCompletionContext,
    InlineCompletionItem,
    Position,
    SelectedCompletionInfo,
    TextChange,
    TextDocument,
)
from victor_autocomplete.config import (
    AutocompleteSettings,
    MultilineMode,
    load_settings,
    settings_from_mapping,
)
from victor_autocomplete.cache import CompletionCache
from victor_autocomplete.debouncer import AutocompleteDebouncer, Debouncer
from victor_autocomplete.client import (
    CompletionClientAdapter,
    CompletionModelClient,
    ModelClient,
)
from victor_autocomplete.host import ConsoleEditorHost, EditorHost, NullEditorHost
from victor_autocomplete.state import (
    CompletionPreview,
    CompletionRequest,
    CompletionSession,
    CompletionStatus,
    clean_markdown_code_blocks,
    split_completion,
)
from victor_autocomplete.generator import CompletionGenerator
from victor_autocomplete.provider import InlineCompletionProvider, validate_trigger

__all__ = [
    # Errors
    "AutocompleteError",
    "ConfigurationError",
    "ContextGatherError",
    "InvalidTransitionError",
    "ModelClientError",
    "StreamAbortedError",
    "TemplateNotFoundError",
    # Protocol types
    "ACCEPT_COMMAND",
    "DISMISS_COMMAND",
    "CancellationToken",
    "CompletionMetrics",
    "CompletionTriggerKind",
    "InlineCompletionContext",
    "InlineCompletionItem",
    "Position",
    "SelectedCompletionInfo",
    "TextChange",
    "TextDocument",
    # Configuration
    "AutocompleteSettings",
    "MultilineMode",
    "load_settings",
    "settings_from_mapping",
    # Cache and debouncing
    "CompletionCache",
    "AutocompleteDebouncer",
    "Debouncer",
    # Model client and host
    "CompletionClientAdapter",
    "CompletionModelClient",
    "ModelClient",
    "ConsoleEditorHost",
    "EditorHost",
    "NullEditorHost",
    # State machine
    "CompletionPreview",
    "CompletionRequest",
    "CompletionSession",
    "CompletionStatus",
    "clean_markdown_code_blocks",
    "split_completion",
    # Generation
    "CompletionGenerator",
    "InlineCompletionProvider",
    "validate_trigger",
]
