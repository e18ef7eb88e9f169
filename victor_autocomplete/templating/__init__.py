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

"""Prompt templating for inline completion.

Selects a fill-in-middle template from the model identifier and renders
the gathered context into a prompt.

Example usage:
    from victor_autocomplete.templating import PromptOptions, PromptRenderer

    renderer = PromptRenderer()
    result = renderer.render(
        context,
        snippets,
        PromptOptions(model="qwen2.5-coder-7b", language="python", filepath="app.py"),
    )
    print(result.prompt)
"""

from victor_autocomplete.templating.snippets import (
    ClipboardSnippet,
    CodeSnippet,
    ContextSnippet,
    DiffSnippet,
    Snippet,
    SnippetType,
)
from victor_autocomplete.templating.templates import (
    BUILTIN_TEMPLATES,
    DEFAULT_TEMPLATE,
    FunctionTemplate,
    StringTemplate,
    Template,
)
from victor_autocomplete.templating.registry import (
    DEFAULT_RULES,
    TemplateRegistry,
    TemplateRule,
    get_template_registry,
    reset_template_registry,
    select_template,
)
from victor_autocomplete.templating.renderer import (
    CompletionOptions,
    PromptOptions,
    PromptRenderer,
    PromptResult,
)

__all__ = [
    # Snippets
    "ClipboardSnippet",
    "CodeSnippet",
    "ContextSnippet",
    "DiffSnippet",
    "Snippet",
    "SnippetType",
    # Templates
    "BUILTIN_TEMPLATES",
    "DEFAULT_TEMPLATE",
    "FunctionTemplate",
    "StringTemplate",
    "Template",
    # Registry
    "DEFAULT_RULES",
    "TemplateRegistry",
    "TemplateRule",
    "get_template_registry",
    "reset_template_registry",
    "select_template",
    # Rendering
    "CompletionOptions",
    "PromptOptions",
    "PromptRenderer",
    "PromptResult",
]
