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

"""Prompt rendering for inline completions.

Turns a gathered code context and its snippets into the final prompt
string for the selected template, along with the resolved stop tokens
and generation options. Rendering is pure.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from victor_autocomplete.context.gatherer import CodeContext
from victor_autocomplete.languages import LanguageInfo, get_language_info
from victor_autocomplete.templating.registry import TemplateRegistry, get_template_registry
from victor_autocomplete.templating.snippets import Snippet, SnippetType
from victor_autocomplete.templating.templates import (
    FunctionTemplate,
    StringTemplate,
    Template,
    uri_basename,
)

DEFAULT_REPONAME = "myproject"


@dataclass(frozen=True)
class CompletionOptions:
    """Generation options handed to the model client."""

    stop_tokens: Tuple[str, ...]
    temperature: float
    max_tokens: int


@dataclass(frozen=True)
class PromptResult:
    """A rendered prompt, produced once per request."""

    prompt: str
    prefix: str
    suffix: str
    completion_options: CompletionOptions
    template_id: str = ""


@dataclass
class PromptOptions:
    """Per-request inputs to rendering that do not come from the document text."""

    model: str
    language: str = "plaintext"
    filepath: str = "untitled"
    workspace_roots: Sequence[str] = field(default_factory=tuple)
    temperature: float = 0.2
    max_tokens: int = 2048
    include_imports: bool = True
    include_definitions: bool = True


def build_prefix(context: CodeContext) -> str:
    """Preceding lines joined with the current line up to the cursor."""
    if context.preceding_lines:
        return "\n".join(context.preceding_lines) + "\n" + context.current_line
    return context.current_line


def build_suffix(context: CodeContext) -> str:
    """Rest of the current line plus the following lines, never empty."""
    suffix = context.current_line_suffix
    if context.following_lines:
        suffix += "\n" + "\n".join(context.following_lines)
    return suffix or "\n"


def format_snippets(snippets: Sequence[Snippet], language: LanguageInfo) -> str:
    """Plain-text rendering of snippets for templates without a compiler."""
    blocks: List[str] = []
    for snippet in snippets:
        match snippet.type:
            case SnippetType.CODE:
                header = language.path_comment(uri_basename(snippet.filepath))
                blocks.append(f"{header}\n{snippet.content}")
            case _:
                blocks.append(snippet.content)
    return "\n\n".join(blocks)


def resolve_stop_tokens(template: Template, language: LanguageInfo) -> Tuple[str, ...]:
    """Template stop tokens followed by the language's stop words, deduplicated."""
    tokens: List[str] = []
    for token in (*template.stop_tokens, *language.stop_words):
        if token and token not in tokens:
            tokens.append(token)
    return tuple(tokens)


def render_string_template(
    text: str, prefix: str, suffix: str, filename: str, reponame: str, language: str
) -> str:
    values = {
        "prefix": prefix,
        "suffix": suffix,
        "filename": filename,
        "reponame": reponame,
        "language": language,
    }
    # Substitute in one pass so placeholder-like text inside the prefix stays literal
    result: List[str] = []
    rest = text
    while rest:
        start = rest.find("{{{")
        end = rest.find("}}}", start + 3) if start != -1 else -1
        if start == -1 or end == -1:
            result.append(rest)
            break
        name = rest[start + 3 : end]
        result.append(rest[:start])
        result.append(values.get(name, rest[start : end + 3]))
        rest = rest[end + 3 :]
    return "".join(result)


class PromptRenderer:
    """Renders prompts for inline completion using model-specific templates."""

    def __init__(self, registry: Optional[TemplateRegistry] = None):
        """Initialize the renderer.

        Args:
            registry: Template registry (uses global if not provided)
        """
        self._registry = registry or get_template_registry()

    def render(
        self,
        context: CodeContext,
        snippets: Sequence[Snippet],
        options: PromptOptions,
    ) -> PromptResult:
        """Render the prompt for one request.

        Args:
            context: Gathered code context
            snippets: Ordered snippets
            options: Model, language, file and generation options

        Returns:
            Prompt, compiled prefix/suffix and completion options
        """
        template = self._registry.select_template(options.model)
        language = get_language_info(options.language)
        reponame = (
            uri_basename(options.workspace_roots[0]) if options.workspace_roots else ""
        ) or DEFAULT_REPONAME
        workspace_roots = list(options.workspace_roots)

        prefix = build_prefix(context)
        suffix = build_suffix(context)

        if template.compile_prefix_suffix is not None:
            prefix, suffix = template.compile_prefix_suffix(
                prefix, suffix, options.filepath, reponame, list(snippets), workspace_roots
            )
        else:
            formatted = format_snippets(snippets, language)
            if formatted:
                prefix = f"{formatted}\n\n{prefix}"

        match template.render:
            case StringTemplate(text=text):
                prompt = render_string_template(
                    text, prefix, suffix, uri_basename(options.filepath), reponame, language.name
                )
            case FunctionTemplate(fn=fn):
                prompt = fn(
                    prefix,
                    suffix,
                    options.filepath,
                    reponame,
                    language.name,
                    list(snippets),
                    workspace_roots,
                )

        return PromptResult(
            prompt=prompt,
            prefix=prefix,
            suffix=suffix,
            completion_options=CompletionOptions(
                stop_tokens=resolve_stop_tokens(template, language),
                temperature=options.temperature,
                max_tokens=options.max_tokens,
            ),
            template_id=template.id,
        )
