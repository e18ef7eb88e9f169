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

"""Fill-in-the-middle (FIM) prompt templates.

Each model family expects its own FIM control tokens. A template is
either a literal string with ``{{{prefix}}}``-style placeholders or a
function building the prompt, plus the stop tokens that end generation.
Some templates also compile multi-file context into the prefix.
"""

from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Callable, Optional, Sequence, Tuple, Union
from urllib.parse import unquote, urlparse

from victor_autocomplete.templating.snippets import Snippet, SnippetType, snippet_filepath

# (prefix, suffix, filepath, reponame, language, snippets, workspace_roots) -> prompt
TemplateFunction = Callable[
    [str, str, str, str, str, Sequence[Snippet], Sequence[str]], str
]

# (prefix, suffix, filepath, reponame, snippets, workspace_roots) -> (prefix, suffix)
PrefixSuffixCompiler = Callable[
    [str, str, str, str, Sequence[Snippet], Sequence[str]], Tuple[str, str]
]


@dataclass(frozen=True)
class StringTemplate:
    """Literal template with ``{{{name}}}`` placeholders."""

    text: str


@dataclass(frozen=True)
class FunctionTemplate:
    """Template that builds the prompt in code."""

    fn: TemplateFunction


@dataclass(frozen=True)
class Template:
    """An immutable FIM template.

    Attributes:
        id: Stable template identifier
        render: String or function template
        stop_tokens: Tokens that end generation for this template
        compile_prefix_suffix: Optional multi-file prefix/suffix compiler
    """

    id: str
    render: Union[StringTemplate, FunctionTemplate]
    stop_tokens: Tuple[str, ...] = field(default_factory=tuple)
    compile_prefix_suffix: Optional[PrefixSuffixCompiler] = None


def _path_from_uri(uri: str) -> str:
    parsed = urlparse(uri)
    if parsed.scheme == "file":
        return unquote(parsed.path)
    return uri


def uri_basename(uri: str) -> str:
    """Return the last path component of a URI or path."""
    return PurePosixPath(_path_from_uri(uri).replace("\\", "/")).name


def last_path_parts(workspace_roots: Sequence[str], filepath: str, n: int) -> str:
    """Return the last ``n`` components of ``filepath`` relative to its workspace.

    Example:
        >>> last_path_parts(["/repo"], "/repo/src/app/main.py", 2)
        'app/main.py'
    """
    path = PurePosixPath(_path_from_uri(filepath).replace("\\", "/"))
    for root in workspace_roots:
        root_path = PurePosixPath(_path_from_uri(root).replace("\\", "/"))
        try:
            path = path.relative_to(root_path)
            break
        except ValueError:
            continue
    parts = [part for part in path.parts if part != "/"]
    return "/".join(parts[-n:])


END_OF_TEXT = "<|endoftext|>"

# https://huggingface.co/stabilityai/stable-code-3b
STABLE_CODE_FIM = Template(
    id="stable-code",
    render=StringTemplate("<fim_prefix>{{{prefix}}}<fim_suffix>{{{suffix}}}<fim_middle>"),
    stop_tokens=(
        "<fim_prefix>",
        "<fim_suffix>",
        "<fim_middle>",
        "<file_sep>",
        END_OF_TEXT,
        "</fim_middle>",
        "</code>",
    ),
)

QWEN_CODER_FIM = Template(
    id="qwen-coder",
    render=StringTemplate("<|fim_prefix|>{{{prefix}}}<|fim_suffix|>{{{suffix}}}<|fim_middle|>"),
    stop_tokens=(
        END_OF_TEXT,
        "<|fim_prefix|>",
        "<|fim_middle|>",
        "<|fim_suffix|>",
        "<|fim_pad|>",
        "<|repo_name|>",
        "<|file_sep|>",
        "<|im_start|>",
        "<|im_end|>",
    ),
)

SEED_CODER_FIM = Template(
    id="seed-coder",
    render=StringTemplate("<[fim-prefix]>{{{prefix}}}<[fim-suffix]>{{{suffix}}}<[fim-middle]>"),
    stop_tokens=(
        "<[end▁of▁sentence]>",
        "<[fim-prefix]>",
        "<[fim-middle]>",
        "<[fim-suffix]>",
        "<[PAD▁TOKEN]>",
        "<[SEP▁TOKEN]>",
        "<[begin▁of▁sentence]>",
    ),
)


def _compile_codestral_multifile(
    prefix: str,
    suffix: str,
    filepath: str,
    reponame: str,
    snippets: Sequence[Snippet],
    workspace_roots: Sequence[str],
) -> Tuple[str, str]:
    """Lay snippets out as ``+++++ path`` file sections ahead of the prefix."""
    current = last_path_parts(workspace_roots, filepath, 2)
    if not snippets:
        if not prefix.strip() and not suffix.strip():
            return f"+++++ {current}\n{prefix}", suffix
        return prefix, suffix

    sections = []
    for snippet in snippets:
        if snippet.type == SnippetType.DIFF:
            sections.append(snippet.content)
            continue
        path = snippet_filepath(snippet) or "Untitled.txt"
        sections.append(f"+++++ {last_path_parts(workspace_roots, path, 2)}\n{snippet.content}")

    other_files = "\n\n".join(sections)
    return f"{other_files}\n\n+++++ {current}\n{prefix}", suffix


def _codestral_prompt(
    prefix: str,
    suffix: str,
    filepath: str,
    reponame: str,
    language: str,
    snippets: Sequence[Snippet],
    workspace_roots: Sequence[str],
) -> str:
    return f"[SUFFIX]{suffix}[PREFIX]{prefix}"


CODESTRAL_MULTIFILE_FIM = Template(
    id="codestral-multifile",
    render=FunctionTemplate(_codestral_prompt),
    stop_tokens=("[PREFIX]", "[SUFFIX]", "\n+++++ "),
    compile_prefix_suffix=_compile_codestral_multifile,
)

GEMINI_FIM = Template(
    id="gemini",
    render=StringTemplate("<FIM_PREFIX>{{{prefix}}}<FIM_SUFFIX>{{{suffix}}}<FIM_MIDDLE>"),
    stop_tokens=("<FIM_PREFIX>", "<FIM_SUFFIX>", "<FIM_MIDDLE>", "<eos>"),
)

CODEGEMMA_FIM = Template(
    id="codegemma",
    render=StringTemplate("<|fim_prefix|>{{{prefix}}}<|fim_suffix|>{{{suffix}}}<|fim_middle|>"),
    stop_tokens=(
        "<|fim_prefix|>",
        "<|fim_suffix|>",
        "<|fim_middle|>",
        "<|file_separator|>",
        "<end_of_turn>",
        "<eos>",
    ),
)

CODELLAMA_FIM = Template(
    id="codellama",
    render=StringTemplate("<PRE> {{{prefix}}} <SUF>{{{suffix}}} <MID>"),
    stop_tokens=("<PRE>", "<SUF>", "<MID>", "<EOT>"),
)

# https://huggingface.co/deepseek-ai/deepseek-coder-1.3b-base
DEEPSEEK_FIM = Template(
    id="deepseek",
    render=StringTemplate("<｜fim▁begin｜>{{{prefix}}}<｜fim▁hole｜>{{{suffix}}}<｜fim▁end｜>"),
    stop_tokens=("<｜fim▁begin｜>", "<｜fim▁hole｜>", "<｜fim▁end｜>", "//", "<｜end▁of▁sentence｜>"),
)

HOLE_FILLER_SYSTEM_MESSAGE = """You are a HOLE FILLER. You are provided with a file containing holes, formatted as '{{HOLE_NAME}}'. Your TASK is to complete with a string to replace this hole with, inside a <COMPLETION/> XML tag, including context-aware indentation, if needed.  All completions MUST be truthful, accurate, well-written and correct.

## EXAMPLE QUERY:

<QUERY>
function sum_evens(lim) {
  var sum = 0;
  for (var i = 0; i < lim; ++i) {
    {{FILL_HERE}}
  }
  return sum;
}
</QUERY>

TASK: Fill the {{FILL_HERE}} hole.

## CORRECT COMPLETION

<COMPLETION>if (i % 2 === 0) {
      sum += i;
    }</COMPLETION>

## EXAMPLE QUERY:

<QUERY>
def sum_list(lst):
  total = 0
  for x in lst:
  {{FILL_HERE}}
  return total

print sum_list([1, 2, 3])
</QUERY>

## CORRECT COMPLETION:

<COMPLETION>  total += x</COMPLETION>

## EXAMPLE QUERY:

The 5th {{FILL_HERE}} is Jupiter.

## CORRECT COMPLETION:

<COMPLETION>planet from the Sun</COMPLETION>

## EXAMPLE QUERY:

function hypothenuse(a, b) {
  return Math.sqrt({{FILL_HERE}}b ** 2);
}

## CORRECT COMPLETION:

<COMPLETION>a ** 2 + </COMPLETION>"""


def _hole_filler_prompt(
    prefix: str,
    suffix: str,
    filepath: str,
    reponame: str,
    language: str,
    snippets: Sequence[Snippet],
    workspace_roots: Sequence[str],
) -> str:
    return (
        HOLE_FILLER_SYSTEM_MESSAGE
        + f"\n\n<QUERY>\n{prefix}{{{{FILL_HERE}}}}{suffix}\n</QUERY>\n"
        + "TASK: Fill the {{FILL_HERE}} hole. Answer only with the CORRECT completion, "
        + "and NOTHING ELSE. Do it now.\n<COMPLETION>"
    )


# For chat models without native FIM support
HOLE_FILLER = Template(
    id="hole-filler",
    render=FunctionTemplate(_hole_filler_prompt),
    stop_tokens=("</COMPLETION>",),
)

BUILTIN_TEMPLATES: Tuple[Template, ...] = (
    STABLE_CODE_FIM,
    QWEN_CODER_FIM,
    SEED_CODER_FIM,
    CODESTRAL_MULTIFILE_FIM,
    GEMINI_FIM,
    CODEGEMMA_FIM,
    CODELLAMA_FIM,
    DEEPSEEK_FIM,
    HOLE_FILLER,
)

DEFAULT_TEMPLATE = STABLE_CODE_FIM
