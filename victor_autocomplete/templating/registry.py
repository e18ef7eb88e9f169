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

"""Template registry.

Selects a FIM template for a model identifier using an ordered list of
case-insensitive substring rules. Rules are evaluated top to bottom and
the first match wins; when nothing matches the default template is
returned, so selection never fails.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from victor_autocomplete.errors import TemplateNotFoundError
from victor_autocomplete.templating.templates import (
    BUILTIN_TEMPLATES,
    CODEGEMMA_FIM,
    CODELLAMA_FIM,
    CODESTRAL_MULTIFILE_FIM,
    DEEPSEEK_FIM,
    DEFAULT_TEMPLATE,
    GEMINI_FIM,
    HOLE_FILLER,
    QWEN_CODER_FIM,
    SEED_CODER_FIM,
    STABLE_CODE_FIM,
    Template,
)

logger = logging.getLogger(__name__)

ModelPredicate = Callable[[str], bool]


def contains_all(*words: str) -> ModelPredicate:
    """Predicate matching identifiers that contain every word."""
    return lambda model: all(word in model for word in words)


def contains_any(*words: str) -> ModelPredicate:
    """Predicate matching identifiers that contain at least one word."""
    return lambda model: any(word in model for word in words)


@dataclass(frozen=True)
class TemplateRule:
    """A named predicate over a lower-cased model identifier."""

    name: str
    matches: ModelPredicate
    template: Template


DEFAULT_RULES: List[TemplateRule] = [
    TemplateRule("qwen-coder", contains_all("qwen", "coder"), QWEN_CODER_FIM),
    TemplateRule("seed-coder", contains_all("seed", "coder"), SEED_CODER_FIM),
    TemplateRule(
        "starcoder-family",
        contains_any(
            "starcoder", "star-coder", "starchat", "octocoder", "stable", "codeqwen", "qwen"
        ),
        STABLE_CODE_FIM,
    ),
    TemplateRule("codestral", contains_any("codestral"), CODESTRAL_MULTIFILE_FIM),
    TemplateRule("gemini", contains_any("gemini"), GEMINI_FIM),
    TemplateRule("codegemma", contains_any("codegemma"), CODEGEMMA_FIM),
    TemplateRule("codellama", contains_any("codellama"), CODELLAMA_FIM),
    TemplateRule("deepseek", contains_any("deepseek"), DEEPSEEK_FIM),
    TemplateRule(
        "chat-models",
        contains_any("gpt", "davinci-002", "claude", "granite3", "granite-3"),
        HOLE_FILLER,
    ),
]


class TemplateRegistry:
    """Ordered model-to-template rules.

    Supports:
    - First-match-wins selection with a guaranteed default
    - Registering extra rules ahead of (or after) the built-ins
    - Lookup of templates by id
    """

    def __init__(
        self,
        rules: Optional[List[TemplateRule]] = None,
        default: Template = DEFAULT_TEMPLATE,
    ):
        """Initialize the registry.

        Args:
            rules: Ordered rules (defaults to the built-in rules)
            default: Template returned when no rule matches
        """
        self._rules: List[TemplateRule] = list(DEFAULT_RULES if rules is None else rules)
        self._default = default
        self._templates: Dict[str, Template] = {t.id: t for t in BUILTIN_TEMPLATES}
        self._templates[default.id] = default
        for rule in self._rules:
            self._templates.setdefault(rule.template.id, rule.template)

    @property
    def default(self) -> Template:
        return self._default

    @property
    def rules(self) -> List[TemplateRule]:
        return list(self._rules)

    def register_rule(self, rule: TemplateRule, first: bool = True) -> None:
        """Register a rule.

        Args:
            rule: The rule to add
            first: Evaluate before existing rules (default) or after them
        """
        if first:
            self._rules.insert(0, rule)
        else:
            self._rules.append(rule)
        self._templates[rule.template.id] = rule.template
        logger.debug(f"Registered template rule: {rule.name} -> {rule.template.id}")

    def select_template(self, model: str) -> Template:
        """Select the template for a model identifier.

        Args:
            model: Model identifier, e.g. ``Qwen2.5-Coder-7B``

        Returns:
            The first matching template, or the default
        """
        lowered = (model or "").lower()
        for rule in self._rules:
            if rule.matches(lowered):
                return rule.template
        return self._default

    def get(self, template_id: str) -> Template:
        """Get a template by id.

        Raises:
            TemplateNotFoundError: If no template has that id
        """
        try:
            return self._templates[template_id]
        except KeyError:
            raise TemplateNotFoundError(f"Unknown template: {template_id}") from None

    def list_templates(self) -> List[str]:
        return sorted(self._templates)


# Global registry singleton
_template_registry: Optional[TemplateRegistry] = None


def get_template_registry() -> TemplateRegistry:
    """Get the global template registry.

    Returns:
        The singleton registry instance
    """
    global _template_registry
    if _template_registry is None:
        _template_registry = TemplateRegistry()
    return _template_registry


def reset_template_registry() -> None:
    """Reset the global template registry.

    Useful for testing.
    """
    global _template_registry
    _template_registry = None


def select_template(model: str) -> Template:
    """Select a template using the global registry."""
    return get_template_registry().select_template(model)
