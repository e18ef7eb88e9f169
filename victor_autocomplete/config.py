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

"""Autocomplete settings.

Settings are loaded by the host and handed to the provider read-only.
Keys may be given in snake_case or in the camelCase form editors use
(``debounceDelayMs``), and can be read from a YAML file.
"""

import logging
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from victor_autocomplete.errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_DELAY_MS = 150
DEFAULT_MODEL = "mistralai/codestral-2501"
MIN_TYPED_LENGTH_FOR_COMPLETION = 4


class MultilineMode(str, Enum):
    """How multi-line completions are accepted."""

    AUTO = "auto"
    TWO_STAGE = "two_stage"


class AutocompleteSettings(BaseModel):
    """Configuration for the inline completion engine."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
        protected_namespaces=(),
    )

    enabled: bool = Field(default=True, description="Master switch for inline completions")
    debounce_delay_ms: int = Field(
        default=DEFAULT_DEBOUNCE_DELAY_MS,
        ge=0,
        description="Quiet period before a request starts generating",
    )
    use_cache: bool = Field(
        default=True, description="Reuse the last completion for unchanged input"
    )

    # Context sources
    include_imports: bool = Field(default=True, description="Add import statements as snippets")
    include_definitions: bool = Field(
        default=True, description="Add local definitions referenced near the cursor"
    )
    include_recently_edited: bool = Field(
        default=True, description="Add recently edited ranges from other files"
    )
    include_clipboard: bool = Field(default=True, description="Add clipboard contents")
    include_diff: bool = Field(default=True, description="Add the working-tree diff")
    snippet_timeout_ms: int = Field(
        default=100, ge=0, description="Upper bound for each auxiliary snippet source"
    )
    max_preceding_lines: int = Field(default=100, ge=0)
    max_following_lines: int = Field(default=50, ge=0)
    max_definitions: int = Field(default=5, ge=0)

    # Generation
    multiline_mode: MultilineMode = Field(default=MultilineMode.AUTO)
    model: str = Field(default=DEFAULT_MODEL, description="Active model identifier")
    temperature: float = Field(default=0.2, ge=0.0, le=2.0)
    max_tokens: int = Field(default=2048, gt=0)
    model_parameters: Dict[str, Any] = Field(
        default_factory=dict, description="Per-model overrides (temperature, max_tokens)"
    )

    # Triggering
    disabled_file_patterns: List[str] = Field(
        default_factory=list, description="Glob patterns of files without completions"
    )
    min_typed_length: int = Field(default=MIN_TYPED_LENGTH_FOR_COMPLETION, ge=0)
    first_line_accept_delay_ms: int = Field(
        default=50, ge=0, description="Delay before the remainder is offered"
    )

    @field_validator("disabled_file_patterns", mode="before")
    @classmethod
    def _split_patterns(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return [p.strip() for p in value.split(",") if p.strip()]
        return value

    @field_validator("multiline_mode", mode="before")
    @classmethod
    def _normalize_mode(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower().replace("-", "_")
        return value

    @property
    def effective_temperature(self) -> float:
        return float(self.model_parameters.get("temperature", self.temperature))

    @property
    def effective_max_tokens(self) -> int:
        return int(
            self.model_parameters.get(
                "max_tokens", self.model_parameters.get("maxTokens", self.max_tokens)
            )
        )


def settings_from_mapping(data: Optional[Mapping[str, Any]]) -> AutocompleteSettings:
    """Build settings from a plain mapping.

    Raises:
        ConfigurationError: If the mapping does not validate
    """
    try:
        return AutocompleteSettings.model_validate(dict(data or {}))
    except ValidationError as e:
        raise ConfigurationError(f"Invalid autocomplete settings: {e}") from e


def load_settings(path: Union[str, Path]) -> AutocompleteSettings:
    """Load settings from a YAML file.

    The file may hold the settings at the top level or under an
    ``autocomplete`` key:

    ```yaml
    autocomplete:
      debounce_delay_ms: 200
      model: qwen2.5-coder:1.5b
      disabled_file_patterns: ["*.md", "secrets/**"]
    ```

    Raises:
        ConfigurationError: If the file is unreadable, not YAML, or invalid
    """
    path = Path(path)
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Failed to load settings from {path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Settings file {path} must contain a mapping")

    section = data.get("autocomplete", data)
    if not isinstance(section, dict):
        raise ConfigurationError(f"'autocomplete' section in {path} must be a mapping")

    settings = settings_from_mapping(section)
    logger.debug(f"Loaded autocomplete settings from {path}")
    return settings
