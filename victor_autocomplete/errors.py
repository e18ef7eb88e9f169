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

"""Exception hierarchy for the autocomplete engine.

Only ``ConfigurationError`` is meant to reach a host. Everything else is
raised and handled inside the engine and resolves to "no suggestion".
"""

from typing import Optional


class AutocompleteError(Exception):
    """Base class for all autocomplete errors."""


class ConfigurationError(AutocompleteError):
    """Settings could not be loaded or failed validation."""


class ContextGatherError(AutocompleteError):
    """Reading imports or definitions from a document failed."""

    def __init__(self, message: str, file_path: Optional[str] = None):
        super().__init__(message)
        self.file_path = file_path


class TemplateNotFoundError(AutocompleteError):
    """No template matched a model identifier.

    The registry always falls back to a default template, so this is only
    raised when a caller asks for a template by an unknown id.
    """


class StreamAbortedError(AutocompleteError):
    """A model stream stopped because its request was superseded or cancelled."""


class ModelClientError(AutocompleteError):
    """The model client failed to produce a completion."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class InvalidTransitionError(AutocompleteError):
    """A completion session was asked to make a transition it does not allow."""
