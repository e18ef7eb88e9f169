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

"""Model client capability used by the completion generator.

The engine never talks to a vendor API directly. Hosts supply an object
with ``create_completion_stream`` (preferred) or a plain ``complete``
coroutine, which ``as_streaming_client`` wraps into a one-chunk stream.
"""

import logging
from typing import AsyncIterator, Optional, Protocol, Sequence, Union, runtime_checkable

from victor_autocomplete.errors import ModelClientError, StreamAbortedError
from victor_autocomplete.protocol import CancellationToken

logger = logging.getLogger(__name__)


@runtime_checkable
class ModelClient(Protocol):
    """Streaming completion capability.

    The returned stream is finite and not restartable. Implementations
    should stop reading from the network once ``abort_signal`` is
    cancelled.
    """

    def create_completion_stream(
        self,
        prompt: str,
        *,
        stop_tokens: Sequence[str],
        temperature: float,
        max_tokens: int,
        abort_signal: CancellationToken,
    ) -> AsyncIterator[str]: ...


@runtime_checkable
class CompletionModelClient(Protocol):
    """Non-streaming completion capability."""

    async def complete(self, prompt: str) -> str: ...


def truncate_at_stop_tokens(text: str, stop_tokens: Sequence[str]) -> str:
    """Cut ``text`` at the earliest stop token it contains.

    >>> truncate_at_stop_tokens("a = 1<EOT>junk", ["<EOT>"])
    'a = 1'
    """
    cut = len(text)
    for token in stop_tokens:
        if not token:
            continue
        index = text.find(token)
        if index != -1:
            cut = min(cut, index)
    return text[:cut]


class CompletionClientAdapter:
    """Presents a non-streaming client as a single-chunk stream."""

    def __init__(self, client: CompletionModelClient):
        self._client = client

    async def create_completion_stream(
        self,
        prompt: str,
        *,
        stop_tokens: Sequence[str],
        temperature: float,
        max_tokens: int,
        abort_signal: CancellationToken,
    ) -> AsyncIterator[str]:
        if abort_signal.is_cancellation_requested:
            raise StreamAbortedError("Request aborted before sending")
        try:
            text = await self._client.complete(prompt)
        except StreamAbortedError:
            raise
        except Exception as e:
            raise ModelClientError(f"Completion request failed: {e}", cause=e) from e
        if abort_signal.is_cancellation_requested:
            raise StreamAbortedError("Request aborted while waiting for the model")
        text = truncate_at_stop_tokens(text, stop_tokens)
        if text:
            yield text


def as_streaming_client(
    client: Union[ModelClient, CompletionModelClient, None],
) -> Optional[ModelClient]:
    """Return a streaming view of ``client``.

    Raises:
        TypeError: If the client offers neither capability
    """
    if client is None:
        return None
    if isinstance(client, ModelClient):
        return client
    if isinstance(client, CompletionModelClient):
        return CompletionClientAdapter(client)
    raise TypeError(
        f"{type(client).__name__} provides neither create_completion_stream nor complete"
    )
