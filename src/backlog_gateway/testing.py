"""Testing utilities shipped with backlog-gateway.

Provides ``FakeProvider`` for consumers to use in their test suites
without reimplementing the LLMProvider Protocol.

Usage::

    from backlog_gateway import LLMClient, LLMRequest
    from backlog_gateway.exceptions import ProviderRateLimitError
    from backlog_gateway.testing import FakeProvider

    fake = FakeProvider()
    fake.queue_error(ProviderRateLimitError("fake"))
    fake.queue_response('{"title": "Export to CSV"}')

    async with LLMClient(provider_instance=fake) as client:
        item = await client.send_structured(LLMRequest("sys", "user"))
        assert item == {"title": "Export to CSV"}
        assert fake.call_count == 2
"""

from __future__ import annotations

from collections import deque
from collections.abc import Callable
from typing import TYPE_CHECKING, ClassVar, Literal

from backlog_gateway.providers.base import BaseProvider
from backlog_gateway.types import LLMRequest, LLMResponse, ModelInfo, ModelPricing

if TYPE_CHECKING:
    from backlog_gateway.config import ProviderConfig


class FakeProvider(BaseProvider):
    """Scripted provider. Implements the ``LLMProvider`` Protocol.

    Resolution order in ``send_message()``:

    1. The next queued item (a reply string or an exception to raise)
    2. ``response_factory`` callable (if provided)
    3. ``default_content``
    """

    name: ClassVar[str] = "fake"
    DEFAULT_MODEL: ClassVar[str] = "fake-model"
    PRICING: ClassVar[dict[str, ModelPricing]] = {
        "fake-model": ModelPricing(input=1.00, output=2.00),
    }
    MODELS: ClassVar[tuple[ModelInfo, ...]] = (
        ModelInfo("fake-model", "Fake Model", "Scripted test model", 8_192, 1.00, 2.00),
    )

    def __init__(
        self,
        default_content: str = "{}",
        response_factory: Callable[[LLMRequest], str] | None = None,
        input_tokens: int = 100,
        output_tokens: int = 50,
        kind: Literal["online", "local"] = "online",
        available: bool = True,
    ) -> None:
        super().__init__()
        self.kind = kind
        self._default_content = default_content
        self._response_factory = response_factory
        self._input_tokens = input_tokens
        self._output_tokens = output_tokens
        self._available = available
        self._script: deque[str | BaseException] = deque()
        self.calls: list[LLMRequest] = []
        self.closed = False

    def pricing_for(self, model: str) -> ModelPricing | None:
        if self.kind == "local":
            return None
        return super().pricing_for(model)

    def queue_response(self, content: str) -> None:
        self._script.append(content)

    def queue_error(self, error: BaseException) -> None:
        self._script.append(error)

    async def send_message(self, request: LLMRequest) -> LLMResponse:
        """Return (or raise) the next scripted item."""
        self.calls.append(request)

        if self._script:
            item = self._script.popleft()
            if isinstance(item, BaseException):
                raise item
            content = item
        elif self._response_factory is not None:
            content = self._response_factory(request)
        else:
            content = self._default_content

        model = self.resolve_model(request)
        usage = self.build_usage(model, self._input_tokens, self._output_tokens)
        return LLMResponse(
            content=content,
            usage=usage,
            model=model,
            provider=self.name,
            latency_ms=0.0,
        )

    async def _probe(self) -> None:
        """Availability is fixed at construction."""

    async def is_available(self) -> bool:
        return self._available

    @property
    def call_count(self) -> int:
        """Number of ``send_message()`` calls recorded."""
        return len(self.calls)

    async def close(self) -> None:
        self.closed = True

    @classmethod
    def from_config(cls, config: ProviderConfig) -> FakeProvider:
        """Factory for the provider registry. Creates an empty ``FakeProvider``."""
        return cls()
