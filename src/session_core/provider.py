from typing import Protocol, runtime_checkable

from session_core.errors import ProviderError


@runtime_checkable
class SummaryProvider(Protocol):
    async def create_message(
        self,
        model: str,
        max_tokens: int,
        temperature: float,
        messages: list[dict],
    ) -> str:
        """Non-streaming message creation (used for compaction/summarization)."""
        ...


def create_provider(provider_name: str, api_key: str) -> SummaryProvider:
    """Factory: create a SummaryProvider by name."""
    name = provider_name.strip().lower()
    if name == "anthropic":
        from session_core.providers.anthropic_provider import AnthropicProvider
        return AnthropicProvider(api_key)
    raise ProviderError(f"Unknown provider: {provider_name!r}. Supported: 'anthropic'", provider_name)
