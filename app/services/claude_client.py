import logging

import anthropic

from app.config import settings

logger = logging.getLogger(__name__)

_client: anthropic.Anthropic | None = None


def _get_client() -> anthropic.Anthropic:
    global _client
    if _client is None:
        _client = anthropic.Anthropic(api_key=settings.anthropic_api_key)
    return _client


def complete(prompt: str, temperature: float = 0.0, max_tokens: int | None = None) -> str:
    """
    Single-turn text completion with Claude.

    Args:
        prompt: Full prompt, sent as the user message.
        temperature: Sampling temperature (0 for reproducible answers).
        max_tokens: Output bound, defaults to ``settings.completion_max_tokens``.

    Returns:
        The text of the first content block, or an empty string.

    Raises:
        anthropic.APIError: On any API or connection failure.
    """
    client = _get_client()

    message = client.messages.create(
        model=settings.model_name,
        max_tokens=max_tokens or settings.completion_max_tokens,
        temperature=temperature,
        messages=[{"role": "user", "content": prompt}],
    )

    text = next((block.text for block in message.content if block.type == "text"), "")
    logger.info(
        "Completion done | input_tokens=%d | output_tokens=%d",
        message.usage.input_tokens,
        message.usage.output_tokens,
    )
    return text
