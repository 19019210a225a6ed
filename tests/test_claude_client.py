from unittest.mock import MagicMock, patch

from app.config import settings
from app.services.claude_client import complete


def _message(*blocks):
    message = MagicMock()
    message.content = list(blocks)
    message.usage.input_tokens = 120
    message.usage.output_tokens = 30
    return message


def _block(block_type, text=""):
    block = MagicMock()
    block.type = block_type
    block.text = text
    return block


@patch("app.services.claude_client._get_client")
def test_complete_returns_first_text_block(mock_client):
    mock_client.return_value.messages.create.return_value = _message(
        _block("thinking"), _block("text", "Jawaban."), _block("text", "Lainnya.")
    )

    assert complete("PERTANYAAN: halo") == "Jawaban."
    kwargs = mock_client.return_value.messages.create.call_args.kwargs
    assert kwargs["model"] == settings.model_name
    assert kwargs["temperature"] == 0.0
    assert kwargs["max_tokens"] == settings.completion_max_tokens
    assert kwargs["messages"] == [{"role": "user", "content": "PERTANYAAN: halo"}]


@patch("app.services.claude_client._get_client")
def test_complete_without_text_block_is_empty(mock_client):
    mock_client.return_value.messages.create.return_value = _message()
    assert complete("halo", max_tokens=50) == ""
    assert mock_client.return_value.messages.create.call_args.kwargs["max_tokens"] == 50
