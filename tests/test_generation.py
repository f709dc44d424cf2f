"""Tests for the Ollama text generator (client mocked)."""

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from casecite.agents.generation import TextGenerator
from casecite.agents.models import ChatMessage, UsageContext
from casecite.core.errors import GenerationError
from casecite.core.settings import GenerationSettings, PricingSettings

MESSAGES = [
    ChatMessage(role="system", content="You are an expert."),
    ChatMessage(role="user", content="Analyse."),
]
CONTEXT = UsageContext(case_id="c1", username="alice", action="initial-report")


def _response(content="# Report", prompt=1000, completion=500):
    return SimpleNamespace(
        message=SimpleNamespace(content=content),
        prompt_eval_count=prompt,
        eval_count=completion,
    )


@pytest.fixture()
def client():
    mock = MagicMock()
    mock.chat.return_value = _response()
    return mock


@pytest.fixture()
def usage_logger():
    return MagicMock()


@pytest.fixture()
def generator(client, usage_logger):
    return TextGenerator(
        GenerationSettings(), PricingSettings(), usage_logger=usage_logger, client=client
    )


def test_generate_returns_text_and_usage(generator):
    result = generator.generate(MESSAGES)
    assert result.text == "# Report"
    assert result.usage.prompt_tokens == 1000
    assert result.usage.completion_tokens == 500
    assert result.usage.total_tokens == 1500
    assert result.model == "qwen3:8b"


def test_generate_passes_options(generator, client):
    generator.generate(
        MESSAGES, model="qwen3:32b", temperature=0.25, max_tokens=2400, response_format="json"
    )
    kwargs = client.chat.call_args.kwargs
    assert kwargs["model"] == "qwen3:32b"
    assert kwargs["format"] == "json"
    assert kwargs["options"] == {"temperature": 0.25, "num_predict": 2400}
    assert kwargs["messages"][0] == {"role": "system", "content": "You are an expert."}


def test_default_temperature(generator, client):
    generator.generate(MESSAGES)
    assert client.chat.call_args.kwargs["options"]["temperature"] == 0.2


def test_success_logged_with_cost(generator, usage_logger):
    generator.generate(MESSAGES, metadata=CONTEXT)
    entry = usage_logger.log_ai_event.call_args.args[0]
    assert entry.status == "success"
    assert entry.action == "initial-report"
    assert entry.total_tokens == 1500
    assert entry.cost_usd == pytest.approx(0.45)


def test_no_log_without_metadata(generator, usage_logger):
    generator.generate(MESSAGES)
    usage_logger.log_ai_event.assert_not_called()


def test_missing_token_counts(generator, client, usage_logger):
    client.chat.return_value = _response(prompt=None, completion=None)
    result = generator.generate(MESSAGES, metadata=CONTEXT)
    assert result.usage.total_tokens is None
    entry = usage_logger.log_ai_event.call_args.args[0]
    assert entry.cost_usd is None


def test_client_failure_raises_and_logs(generator, client, usage_logger):
    client.chat.side_effect = ConnectionError("connection refused")
    with pytest.raises(GenerationError) as exc_info:
        generator.generate(MESSAGES, metadata=CONTEXT)
    assert exc_info.value.details == "connection refused"
    entry = usage_logger.log_ai_event.call_args.args[0]
    assert entry.status == "error"
    assert entry.error_message == "connection refused"


def test_empty_content_raises(generator, client, usage_logger):
    client.chat.return_value = _response(content="   ")
    with pytest.raises(GenerationError, match="empty"):
        generator.generate(MESSAGES, metadata=CONTEXT)
    assert usage_logger.log_ai_event.call_args.args[0].status == "error"


@pytest.mark.ollama
def test_live_generation():
    generator = TextGenerator(GenerationSettings(), PricingSettings())
    result = generator.generate(
        [ChatMessage(role="user", content="Reply with the single word OK.")],
        max_tokens=10,
    )
    assert result.text
