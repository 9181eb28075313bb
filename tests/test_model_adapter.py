import asyncio
from unittest.mock import MagicMock, patch

import pytest
import requests

from core.exceptions import ModelAdapterError
from core.model_adapter import ModelAdapter


def _response(payload):
    response = MagicMock()
    response.json.return_value = payload
    response.raise_for_status.return_value = None
    return response


def test_complete_posts_chat_request():
    adapter = ModelAdapter(api_key="sk-test", model_name="test-model", base_url="https://example.test/v1/")
    reply = _response({"choices": [{"message": {"content": "collectBlock oak_log 3"}}]})

    with patch("core.model_adapter.requests.request", return_value=reply) as mock_request, \
         patch("core.model_adapter.log_json"):
        text = asyncio.run(adapter.complete([{"role": "user", "content": "hi"}], temperature=0.5))

    assert text == "collectBlock oak_log 3"
    method, url = mock_request.call_args[0]
    assert (method, url) == ("POST", "https://example.test/v1/chat/completions")
    kwargs = mock_request.call_args[1]
    assert kwargs["headers"]["Authorization"] == "Bearer sk-test"
    assert kwargs["json"] == {
        "model": "test-model",
        "messages": [{"role": "user", "content": "hi"}],
        "temperature": 0.5,
    }


def test_missing_api_key_raises():
    adapter = ModelAdapter(api_key=None)
    with patch("core.model_adapter.requests.request") as mock_request:
        with pytest.raises(ModelAdapterError):
            asyncio.run(adapter.complete([{"role": "user", "content": "hi"}]))
    mock_request.assert_not_called()


def test_malformed_response_raises():
    adapter = ModelAdapter(api_key="sk-test")
    with patch("core.model_adapter.requests.request", return_value=_response({"choices": []})), \
         patch("core.model_adapter.log_json"):
        with pytest.raises(ModelAdapterError, match="Malformed"):
            asyncio.run(adapter.complete([]))


def test_request_errors_are_retried_then_raised():
    adapter = ModelAdapter(api_key="sk-test", retries=3)
    error = requests.exceptions.ConnectionError("refused")

    with patch("core.model_adapter.requests.request", side_effect=error) as mock_request, \
         patch("core.model_adapter.time.sleep") as mock_sleep, \
         patch("core.model_adapter.log_json"):
        with pytest.raises(ModelAdapterError, match="Model request failed"):
            asyncio.run(adapter.complete([]))

    assert mock_request.call_count == 3
    assert mock_sleep.call_count == 2


def test_transient_failure_recovers():
    adapter = ModelAdapter(api_key="sk-test", retries=2)
    reply = _response({"choices": [{"message": {"content": "ok"}}]})

    with patch("core.model_adapter.requests.request", side_effect=[requests.exceptions.Timeout("slow"), reply]), \
         patch("core.model_adapter.time.sleep"), \
         patch("core.model_adapter.log_json"):
        assert asyncio.run(adapter.complete([])) == "ok"


def test_from_config():
    cfg = MagicMock()
    cfg.get.side_effect = {
        "api_key": "sk-cfg",
        "model_name": "cfg-model",
        "llm_base_url": "https://cfg.test/api",
        "llm_timeout": 5,
        "llm_max_retries": 1,
    }.get
    adapter = ModelAdapter.from_config(cfg)
    assert adapter.api_key == "sk-cfg"
    assert adapter.base_url == "https://cfg.test/api"
    assert adapter.retries == 1
