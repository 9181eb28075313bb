import asyncio
import time
from typing import Dict, List, Optional

import requests

from core.exceptions import ModelAdapterError
from core.logging_utils import log_json

Message = Dict[str, str]


class ModelAdapter:
    """
    Client for an OpenAI-compatible chat completion endpoint.

    The agent treats the model as ``complete(messages) -> text``. The HTTP
    call is blocking, so ``complete`` runs it in a worker thread to keep the
    agent loop responsive.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model_name: str = "google/gemini-2.0-flash-exp:free",
        base_url: str = "https://openrouter.ai/api/v1",
        timeout: int = 60,
        retries: int = 3,
        temperature: float = 0.1,
    ):
        self.api_key = api_key
        self.model_name = model_name
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.retries = retries
        self.temperature = temperature

    @classmethod
    def from_config(cls, cfg) -> "ModelAdapter":
        return cls(
            api_key=cfg.get("api_key"),
            model_name=cfg.get("model_name"),
            base_url=cfg.get("llm_base_url"),
            timeout=cfg.get("llm_timeout"),
            retries=cfg.get("llm_max_retries"),
        )

    async def complete(self, messages: List[Message], temperature: Optional[float] = None) -> str:
        """Send *messages* and return the assistant text."""
        return await asyncio.to_thread(self._complete_sync, messages, temperature)

    def _complete_sync(self, messages: List[Message], temperature: Optional[float]) -> str:
        if not self.api_key:
            raise ModelAdapterError("No API key configured for the language model.")
        url = f"{self.base_url}/chat/completions"
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json"
        }
        payload = {
            "model": self.model_name,
            "messages": messages,
            "temperature": self.temperature if temperature is None else temperature,
        }
        started = time.monotonic()
        try:
            response = self._make_request_with_retries("POST", url, headers, payload, retries=self.retries)
            data = response.json()
            content = data["choices"][0]["message"]["content"]
        except requests.exceptions.RequestException as e:
            log_json("ERROR", "model_request_failed", details={"model": self.model_name, "error": str(e)})
            raise ModelAdapterError(f"Model request failed: {e}") from e
        except (ValueError, KeyError, IndexError, TypeError) as e:
            log_json("ERROR", "model_response_malformed", details={"model": self.model_name, "error": str(e)})
            raise ModelAdapterError(f"Malformed model response: {e}") from e
        log_json("INFO", "model_call_complete", details={
            "model": self.model_name,
            "elapsed_s": f"{time.monotonic() - started:.2f}",
            "chars": len(content or ""),
        })
        return content or ""

    def _make_request_with_retries(self, method, url, headers, json_payload, retries=3, backoff_factor=0.5):
        for attempt in range(retries):
            try:
                response = requests.request(method, url, headers=headers, json=json_payload, timeout=self.timeout)
                response.raise_for_status()
                return response
            except requests.exceptions.RequestException as e:
                if attempt < retries - 1:
                    sleep_time = backoff_factor * (2 ** attempt)
                    log_json("WARN", "request_failed_retrying", details={"attempt": attempt + 1, "retries": retries, "error": str(e), "sleep_time": f"{sleep_time:.2f}"})
                    time.sleep(sleep_time)
                else:
                    raise
        raise ModelAdapterError("Request was not attempted (retries must be >= 1).")
