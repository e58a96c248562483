"""Model client interface with Ollama and OpenRouter implementations."""

import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from xof.config import EnvSettings, load_env_settings
from xof.constants import DEFAULT_REQUEST_TIMEOUT_S


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass
class CompletionResult:
    """Result from a single generate call."""
    content: str
    model: str
    usage: Optional[Dict[str, Any]] = None
    raw_response: Optional[Dict[str, Any]] = None


class ModelClientError(Exception):
    """Error from model client operations (transport, HTTP, bad payload)."""
    pass


class ModelClient(ABC):
    """Abstract interface for text-generation backends."""

    @abstractmethod
    def generate(
        self,
        model: str,
        prompt: str,
        timeout: float = DEFAULT_REQUEST_TIMEOUT_S,
    ) -> CompletionResult:
        """
        Send one prompt and return the full (non-streamed) response.

        Raises:
            ModelClientError: On API or network errors
        """
        pass


def _debug(message: str) -> None:
    # Debug logging (env-gated)
    if os.environ.get("XOF_DEBUG"):
        print(f"[DEBUG] {message}")


def _post_json(
    url: str,
    payload: dict,
    headers: dict,
    timeout: float,
    transport: Optional[httpx.BaseTransport],
) -> dict:
    """POST `payload` and decode the JSON reply, mapping httpx errors to ModelClientError."""
    try:
        with httpx.Client(timeout=timeout, transport=transport) as client:
            response = client.post(url, headers=headers, json=payload)
            response.raise_for_status()
            return response.json()
    except httpx.HTTPStatusError as e:
        # Extract error message from response if available
        try:
            error = e.response.json().get("error")
            if isinstance(error, dict):
                error = error.get("message")
            error_msg = error or str(e)
        except (ValueError, AttributeError):
            error_msg = str(e)
        raise ModelClientError(f"API error: {error_msg}")
    except httpx.TimeoutException:
        raise ModelClientError(
            f"Request timed out after {timeout}s. "
            "Try again or use a faster model."
        )
    except httpx.RequestError as e:
        raise ModelClientError(f"Network error: {e}")
    except ValueError as e:
        raise ModelClientError(f"Invalid JSON in API response: {e}")


class OllamaClient(ModelClient):
    """Ollama API client (POST /api/generate, non-streaming)."""

    def __init__(
        self,
        host: str,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        if "://" not in host:
            host = f"http://{host}"
        self.host = host.rstrip("/")
        self.transport = transport

    def generate(
        self,
        model: str,
        prompt: str,
        timeout: float = DEFAULT_REQUEST_TIMEOUT_S,
    ) -> CompletionResult:
        payload = {"model": model, "prompt": prompt, "stream": False}
        _debug(f"ollama generate model={model}, prompt_chars={len(prompt)}")

        data = _post_json(
            f"{self.host}/api/generate",
            payload,
            {"Content-Type": "application/json"},
            timeout,
            self.transport,
        )

        if "response" not in data:
            raise ModelClientError("Unexpected API response format: missing 'response'")

        usage = {
            key: data[key]
            for key in ("prompt_eval_count", "eval_count")
            if key in data
        }
        return CompletionResult(
            content=data["response"],
            model=data.get("model", model),
            usage=usage or None,
            raw_response=data,
        )


class OpenRouterClient(ModelClient):
    """OpenRouter API client.

    Uses the OpenRouter chat completions endpoint with a single user message.
    API docs: https://openrouter.ai/docs
    """

    BASE_URL = "https://openrouter.ai/api/v1/chat/completions"

    def __init__(
        self,
        api_key: Optional[str] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """
        Initialize OpenRouter client.

        Args:
            api_key: OpenRouter API key. If not provided, reads from
                     OPENROUTER_API_KEY environment variable.
            transport: Optional httpx transport (tests use MockTransport)
        """
        self.api_key = api_key or os.environ.get("OPENROUTER_API_KEY")
        if not self.api_key:
            raise ModelClientError(
                "OPENROUTER_API_KEY environment variable is required."
            )
        self.transport = transport

    def generate(
        self,
        model: str,
        prompt: str,
        timeout: float = DEFAULT_REQUEST_TIMEOUT_S,
    ) -> CompletionResult:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "X-Title": "xof",
        }
        payload = {
            "model": model,
            "messages": [{"role": "user", "content": prompt}],
        }
        _debug(f"openrouter generate model={model}, prompt_chars={len(prompt)}")

        data = _post_json(self.BASE_URL, payload, headers, timeout, self.transport)

        choices = data.get("choices", [])
        if not choices:
            raise ModelClientError("No choices in API response")

        content = choices[0].get("message", {}).get("content", "")
        if not content:
            raise ModelClientError("Empty content in API response")

        return CompletionResult(
            content=content,
            model=data.get("model", model),
            usage=data.get("usage"),
            raw_response=data,
        )


def get_model_client(provider: str, settings: Optional[EnvSettings] = None) -> ModelClient:
    """Build the client for `provider` ("ollama" or "openrouter")."""
    if settings is None:
        settings = load_env_settings()
    if provider == "ollama":
        return OllamaClient(settings.ollama_host)
    if provider == "openrouter":
        return OpenRouterClient(settings.openrouter_api_key)
    raise ModelClientError(f"Unknown provider: {provider}")


def traced_generate(
    client: ModelClient,
    model: str,
    prompt: str,
    timeout: float = DEFAULT_REQUEST_TIMEOUT_S,
    phase: str = "generate",  # "generate" or "review"
    attempt: int = 0,
) -> CompletionResult:
    """
    Wrapper that records the call as a LangSmith span.

    The span is named "{phase}_{model}" and carries phase, model and
    attempt as metadata for filtering.
    """
    from langsmith import traceable

    trace_name = f"{phase}_{model.replace('/', '_').replace(':', '_')}"

    @traceable(
        name=trace_name,
        run_type="llm",
        metadata={"phase": phase, "model": model, "attempt": attempt},
    )
    def _traced_call(prompt_input: str, model_name: str) -> dict:
        result = client.generate(model_name, prompt_input, timeout=timeout)
        return {
            "content": result.content,
            "model": result.model,
            "usage": result.usage,
        }

    output = _traced_call(prompt, model)

    return CompletionResult(
        content=output["content"],
        model=output["model"],
        usage=output.get("usage"),
    )
