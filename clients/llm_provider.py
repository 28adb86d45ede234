"""
LLM Provider for extraction calls.

Single text-completion entry point used by every evaluator:

    llm = LLMProvider()
    text = llm.complete("Extract lessons from ...", temperature=0.3)

Two transports are supported:
- Anthropic Messages API through the native SDK (default)
- Any OpenAI-compatible chat completions endpoint via GenericProviderClient
  (set ``api.endpoint_url`` in config)

Every transport failure surfaces as ModelGatewayError. No retries happen here;
a later turn re-triggering the evaluator is the retry.
"""
import logging
from typing import Dict, List, Any, Optional

import anthropic
import requests

from config import config as app_config
from config.config import AppConfig


class ModelGatewayError(Exception):
    """Raised when the model could not produce output for a request."""


class GenericProviderClient:
    """
    Lightweight HTTP client for OpenAI-compatible API endpoints.

    Use this for third-party providers like OpenRouter, Groq, or a local
    model server that follows the OpenAI chat completions format.
    """

    def __init__(
        self,
        api_key: Optional[str],
        model: str,
        api_endpoint: str = "https://api.openai.com/v1/chat/completions",
        temperature: float = 0.1,
        max_tokens: int = 1000,
        timeout: int = 60
    ):
        """
        Initialize generic provider client.

        Args:
            api_key: API key for authentication (None for unauthenticated local servers)
            model: Model identifier
            api_endpoint: Full URL for chat completions endpoint
            temperature: Sampling temperature
            max_tokens: Maximum tokens to generate
            timeout: Request timeout in seconds
        """
        self.api_key = api_key
        self.model = model
        self.endpoint = api_endpoint
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout

    def generate_response(
        self,
        messages: List[Dict[str, str]],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None
    ) -> Dict[str, Any]:
        """
        Make HTTP call to provider and return response.

        Args:
            messages: List of message dicts with 'role' and 'content'
            temperature: Per-call temperature override
            max_tokens: Per-call token limit override

        Returns:
            Full API response dict

        Raises:
            requests.HTTPError: If request fails
        """
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        payload = {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature if temperature is None else temperature,
            "max_tokens": self.max_tokens if max_tokens is None else max_tokens
        }

        response = requests.post(
            self.endpoint,
            headers=headers,
            json=payload,
            timeout=self.timeout
        )
        response.raise_for_status()
        return response.json()

    def extract_text_content(self, response: Dict[str, Any]) -> str:
        """
        Extract text content from API response.

        Args:
            response: Full API response dict

        Returns:
            Extracted text content or empty string
        """
        if "choices" in response and len(response["choices"]) > 0:
            return response["choices"][0]["message"]["content"] or ""
        return ""


class LLMProvider:
    """
    Text-completion gateway over Anthropic or an OpenAI-compatible endpoint.

    Configured for the small/fast model tier by default; extraction does not
    need the largest available model.
    """

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        timeout: Optional[int] = None,
        api_key: Optional[str] = None,
        anthropic_client: Optional[anthropic.Anthropic] = None,
        generic_client: Optional[GenericProviderClient] = None
    ):
        """Initialize the provider; SDK clients are created on first use."""
        self.logger = logging.getLogger("llm_provider")
        self.config = config if config is not None else app_config

        api = self.config.api
        self.model = model if model is not None else api.model
        self.max_tokens = max_tokens if max_tokens is not None else api.max_tokens
        self.timeout = timeout if timeout is not None else api.timeout
        self.endpoint_url = api.endpoint_url
        self._api_key = api_key

        self._anthropic_client = anthropic_client
        self._generic_client = generic_client

        transport = f"endpoint {self.endpoint_url}" if self.uses_generic_endpoint else "Anthropic SDK"
        self.logger.info(f"LLM Provider initialized: model={self.model}, transport={transport}")

    @property
    def uses_generic_endpoint(self) -> bool:
        return self._generic_client is not None or bool(self.endpoint_url)

    def complete(
        self,
        prompt: str,
        temperature: float,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None
    ) -> str:
        """
        Generate text for a single-prompt request.

        Args:
            prompt: Full prompt sent as one user message
            temperature: Sampling temperature
            model: Per-call model override
            max_tokens: Per-call token limit override

        Returns:
            Generated text (may be empty)

        Raises:
            ModelGatewayError: On any provider, network, or response-shape failure
        """
        messages = [{"role": "user", "content": prompt}]
        max_tokens = max_tokens if max_tokens is not None else self.max_tokens

        if self.uses_generic_endpoint:
            return self._complete_generic(messages, temperature, max_tokens)
        return self._complete_anthropic(messages, temperature, model or self.model, max_tokens)

    def _complete_anthropic(
        self,
        messages: List[Dict[str, str]],
        temperature: float,
        model: str,
        max_tokens: int
    ) -> str:
        try:
            client = self._get_anthropic_client()
            response = client.messages.create(
                model=model,
                max_tokens=max_tokens,
                temperature=temperature,
                messages=messages
            )
        except anthropic.APIError as e:
            raise ModelGatewayError(f"Anthropic request failed: {e}") from e
        except anthropic.AnthropicError as e:
            raise ModelGatewayError(f"Anthropic client error: {e}") from e

        text_blocks = [block.text for block in response.content if block.type == "text"]
        self.logger.debug(
            f"Anthropic completion: model={model}, stop_reason={response.stop_reason}, "
            f"{len(text_blocks)} text block(s)"
        )
        return "".join(text_blocks)

    def _complete_generic(
        self,
        messages: List[Dict[str, str]],
        temperature: float,
        max_tokens: int
    ) -> str:
        client = self._get_generic_client()
        try:
            response = client.generate_response(messages, temperature=temperature, max_tokens=max_tokens)
            return client.extract_text_content(response)
        except requests.RequestException as e:
            raise ModelGatewayError(f"Endpoint request failed: {e}") from e
        except (KeyError, TypeError, ValueError) as e:
            raise ModelGatewayError(f"Unexpected endpoint response shape: {e}") from e

    def _get_anthropic_client(self) -> anthropic.Anthropic:
        if self._anthropic_client is None:
            api_key = self._api_key or self.config.get_secret(self.config.api.api_key_env)
            self._anthropic_client = anthropic.Anthropic(
                api_key=api_key,
                timeout=self.timeout,
                max_retries=0
            )
        return self._anthropic_client

    def _get_generic_client(self) -> GenericProviderClient:
        if self._generic_client is None:
            self._generic_client = GenericProviderClient(
                api_key=self._api_key or self.config.get_secret(self.config.api.endpoint_api_key_env),
                model=self.model,
                api_endpoint=self.endpoint_url,
                max_tokens=self.max_tokens,
                timeout=self.timeout
            )
        return self._generic_client
