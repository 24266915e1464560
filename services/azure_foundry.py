"""
Azure AI Foundry service module.

Optional LLM used by the coaching advisor to rephrase stock coaching notes.
Only non-streaming chat completions are needed; the advisor always has a stock
fallback when this service is not configured or the call fails.
"""

from typing import List, Dict, Optional

from openai import AzureOpenAI

import config


class AzureFoundryService:
    """
    Thin wrapper around the Azure OpenAI client for short coaching completions.

    Usage:
        service = get_foundry_service()
        text = service.chat_completion([{"role": "user", "content": note}],
                                       system_prompt=config.ADVISOR_SYSTEM_PROMPT)
    """

    def __init__(self):
        if not config.is_foundry_configured():
            raise ValueError(
                "Azure AI Foundry is not configured. Set AZURE_FOUNDRY_KEY and AZURE_FOUNDRY_ENDPOINT."
            )
        self.client = AzureOpenAI(
            azure_endpoint=config.AZURE_FOUNDRY_ENDPOINT,
            api_key=config.AZURE_FOUNDRY_KEY,
            api_version=config.AZURE_FOUNDRY_API_VERSION,
        )
        self.deployment_name = config.FOUNDRY_DEPLOYMENT_NAME

    def chat_completion(
        self,
        messages: List[Dict[str, str]],
        system_prompt: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        timeout: Optional[float] = None,
    ) -> str:
        """
        Get a chat completion from Azure AI Foundry.

        Args:
            messages: List of message dictionaries with 'role' and 'content'
            system_prompt: Optional system prompt, prepended unless one is present
            max_tokens: Optional max response length
            temperature: Optional sampling temperature (0-1)
            timeout: Optional request timeout in seconds; disables client retries

        Returns:
            str: The assistant's response content (may be empty)

        Raises:
            openai.OpenAIError: If the API call fails
        """
        messages = list(messages)
        if system_prompt and not any(msg.get("role") == "system" for msg in messages):
            messages.insert(0, {"role": "system", "content": system_prompt})
        kwargs = {"model": self.deployment_name, "messages": messages}
        if max_tokens is not None:
            kwargs["max_tokens"] = max_tokens
        if temperature is not None:
            kwargs["temperature"] = float(temperature)
        client = self.client
        if timeout is not None:
            client = client.with_options(timeout=float(timeout), max_retries=0)
        response = client.chat.completions.create(**kwargs)
        return response.choices[0].message.content or ""


# Lazy singleton: initialized on first use to avoid loading Azure SDK at import time
_foundry_service: Optional[AzureFoundryService] = None


def get_foundry_service() -> AzureFoundryService:
    """Return the Azure AI Foundry service instance, creating it on first call (lazy init)."""
    global _foundry_service
    if _foundry_service is None:
        _foundry_service = AzureFoundryService()
    return _foundry_service
