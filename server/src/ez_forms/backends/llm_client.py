"""Simplified LLM client for core Anthropic API interactions"""

import re
from typing import Optional

import httpx
from anthropic import Anthropic


class LLMClient:
    """Client for LLM-based instruction processing"""

    def __init__(self, config: dict):
        # 60s total, 10s connect, 45s read
        http_client = httpx.Client(timeout=httpx.Timeout(60.0, connect=10.0, read=45.0))
        self.client = Anthropic(
            api_key=config["anthropic_api_key"], http_client=http_client
        )
        self.model = config.get("anthropic_model")

    @staticmethod
    def _clean_json_response(response: str) -> str:
        """
        Strip markdown code fences (```json ... ``` or ``` ... ```) and
        surrounding whitespace from an LLM response.
        """
        cleaned = response.strip()

        if cleaned.startswith("```"):
            cleaned = re.sub(r"^```(?:json)?\s*\n?", "", cleaned)
            cleaned = re.sub(r"\n?```\s*$", "", cleaned)
            cleaned = cleaned.strip()

        return cleaned

    async def process_instruction(
        self, messages: list, max_tokens: int = 1000, system: Optional[str] = None
    ) -> str:
        """Process messages and return the cleaned text response

        Args:
            messages: List of message dictionaries with 'role' and 'content' keys
            max_tokens: Maximum tokens for the response (default: 1000)
            system: Optional system prompt to guide the LLM's behavior

        Returns:
            Generated text response
        """
        request_params = {
            "model": self.model,
            "max_tokens": max_tokens,
            "messages": messages,
        }
        if system:
            request_params["system"] = system

        response = self.client.messages.create(**request_params)

        return self._clean_json_response(response.content[0].text)
