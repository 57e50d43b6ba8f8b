"""
LLM Service
Thin client for the OpenAI-compatible chat completion endpoint (Cerebras)
"""

import logging
from typing import Dict, List, Optional, Any
import json
import re
import asyncio

import requests

from config import settings


logger = logging.getLogger(__name__)


class LLMService:
    """
    Service for interacting with Cerebras LLM
    Used for the medication interaction advisory
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model_name: Optional[str] = None
    ):
        self.api_key = api_key if api_key is not None else settings.CEREBRAS_API_KEY
        self.base_url = base_url or settings.CEREBRAS_BASE_URL
        self.model_name = model_name or settings.LLM_MODEL
        self.temperature = settings.LLM_TEMPERATURE
        self.max_tokens = settings.LLM_MAX_TOKENS
        self.timeout = settings.LLM_TIMEOUT_SECONDS

        self._configured = False
        self._total_tokens_used = 0
        self._request_count = 0

        self._configure()

    def _configure(self):
        """Mark the provider usable once an API key is present"""
        if self._configured:
            return

        if not self.api_key:
            logger.warning("CEREBRAS_API_KEY not configured")
            return
        self._configured = True
        logger.info(f"Cerebras API configured with model: {self.model_name}")

    @property
    def is_configured(self) -> bool:
        return self._configured

    def _post(self, payload: Dict[str, Any]) -> requests.Response:
        return requests.post(
            f"{self.base_url}/chat/completions",
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            },
            json=payload,
            timeout=self.timeout,
        )

    async def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None
    ) -> str:
        """
        Generate a response from the LLM

        Args:
            prompt: User prompt/message
            system_prompt: System instructions
            temperature: Sampling temperature (0-1)
            max_tokens: Maximum response tokens

        Returns:
            Generated text response

        Raises:
            RuntimeError: provider not configured or non-200 response
        """
        if not self._configured:
            self._configure()
        if not self._configured:
            raise RuntimeError("Cerebras is not configured. Set CEREBRAS_API_KEY.")

        messages: List[Dict[str, str]] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        payload = {
            "model": self.model_name,
            "messages": messages,
            "temperature": temperature if temperature is not None else self.temperature,
            "max_tokens": max_tokens if max_tokens is not None else self.max_tokens,
        }

        try:
            resp = await asyncio.get_running_loop().run_in_executor(
                None, lambda: self._post(payload)
            )

            if resp.status_code != 200:
                logger.error("Cerebras API error %s: %s", resp.status_code, resp.text)
                raise RuntimeError(f"Cerebras API error: {resp.status_code}")

            data = resp.json()
            choices = data.get("choices") or []
            if not choices:
                return ""
            text = choices[0].get("message", {}).get("content", "")

            usage = data.get("usage") or {}
            self._total_tokens_used += usage.get("total_tokens", 0)
            self._request_count += 1

            return text
        except Exception as e:
            logger.error("Cerebras generation error: %s", e)
            raise

    async def generate_json(
        self,
        prompt: str,
        schema_hint: Optional[Dict[str, Any]] = None,
        system_prompt: Optional[str] = None,
        **kwargs
    ) -> Dict[str, Any]:
        """
        Generate a JSON response from the LLM

        Args:
            prompt: User prompt
            schema_hint: Example of expected JSON structure
            system_prompt: System instructions

        Returns:
            Parsed JSON response, or {} when nothing parseable came back
        """
        json_system = system_prompt or ""
        json_system += "\n\nYou must respond with valid JSON only. No additional text, no markdown code blocks, just pure JSON."

        if schema_hint:
            json_system += f"\n\nExpected JSON structure:\n{json.dumps(schema_hint, indent=2)}"

        response = await self.generate(prompt=prompt, system_prompt=json_system, **kwargs)
        return self.parse_json_response(response)

    def parse_json_response(
        self,
        response: str,
        default: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Parse JSON from LLM response, handling code fences and stray text
        """
        if default is None:
            default = {}

        if not response:
            return default

        response = response.strip()

        try:
            return json.loads(response)
        except json.JSONDecodeError:
            pass

        json_patterns = [
            r'```json\s*([\s\S]*?)\s*```',
            r'```\s*([\s\S]*?)\s*```',
            r'\{[\s\S]*\}',
        ]

        for pattern in json_patterns:
            match = re.search(pattern, response)
            if match:
                try:
                    json_str = match.group(1) if '```' in pattern else match.group(0)
                    return json.loads(json_str.strip())
                except json.JSONDecodeError:
                    continue

        logger.warning(f"Failed to parse JSON from response: {response[:200]}...")
        return default

    def get_usage_stats(self) -> Dict[str, Any]:
        """Get usage statistics"""
        return {
            "total_tokens": self._total_tokens_used,
            "request_count": self._request_count,
            "model": self.model_name,
        }


# Singleton instance
llm_service = LLMService()
