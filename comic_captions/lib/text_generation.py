# comic_captions/lib/text_generation.py
from __future__ import annotations

from typing import Optional, Protocol

from comic_captions.exceptions import MalformedResponseError, TextGenerationError
from comic_captions.lib.json_tools import loads_object, strip_code_fences
from comic_captions.lib.retry import RetryPolicy
from comic_captions.logger import get_logger

log = get_logger(__name__)


class TextGenerator(Protocol):
    """What the caption orchestrator needs from a language model."""

    async def generate_json(self, prompt: str, *, system: str, schema_name: str, schema: dict) -> dict:
        ...

    async def generate_text(self, prompt: str, *, system: str) -> str:
        ...


class OpenAITextGenerator:
    def __init__(
        self,
        client,
        *,
        model: str = "gpt-4o-mini",
        temperature: float = 0.4,
        retry_policy: Optional[RetryPolicy] = None,
        max_tokens: int = 400,
    ):
        self.client = client
        self.model = model
        self.temperature = temperature
        self.retry_policy = retry_policy or RetryPolicy()
        self.max_tokens = max_tokens

    async def _complete(self, messages: list, label: str, **kwargs) -> str:
        async def call():
            return await self.client.chat.completions.create(
                model=self.model,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                messages=messages,
                **kwargs,
            )

        try:
            resp = await self.retry_policy.run(call, label=label)
        except Exception as e:
            raise TextGenerationError(f"{label} failed: {e}") from e

        choices = getattr(resp, "choices", None) or []
        if not choices:
            raise MalformedResponseError(f"{label}: completion has no choices")
        content = (choices[0].message.content or "").strip()
        if not content:
            raise MalformedResponseError(f"{label}: empty completion")
        return content

    async def generate_json(self, prompt: str, *, system: str, schema_name: str, schema: dict) -> dict:
        raw = await self._complete(
            [{"role": "system", "content": system}, {"role": "user", "content": prompt}],
            label=f"generate_json[{schema_name}]",
            response_format={
                "type": "json_schema",
                "json_schema": {"name": schema_name, "schema": schema, "strict": True},
            },
        )
        log.debug(f"structured reply ({schema_name}): {raw}")
        return loads_object(raw)

    async def generate_text(self, prompt: str, *, system: str) -> str:
        raw = await self._complete(
            [{"role": "system", "content": system}, {"role": "user", "content": prompt}],
            label="generate_text",
        )
        return strip_code_fences(raw).strip("\"'“”")
