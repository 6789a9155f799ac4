"""OpenAI text generator for test regeneration."""

import logging
from typing import Optional

import tiktoken
from openai import AsyncOpenAI, APIError as OpenAIAPIError

from ..healing.base import GenerationError, TextGenerator

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You repair automated tests. Reply with the complete fixed test source only."
)


class OpenAITextGenerator(TextGenerator):
    """
    Chat-completions backed generator.

    PATTERN: Official OpenAI SDK with async client
    CRITICAL: Every SDK failure surfaces as GenerationError
    GOTCHA: Prompt size is checked locally before the request is sent
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "gpt-4o-mini",
        temperature: float = 0.3,
        context_window: int = 128000,
        client: Optional[AsyncOpenAI] = None,
    ):
        """
        Initialize generator.

        Args:
            api_key: OpenAI API key
            model: Chat model name
            temperature: Sampling temperature
            context_window: Model context size in tokens
            client: Preconfigured client
        """
        self.client = client or AsyncOpenAI(api_key=api_key)
        self.model = model
        self.temperature = temperature
        self.context_window = context_window
        self.logger = logger

        try:
            self.tokenizer = tiktoken.encoding_for_model(model)
        except KeyError:
            self.tokenizer = tiktoken.get_encoding("cl100k_base")

    def get_num_tokens(self, text: str) -> int:
        return len(self.tokenizer.encode(text))

    async def generate(self, prompt: str, max_tokens: int) -> str:
        """
        Generate replacement test source.

        Args:
            prompt: Healing prompt
            max_tokens: Maximum tokens to generate

        Returns:
            Generated text

        Raises:
            GenerationError: If the prompt is too large, the request fails or
                the model returns nothing
        """
        prompt_tokens = self.get_num_tokens(SYSTEM_PROMPT) + self.get_num_tokens(prompt)
        if prompt_tokens + max_tokens > self.context_window:
            raise GenerationError(
                f"Prompt of {prompt_tokens} tokens exceeds the {self.context_window} "
                f"token context with {max_tokens} reserved for output"
            )

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                max_tokens=max_tokens,
                temperature=self.temperature,
            )
        except OpenAIAPIError as e:
            self.logger.error(f"OpenAI API error: {e}")
            raise GenerationError(f"OpenAI API error: {e}") from e
        except Exception as e:
            self.logger.error(f"Unexpected error: {e}")
            raise GenerationError(f"Unexpected error: {e}") from e

        content = response.choices[0].message.content if response.choices else None
        if not content or not content.strip():
            raise GenerationError("Generator returned no content")

        self.logger.debug(f"Generated {len(content)} characters from {prompt_tokens} prompt tokens")
        return content

    async def close(self):
        """Close OpenAI client."""
        await self.client.close()
