"""Base class for LLM-backed interpreters.

The base handles OpenAI communication; subclasses define prompts and
parsing.
"""

from abc import ABC, abstractmethod
from typing import Generic, TypeVar

import openai

from dischargely.config import settings

TInput = TypeVar("TInput")
TOutput = TypeVar("TOutput")


class InterpreterError(Exception):
    """Raised when the model call fails or returns nothing usable."""


class BaseInterpreter(ABC, Generic[TInput, TOutput]):
    """Abstract base for all interpreters."""

    max_tokens: int = 1500
    temperature: float = 0.2

    def __init__(self, api_key: str | None = None, model: str | None = None):
        self.api_key = api_key or settings.openai_api_key
        self.model = model or settings.openai_model
        self._client: openai.AsyncOpenAI | None = None

    @property
    def client(self) -> openai.AsyncOpenAI:
        if self._client is None:
            self._client = openai.AsyncOpenAI(api_key=self.api_key)
        return self._client

    @abstractmethod
    def get_system_prompt(self) -> str:
        """Return the system prompt for this interpreter."""
        ...

    @abstractmethod
    def format_input(self, input_data: TInput) -> str:
        """Convert typed input to prompt string."""
        ...

    @abstractmethod
    def parse_output(self, response_text: str) -> TOutput:
        """Parse LLM response into typed output."""
        ...

    async def interpret(self, input_data: TInput) -> TOutput:
        """Main entry point: interpret input and return structured output.

        Raises InterpreterError if the API call fails or the reply is empty.
        """
        user_message = self.format_input(input_data)

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                messages=[
                    {"role": "system", "content": self.get_system_prompt()},
                    {"role": "user", "content": user_message},
                ],
            )
        except openai.OpenAIError as e:
            raise InterpreterError(f"OpenAI request failed: {e}") from e

        response_text = response.choices[0].message.content if response.choices else None
        if not response_text:
            raise InterpreterError("OpenAI returned an empty response")
        return self.parse_output(response_text)
