"""
Answer generation for Bible Q&A.
Builds the reader-aware prompt and calls the chat model.
"""

import os
from pathlib import Path
from typing import Optional

import openai
from openai import AsyncOpenAI

from .utils.loaders import append_jsonl
from .utils.types import Passage

DEFAULT_MODEL = "gpt-5-mini"
DEFAULT_MAX_TOKENS = 700

PROMPT_RULES = [
    "You are a Bible study assistant.",
    "Answer the user's question as directly and helpfully as possible.",
    "The reader location is optional context, not a hard constraint.",
    "The user may ask about any biblical topic beyond the selected passage.",
    "Use your broader biblical knowledge when needed.",
    "Do not default to saying context is missing when you can answer.",
    "Treat spelling variants like Caim/Cain as likely equivalents when appropriate.",
    "If uncertain, give your best effort and note uncertainty briefly.",
    "Output plain text only.",
    "Do not use Markdown formatting (no headings, bullet lists, numbered lists, bold, italics, or code fences).",
    "Do not output JSON.",
]


class GenerationError(Exception):
    """The chat model could not produce an answer."""

    def __init__(self, message: str, status_code: int = 503):
        super().__init__(message)
        self.status_code = status_code


def build_ask_prompt(
    question: str,
    translation: str,
    book: str,
    chapter: int,
    verse: int,
    anchor_passage: Optional[Passage] = None,
) -> str:
    """Compose the plain-text prompt for a reader question."""
    location = f"{translation} {book} {chapter}:{verse}"
    anchor_ref = (anchor_passage.ref if anchor_passage else "") or location
    anchor_text = (anchor_passage.snippet if anchor_passage else "").strip()
    anchor_line = f"{anchor_ref} - {anchor_text}" if anchor_text else f"{anchor_ref} - (text unavailable)"

    return "\n".join([
        *PROMPT_RULES,
        "",
        "[READER_LOCATION]",
        location,
        "",
        "[READER_CONTEXT_VERSE]",
        anchor_line,
        "",
        "[QUESTION]",
        question,
    ])


class ResponseGenerator:
    """Generates answers with an OpenAI chat model."""

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        log_dir: Optional[str] = None,
        client: Optional[AsyncOpenAI] = None,
    ):
        """
        Initialize the response generator.

        Args:
            model: OpenAI model to use
            log_dir: Optional directory for a responses.jsonl log
            client: Optional preconfigured AsyncOpenAI client
        """
        self.model = model
        self.client = client or AsyncOpenAI(api_key=os.getenv("OPENAI_API_KEY"))
        self.log_dir = Path(log_dir) if log_dir else None
        if self.log_dir:
            self.log_dir.mkdir(parents=True, exist_ok=True)
            self.response_log_path = self.log_dir / "responses.jsonl"
        else:
            self.response_log_path = None

    async def generate(
        self,
        prompt: str,
        temperature: Optional[float] = None,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ) -> str:
        """
        Generate an answer for a fully composed prompt.

        Raises:
            GenerationError: the request failed or the model returned nothing
        """
        prompt = (prompt or "").strip()
        if not prompt:
            raise GenerationError("Cannot call the model without a prompt.", status_code=500)

        kwargs = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "max_completion_tokens": max_tokens,
        }
        # Some models only accept their default temperature.
        if temperature is not None:
            kwargs["temperature"] = temperature

        try:
            response = await self.client.chat.completions.create(**kwargs)
        except openai.APITimeoutError as e:
            raise GenerationError("Model request timed out.") from e
        except openai.OpenAIError as e:
            raise GenerationError(f"Model request failed: {e}") from e

        text = (response.choices[0].message.content or "").strip() if response.choices else ""
        append_jsonl(self.response_log_path, {"model": self.model, "prompt": prompt, "response": text})
        if not text:
            raise GenerationError("Model returned an empty response.", status_code=502)
        return text
