"""Completion clients for vision OCR and summaries"""
import base64
import logging
from abc import ABC, abstractmethod
from typing import Optional, Sequence

import openai
from openai import OpenAI

from .config import LLM_TIMEOUT_SECONDS, OPENAI_API_KEY, VISION_MODEL
from .errors import CompletionError, CompletionTimeout, RateLimited

logger = logging.getLogger(__name__)

JPEG_MAGIC = b"\xff\xd8\xff"
PNG_MAGIC = b"\x89PNG"


class CompletionClient(ABC):
    """An external text/vision completion capability"""

    @abstractmethod
    def complete(self, system_prompt: str, user_content: str,
                 images: Optional[Sequence[bytes]] = None) -> str:
        """
        Run one completion

        Args:
            system_prompt: Instructions for the model
            user_content: User message text
            images: Encoded page images sent alongside the text

        Returns:
            The model's text answer

        Raises:
            RateLimited: the service asked us to slow down
            CompletionTimeout: the call exceeded its time budget
            CompletionError: any other failure
        """


def image_data_url(image: bytes) -> str:
    if image.startswith(JPEG_MAGIC):
        mime = "image/jpeg"
    elif image.startswith(PNG_MAGIC):
        mime = "image/png"
    else:
        raise CompletionError("Immagine non valida: atteso JPEG o PNG")
    return f"data:{mime};base64,{base64.b64encode(image).decode('ascii')}"


class OpenAICompletionClient(CompletionClient):
    """Client for the OpenAI chat completions API"""

    def __init__(self, api_key: Optional[str] = None, model: str = VISION_MODEL,
                 timeout: float = LLM_TIMEOUT_SECONDS, max_tokens: int = 4096,
                 json_output: bool = False):
        api_key = api_key or OPENAI_API_KEY
        if not api_key:
            raise ValueError("OPENAI_API_KEY not set in environment variables")
        # Retries are handled by RetryPolicy, not by the SDK
        self.client = OpenAI(api_key=api_key, timeout=timeout, max_retries=0)
        self.model = model
        self.max_tokens = max_tokens
        self.json_output = json_output

    def complete(self, system_prompt: str, user_content: str,
                 images: Optional[Sequence[bytes]] = None) -> str:
        if images:
            content = [{"type": "text", "text": user_content}]
            for image in images:
                content.append({
                    "type": "image_url",
                    "image_url": {"url": image_data_url(image), "detail": "high"},
                })
        else:
            content = user_content

        kwargs = {}
        if self.json_output:
            kwargs["response_format"] = {"type": "json_object"}

        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": content},
                ],
                max_tokens=self.max_tokens,
                temperature=0,
                **kwargs,
            )
        except openai.RateLimitError as e:
            raise RateLimited(str(e)) from e
        except openai.APITimeoutError as e:
            raise CompletionTimeout(f"Timeout dopo {self.client.timeout}s") from e
        except openai.OpenAIError as e:
            raise CompletionError(str(e)) from e

        return response.choices[0].message.content or ""
