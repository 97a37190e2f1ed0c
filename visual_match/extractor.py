"""
Attribute extraction through an OpenAI vision model.

Sends the uploaded photo with a fixed instruction asking for a JSON
object describing the product(s) in the picture, then normalizes the
answer into VisualAttributes. Any failure of the call itself, or an
answer that holds no JSON object, surfaces as ExtractionError. The
extractor never retries.
"""

import logging
import os
from typing import Any, Optional

from openai import OpenAI, OpenAIError

from .attributes import VisualAttributes, coerce_attributes, parse_json_object
from .preprocessing import prepare_image_payload, to_data_url

logger = logging.getLogger(__name__)

DEFAULT_MODEL = os.environ.get("VISION_MODEL", "gpt-4o")
# Response-length budget; very busy images may get a truncated description.
DEFAULT_MAX_TOKENS = int(os.environ.get("VISION_MAX_TOKENS", "500"))
DEFAULT_TEMPERATURE = float(os.environ.get("VISION_TEMPERATURE", "0.2"))
DEFAULT_TIMEOUT_SECONDS = float(os.environ.get("VISION_TIMEOUT_SECONDS", "60"))

SYSTEM_PROMPT = """You are an expert product identifier. Analyze the image and extract detailed information for product matching.

Respond with JSON in this exact format:
{
  "objects": ["list of main objects/items in the image"],
  "colors": ["primary colors present"],
  "materials": ["materials you can identify like plastic, metal, fabric, etc."],
  "categories": ["product categories this might belong to"],
  "description": "detailed description of what you see",
  "style": "style description if applicable",
  "brand": "brand name if visible"
}

Be thorough but focused on product-relevant details."""

USER_PROMPT = (
    "Analyze this image and extract all product-related information "
    "for matching with an e-commerce catalog."
)


class ExtractionError(RuntimeError):
    """The vision call failed or returned no parseable JSON object."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class AttributeExtractor:
    """
    Turns image bytes into VisualAttributes using a vision model.

    The OpenAI client is created on first use unless one is injected,
    so a missing API key is reported as an ExtractionError like any
    other authentication failure.
    """

    def __init__(self,
                 client: Any = None,
                 model: str = DEFAULT_MODEL,
                 max_tokens: int = DEFAULT_MAX_TOKENS,
                 temperature: float = DEFAULT_TEMPERATURE,
                 timeout: float = DEFAULT_TIMEOUT_SECONDS,
                 max_image_side: Optional[int] = None):
        self._client = client
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.timeout = timeout
        self.max_image_side = max_image_side

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = OpenAI(timeout=self.timeout, max_retries=0)
        return self._client

    def build_messages(self, image_bytes: bytes) -> list:
        payload, mime_type = prepare_image_payload(image_bytes, max_side=self.max_image_side)
        return [
            {"role": "system", "content": SYSTEM_PROMPT},
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": USER_PROMPT},
                    {"type": "image_url", "image_url": {"url": to_data_url(payload, mime_type)}},
                ],
            },
        ]

    def extract(self, image_bytes: bytes) -> VisualAttributes:
        """
        Describe an image as structured attributes.

        Args:
            image_bytes: Raw uploaded image.

        Returns:
            VisualAttributes with every field populated (possibly empty).

        Raises:
            ExtractionError: If the vision call errors or the response
                holds no JSON object.
        """
        messages = self.build_messages(image_bytes)

        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                response_format={"type": "json_object"},
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            )
        except (OpenAIError, OSError) as e:
            # OSError covers transport failures of injected non-SDK clients
            logger.error(f"Vision API call failed: {e}")
            raise ExtractionError("Failed to analyze image", cause=e) from e

        try:
            choices = response.choices
            if not choices:
                raise ExtractionError("Vision API returned no choices")
            choice = choices[0]
            content = choice.message.content
        except (AttributeError, IndexError, TypeError) as e:
            logger.error(f"Unexpected vision response shape: {e}")
            raise ExtractionError("Vision response had an unexpected shape", cause=e) from e

        if getattr(choice, "finish_reason", None) == "length":
            logger.warning(f"Vision response hit the {self.max_tokens}-token budget and may be truncated")

        try:
            data = parse_json_object(content)
        except ValueError as e:
            logger.error(f"Unparseable vision response: {e}")
            raise ExtractionError("Vision response was not a JSON object", cause=e) from e

        attributes = coerce_attributes(data)
        logger.info(f"Image analysis: {attributes.to_dict()}")
        return attributes
