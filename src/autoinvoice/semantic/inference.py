"""LLM inference for per-page invoice field extraction."""

import base64
import json
import logging
import re

from openai import OpenAI, OpenAIError
from pydantic import ValidationError

from ..config import DEFAULT_INFERENCE_API_URL, DEFAULT_INFERENCE_MODEL
from ..models import INVOICE_FIELDS, PageExtraction, PageExtractionError, PageResult

logger = logging.getLogger(__name__)

_THINK_BLOCK = re.compile(r"<think>.*?</think>", re.DOTALL)
_FENCED_OBJECT = re.compile(r"```(?:json)?\s*(\{.*?\})\s*```", re.DOTALL)
_BARE_OBJECT = re.compile(r"\{.*\}", re.DOTALL)

EXTRACTION_PROMPT = """You are an expert invoice data extraction assistant.
Given the following image of an invoice page ({page_context}), please extract the following information:
- Invoice Number (invoice_number)
- Invoice Date (invoice_date, in YYYY-MM-DD format if possible, otherwise as seen)
- Vendor Name (vendor_name)
- Total Amount Due (total_amount, as a number, e.g., 123.45)
- Due Date (due_date, in YYYY-MM-DD format if possible, otherwise as seen, can be null)
- Currency (currency, e.g., USD, EUR, if visible, otherwise guess or null)

If a field is not present or cannot be determined on this page, use null for its value.
Respond with ONLY a JSON object. Do not include explanations, markdown blocks, or any text before or after the JSON.

Output JSON with these exact fields:
{{
  "invoice_number": "INV-2023-001",
  "invoice_date": "2023-10-26",
  "vendor_name": "Example Corp",
  "total_amount": 150.75,
  "due_date": "2023-11-10",
  "currency": "USD"
}}"""


def extract_json(text: str) -> dict:
    """Extract the JSON object embedded in a model reply.

    A fenced code block is tried first, then the outermost brace span, then
    the whole text.

    Args:
        text: Response text that may contain JSON

    Returns:
        dict: Parsed JSON object

    Raises:
        ValueError: If no JSON object can be parsed
    """
    text = _THINK_BLOCK.sub("", text or "").strip()

    candidates = []
    fenced = _FENCED_OBJECT.search(text)
    if fenced:
        candidates.append(fenced.group(1))
    bare = _BARE_OBJECT.search(text)
    if bare:
        candidates.append(bare.group(0))
    candidates.append(text)

    for candidate in candidates:
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(data, dict):
            return data

    raise ValueError("No JSON object found in model response")


class InferenceClient:
    """Client for multimodal LLM inference over an OpenAI-compatible API (OpenRouter)."""

    def __init__(
        self,
        api_key: str | None,
        api_url: str = DEFAULT_INFERENCE_API_URL,
        model_name: str = DEFAULT_INFERENCE_MODEL,
        client: OpenAI | None = None,
    ):
        """Initialize inference client.

        Args:
            api_key: Bearer token for the inference endpoint
            api_url: Base URL for the OpenAI-compatible API
            model_name: Model identifier to request
            client: Preconfigured OpenAI client (mainly for tests)
        """
        self.api_key = api_key
        self.model_name = model_name
        self.client = client
        if self.client is None and api_key:
            self.client = OpenAI(base_url=api_url, api_key=api_key)
        logger.info(f"Inference client initialized with model: {model_name}")

    @property
    def configured(self) -> bool:
        return self.client is not None

    def extract_page(self, image: bytes, mime_type: str, page_context: str) -> PageResult:
        """Extract invoice fields from a single page image.

        Never raises for API or parsing problems; those are returned as
        PageExtractionError so sibling pages can still be processed.

        Args:
            image: Page image bytes
            mime_type: Image MIME type
            page_context: Position label, e.g. "page 2 of 3"

        Returns:
            PageExtraction on success, PageExtractionError otherwise
        """
        if not self.configured:
            logger.error("Inference API key is missing")
            return PageExtractionError(
                error="Configuration Error",
                message="Inference API key missing.",
                page_context=page_context,
            )

        data_url = f"data:{mime_type};base64,{base64.b64encode(image).decode('ascii')}"
        prompt = EXTRACTION_PROMPT.format(page_context=page_context)

        logger.info(f"Sending {page_context} to {self.model_name}")
        try:
            response = self.client.chat.completions.create(
                model=self.model_name,
                messages=[{
                    "role": "user",
                    "content": [
                        {"type": "text", "text": prompt},
                        {"type": "image_url", "image_url": {"url": data_url}},
                    ],
                }],
                temperature=0.1,
                max_tokens=512,
            )
        except OpenAIError as e:
            logger.error(f"Inference request failed for {page_context}: {e}")
            return PageExtractionError(
                error="Inference API Error",
                message=str(e),
                page_context=page_context,
            )

        if not getattr(response, "choices", None):
            logger.error(f"Invalid response structure for {page_context}")
            return PageExtractionError(
                error="Inference API Error",
                message="No choices or invalid response.",
                page_context=page_context,
            )

        response_text = response.choices[0].message.content or ""
        logger.debug(f"Raw response for {page_context}: {response_text}")

        try:
            data = extract_json(response_text)
            fields = {field: data.get(field) for field in INVOICE_FIELDS}
            return PageExtraction(**fields, page_context=page_context, llm_model=self.model_name)
        except (ValueError, ValidationError) as e:
            logger.error(f"Failed to parse model output for {page_context}: {e}")
            return PageExtractionError(
                error="LLM Response Parsing Error",
                message=f"Failed to parse JSON output from LLM: {e}",
                page_context=page_context,
                raw_response=response_text,
            )
