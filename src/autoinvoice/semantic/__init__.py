"""Semantic understanding module using LLM inference."""

from .consolidate import consolidate_pages
from .extractor import InvoiceExtractor
from .inference import InferenceClient, extract_json

__all__ = ["InferenceClient", "InvoiceExtractor", "consolidate_pages", "extract_json"]
