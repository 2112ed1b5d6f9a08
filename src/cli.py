"""Command-line interface for extracting invoice fields from a local file."""

import argparse
import json
import logging
import mimetypes
import os
import sys
from pathlib import Path

from autoinvoice import (
    ConsolidatedInvoice,
    InferenceClient,
    InvoiceExtractor,
    PageRasterizer,
)
from autoinvoice.config import DEFAULT_INFERENCE_API_URL, DEFAULT_INFERENCE_MODEL
from autoinvoice.models import ExtractionResult


def print_summary(path: Path, result: ExtractionResult) -> None:
    """Print a human-readable summary of one extraction.

    Args:
        path: Source file
        result: Extraction result
    """
    print("\n" + "=" * 80)
    print(f"RESULT: {path.name}")
    print("=" * 80)

    if isinstance(result, ConsolidatedInvoice):
        print(f"  Vendor: {result.vendor_name}")
        print(f"  Invoice #: {result.invoice_number}")
        print(f"  Date: {result.invoice_date}")
        print(f"  Due: {result.due_date}")
        print(f"  Amount: {result.currency} {result.total_amount}")
    else:
        print(f"  Extraction failed: {result.error} - {result.message}")

    print(f"  Pages processed: {result.processed_pages}")
    for page in result.page_data_summary:
        marker = "error" if page.has_error else "ok"
        print(f"    - {page.page_context}: {marker}")


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(description="Extract invoice fields from a PDF or image")
    parser.add_argument("file", type=Path, help="PDF, JPEG, PNG or GIF file")
    parser.add_argument("--mime-type", help="Override the detected MIME type")
    parser.add_argument("--model", default=os.getenv("INFERENCE_MODEL", DEFAULT_INFERENCE_MODEL))
    parser.add_argument("--api-url", default=os.getenv("INFERENCE_API_URL", DEFAULT_INFERENCE_API_URL))
    parser.add_argument("--dpi", type=int, default=150)
    parser.add_argument("--output", type=Path, help="Write the JSON result to this file")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO)

    if not args.file.is_file():
        print(f"File not found: {args.file}", file=sys.stderr)
        return 2

    mime_type = args.mime_type or mimetypes.guess_type(args.file.name)[0] or "application/octet-stream"

    inference = InferenceClient(
        api_key=os.getenv("OPENROUTER_API_KEY"),
        api_url=args.api_url,
        model_name=args.model,
    )
    extractor = InvoiceExtractor(inference, PageRasterizer(dpi=args.dpi))

    result = extractor.extract(args.file.read_bytes(), mime_type)
    print_summary(args.file, result)

    payload = result.model_dump_json(indent=2)
    if args.output:
        args.output.write_text(payload)
        print(f"\nResult saved to: {args.output}")
    else:
        print(payload)

    return 0 if isinstance(result, ConsolidatedInvoice) else 1


if __name__ == "__main__":
    sys.exit(main())
