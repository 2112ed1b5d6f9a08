"""Merge per-page extraction results into one invoice per attachment."""

from typing import Sequence

from ..models import (
    INVOICE_FIELDS,
    ConsolidatedInvoice,
    ExtractionFailed,
    ExtractionResult,
    PageExtraction,
    PageResult,
    PageSummary,
)


def summarize_page(page: PageResult) -> PageSummary:
    if isinstance(page, PageExtraction):
        return PageSummary(**page.model_dump(include=set(INVOICE_FIELDS) | {"page_context"}))
    return PageSummary(page_context=page.page_context, has_error=True)


def consolidate_pages(pages: Sequence[PageResult]) -> ExtractionResult:
    """Take the first non-null value of each field across pages, in page order.

    Fields are resolved independently, so they may come from different pages.
    Error pages are counted and summarized but contribute no values. When
    several pages report different totals the earliest wins; this is a known
    simplification.

    Args:
        pages: Page results in ascending page order

    Returns:
        ConsolidatedInvoice, or ExtractionFailed if no page was readable
    """
    summary = [summarize_page(page) for page in pages]
    readable = [page for page in pages if isinstance(page, PageExtraction)]

    if not readable:
        return ExtractionFailed(
            error="Extraction Failed",
            message="No data could be extracted from any page.",
            processed_pages=len(pages),
            page_data_summary=summary,
        )

    fields = dict.fromkeys(INVOICE_FIELDS)
    for page in readable:
        for field in INVOICE_FIELDS:
            value = getattr(page, field)
            if fields[field] is None and value is not None:
                fields[field] = value

    return ConsolidatedInvoice(
        **fields,
        llm_model=readable[0].llm_model,
        processed_pages=len(pages),
        page_data_summary=summary,
    )
