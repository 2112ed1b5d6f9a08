"""Document-level extraction: rasterize, extract each page, consolidate."""

import logging

from ..errors import RasterizationError
from ..models import ExtractionFailed, ExtractionResult, UnsupportedFormat
from ..processing.rasterizer import PageRasterizer
from .consolidate import consolidate_pages
from .inference import InferenceClient

logger = logging.getLogger(__name__)


class InvoiceExtractor:
    """Extract one consolidated invoice from an attachment."""

    def __init__(self, inference: InferenceClient, rasterizer: PageRasterizer | None = None):
        self.inference = inference
        self.rasterizer = rasterizer or PageRasterizer()

    def extract(self, data: bytes, mime_type: str) -> ExtractionResult:
        """Run every page of an attachment through the model.

        Pages are sent one at a time in ascending order. Failures are
        returned as ExtractionFailed rather than raised.

        Args:
            data: Attachment bytes
            mime_type: Attachment MIME type

        Returns:
            ConsolidatedInvoice or ExtractionFailed
        """
        if not self.inference.configured:
            logger.error("Inference API key is missing; refusing to extract")
            return ExtractionFailed(error="Configuration Error", message="Inference API key missing.")

        try:
            pages = self.rasterizer.rasterize(data, mime_type)
        except RasterizationError as e:
            logger.error(f"Rasterization failed: {e}")
            return ExtractionFailed(error="Rasterization Failed", message=str(e))
        except Exception as e:
            # Scratch-file and converter failures still yield an auditable record
            logger.exception("Unexpected error while converting attachment to pages")
            return ExtractionFailed(error="Rasterization Failed", message=f"Page conversion failed: {e}")

        if isinstance(pages, UnsupportedFormat):
            return ExtractionFailed(error="Unsupported Format", message=pages.message)

        results = [
            self.inference.extract_page(page.data, page.mime_type, page.page_context)
            for page in pages
        ]
        consolidated = consolidate_pages(results)
        logger.info(f"Consolidated {len(results)} page(s): {type(consolidated).__name__}")
        return consolidated
