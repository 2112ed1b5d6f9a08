"""PDF to page-image conversion for inference."""

import logging
import re
import tempfile
import uuid
from pathlib import Path
from typing import Union

from pdf2image import convert_from_path
from pdf2image.exceptions import PDFInfoNotInstalledError, PDFPageCountError, PDFSyntaxError

from ..errors import RasterizationError
from ..models import PageImage, UnsupportedFormat

logger = logging.getLogger(__name__)

PDF_MIME_TYPE = "application/pdf"
IMAGE_MIME_TYPES = ("image/jpeg", "image/png", "image/gif")

_PAGE_INDEX = re.compile(r"-(\d+)\.png$")


def page_sort_key(filename: str) -> tuple[int, int, str]:
    """Order generated page files by their numeric page index.

    Names without a parsable index sort after all indexed pages.
    """
    match = _PAGE_INDEX.search(filename)
    if match is None:
        logger.warning(f"Page file {filename} does not match the expected pattern")
        return (1, 0, filename)
    return (0, int(match.group(1)), filename)


class PageRasterizer:
    """Turn an attachment into one image per page."""

    def __init__(self, dpi: int = 150):
        self.dpi = dpi

    def rasterize(self, data: bytes, mime_type: str) -> Union[list[PageImage], UnsupportedFormat]:
        """Split an attachment into page images.

        Args:
            data: Raw attachment bytes
            mime_type: Declared MIME type

        Returns:
            list[PageImage]: Pages in ascending order
            UnsupportedFormat: If the MIME type is neither PDF nor a supported image

        Raises:
            RasterizationError: If a PDF yields no pages
        """
        mime_type = (mime_type or "").lower()

        if mime_type in IMAGE_MIME_TYPES:
            return [PageImage(data=data, mime_type=mime_type, page_context="page 1 of 1")]

        if mime_type == PDF_MIME_TYPE:
            return self._rasterize_pdf(data)

        logger.warning(f"Unsupported MIME type: {mime_type}")
        return UnsupportedFormat(
            mime_type=mime_type,
            message=f"Unsupported file type: {mime_type}.",
        )

    def _rasterize_pdf(self, data: bytes) -> list[PageImage]:
        """Convert every PDF page to PNG inside a private scratch directory."""
        with tempfile.TemporaryDirectory(prefix="invoice-pdf-") as scratch:
            scratch_dir = Path(scratch)
            pdf_path = scratch_dir / f"{uuid.uuid4().hex}.pdf"
            pdf_path.write_bytes(data)

            try:
                convert_from_path(
                    str(pdf_path),
                    dpi=self.dpi,
                    output_folder=str(scratch_dir),
                    output_file="page",
                    fmt="png",
                    use_pdftocairo=True,
                    paths_only=True,
                )
            except (PDFInfoNotInstalledError, PDFPageCountError, PDFSyntaxError) as e:
                raise RasterizationError(f"PDF conversion failed: {e}") from e

            page_files = sorted(
                (p.name for p in scratch_dir.iterdir() if p.suffix.lower() == ".png"),
                key=page_sort_key,
            )
            if not page_files:
                raise RasterizationError(
                    "No PNG images found after PDF conversion. PDF conversion might have failed or PDF was empty."
                )

            total = len(page_files)
            logger.info(f"Converted PDF into {total} page(s)")
            return [
                PageImage(
                    data=(scratch_dir / name).read_bytes(),
                    mime_type="image/png",
                    page_context=f"page {index} of {total}",
                )
                for index, name in enumerate(page_files, start=1)
            ]
