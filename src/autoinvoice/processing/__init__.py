"""Email parsing and page rasterization."""

from .email_parser import GmailMessageParser
from .rasterizer import PageRasterizer

__all__ = ["GmailMessageParser", "PageRasterizer"]
