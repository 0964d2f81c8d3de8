"""Converters package for parsing exported markdown and rewriting its links."""

from .content_parser import METADATA_PREAMBLE_LINES, parse_document
from .link_rewriter import LinkRewriter, rewrite_links
from .link_scanner import scan_directory_tree, scan_links

__all__ = [
    'METADATA_PREAMBLE_LINES',
    'parse_document',
    'scan_links',
    'scan_directory_tree',
    'LinkRewriter',
    'rewrite_links'
]
