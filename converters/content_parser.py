"""
Title and body extraction for exported markdown files.

Every file in a Slite export starts with a fixed block of export-tool metadata
lines followed by the page content, whose first top-level heading is the page
title. The same transform is applied when a document is created and when its
links are rewritten, so the body pushed in both steps is identical.
"""

import re
from pathlib import PurePath
from typing import Optional, Tuple

from models import MARKDOWN_EXTENSION, ParsedDocument

# Export-tool metadata lines at the top of each file
METADATA_PREAMBLE_LINES = 6

HEADING_PATTERN = re.compile(r'^[ \t]*#(?!#)[ \t]*(\S.*?)[ \t]*(?:\n+|$)', re.MULTILINE)
LEADING_BLANK_LINES = re.compile(r'\A(?:[ \t]*\n)+')


def strip_preamble(raw_content: str, preamble_lines: int = METADATA_PREAMBLE_LINES) -> str:
    """
    Drop the metadata preamble from raw file content.

    Args:
        raw_content: Full file content
        preamble_lines: Number of leading lines to discard

    Returns:
        Content after the preamble (empty if the file is shorter)
    """
    content = raw_content.replace('\r\n', '\n')
    if preamble_lines <= 0:
        return content
    return '\n'.join(content.split('\n')[preamble_lines:])


def extract_heading(content: str) -> Tuple[Optional[str], str]:
    """
    Find the first top-level heading and remove it from the content.

    Args:
        content: Markdown content without preamble

    Returns:
        Tuple of (title or None, content without the heading line)
    """
    match = HEADING_PATTERN.search(content)
    if not match:
        return None, content

    title = match.group(1).strip()
    remainder = content[:match.start()] + content[match.end():]
    return title, remainder


def title_from_filename(file_name: str) -> str:
    """Fallback title: the file name without directory and .md suffix."""
    name = PurePath(file_name).name
    if name.endswith(MARKDOWN_EXTENSION):
        name = name[:-len(MARKDOWN_EXTENSION)]
    return name


def parse_document(
    raw_content: str,
    fallback_name: str,
    preamble_lines: int = METADATA_PREAMBLE_LINES
) -> ParsedDocument:
    """
    Split raw exported markdown into the title and the body to upload.

    Args:
        raw_content: Full file content including the metadata preamble
        fallback_name: File name used as title when no heading exists
        preamble_lines: Number of leading metadata lines to discard

    Returns:
        ParsedDocument with title and body
    """
    content = strip_preamble(raw_content, preamble_lines)
    title, remainder = extract_heading(content)

    if not title:
        title = title_from_filename(fallback_name)

    body = LEADING_BLANK_LINES.sub('', remainder).rstrip()
    return ParsedDocument(title=title, body=body)


__all__ = [
    'METADATA_PREAMBLE_LINES',
    'strip_preamble',
    'extract_heading',
    'title_from_filename',
    'parse_document'
]
