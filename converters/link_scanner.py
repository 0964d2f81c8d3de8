"""Discovery of document and attachment links in exported markdown."""

import logging
import re
from pathlib import Path
from typing import Optional, Union

from fetchers.export_reader import ExportReader
from models import MARKDOWN_EXTENSION, LinkScanResult

# [text](target) and ![alt](target); the '!' does not change classification
LINK_PATTERN = re.compile(r'!?\[[^\]]*\]\(([^)]+)\)')
EXTERNAL_PREFIXES = ('http://', 'https://')


def is_external(target: str) -> bool:
    return target.startswith(EXTERNAL_PREFIXES)


def scan_links(content: str, source_path: Union[str, Path]) -> LinkScanResult:
    """
    Collect every relative link target in a markdown document.

    Args:
        content: Raw markdown content
        source_path: Path of the document the content was read from

    Returns:
        LinkScanResult with document links (targets ending in .md) and
        attachment links (all other relative targets)
    """
    source_path = str(source_path)
    result = LinkScanResult()

    for match in LINK_PATTERN.finditer(content):
        target = match.group(1)
        if is_external(target):
            continue
        if target.endswith(MARKDOWN_EXTENSION):
            result.add_document(target, source_path)
        else:
            result.add_attachment(target, source_path)

    return result


def scan_directory_tree(
    root: Union[str, Path],
    reader=None,
    logger: Optional[logging.Logger] = None
) -> LinkScanResult:
    """
    Scan every markdown file under ``root``, media folders included.

    Args:
        root: Directory to scan
        reader: ExportReader used for listing and reading (created if None)
        logger: Logger instance

    Returns:
        Merged LinkScanResult over all files, in traversal order
    """
    log = logger or logging.getLogger('slite_outline_migrator.converters.link_scanner')
    if reader is None:
        reader = ExportReader(root, logger=log)

    merged = LinkScanResult()
    files_scanned = 0

    for file_path in reader.iter_markdown_files(root):
        try:
            content = reader.read_text(file_path)
        except (OSError, UnicodeDecodeError) as e:
            log.warning(f"Could not read {file_path} while scanning links: {e}")
            continue
        merged.merge(scan_links(content, file_path))
        files_scanned += 1

    log.info(
        f"Scanned {files_scanned} markdown files: "
        f"{len(merged.attachment_links)} attachment links, "
        f"{len(merged.document_links)} document links"
    )
    return merged


__all__ = ['LINK_PATTERN', 'is_external', 'scan_links', 'scan_directory_tree']
