"""Link rewriter pointing markdown links at migrated Outline documents and attachments."""

import logging
import posixpath
import re
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import unquote

from converters.content_parser import METADATA_PREAMBLE_LINES, parse_document
from models import MARKDOWN_EXTENSION

# Matches both [text](target) and ![alt](target); group 1 keeps the '!'
REWRITE_PATTERN = re.compile(r'(!?)\[([^\]]*)\]\(([^)]+)\)')

# Prefix of rewritten document links, see importers.id_mapping_tracker.document_url
DOCUMENT_URL_PREFIX = '/doc/'


def normalize_document_target(target: str) -> str:
    """
    Normalize a link target for document lookup.

    Strips one leading '/', percent-decodes, then strips a trailing '.md'.
    """
    if target.startswith('/'):
        target = target[1:]
    target = unquote(target)
    if target.endswith(MARKDOWN_EXTENSION):
        target = target[:-len(MARKDOWN_EXTENSION)]
    return target


class LinkRewriter:
    """
    Rewrites relative links in migrated documents to Outline URLs.

    This rewriter:
    1. Re-derives the body exactly as it was created (preamble and title removed)
    2. Replaces links to migrated documents with their /doc/<id> URLs
    3. Replaces links to uploaded attachments with their attachment URLs
    4. Leaves external and unresolvable links untouched, recording the latter
    """

    def __init__(
        self,
        registry,
        preamble_lines: int = METADATA_PREAMBLE_LINES,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the link rewriter.

        Args:
            registry: IdMappingTracker populated by the earlier phases
            preamble_lines: Metadata lines stripped from each source file
            logger: Logger instance
        """
        self.registry = registry
        self.preamble_lines = preamble_lines
        self.logger = logger or logging.getLogger('slite_outline_migrator.converters.link_rewriter')

        self.stats = {
            'documents_rewritten': 0,
            'document_links': 0,
            'attachment_links': 0,
            'unresolved_links': 0
        }
        self.unresolved: List[Dict[str, str]] = []

    def rewrite_links(self, raw_content: str, source_key: Optional[str] = None) -> str:
        """
        Produce the final body of a document from its raw source file.

        Args:
            raw_content: Full content of the source file
            source_key: Export-relative path of the source file, if known

        Returns:
            Body with every resolvable link pointing at Outline
        """
        parsed = parse_document(raw_content, source_key or '', self.preamble_lines)
        return self.rewrite_body(parsed.body, source_key)

    def rewrite_body(self, body: str, source_key: Optional[str] = None) -> str:
        """
        Rewrite the links of an already parsed body.

        Applying this to its own output changes nothing further.

        Args:
            body: Document body (no preamble, no title heading)
            source_key: Export-relative path of the source file, if known

        Returns:
            Updated body
        """
        rewritten, document_count, attachment_count, unresolved = self._rewrite(body, source_key)

        self.stats['documents_rewritten'] += 1
        self.stats['document_links'] += document_count
        self.stats['attachment_links'] += attachment_count
        self.stats['unresolved_links'] += len(unresolved)

        for target in unresolved:
            self.unresolved.append({'source': source_key or '', 'target': target})
            self.logger.debug(f"Unresolved link '{target}' in {source_key or '<content>'}")

        if unresolved:
            self.logger.warning(
                f"{len(unresolved)} unresolved link(s) left unchanged in {source_key or '<content>'}"
            )

        return rewritten

    def resolve_document_url(self, target: str, source_key: Optional[str] = None) -> Optional[str]:
        """
        Look up the Outline URL of a link target that names a document.

        Export-root-relative lookup comes first. Targets ending in .md are
        also tried relative to the source file's directory when it is known.
        """
        normalized = normalize_document_target(target)
        candidates = [normalized]

        if source_key and target.endswith(MARKDOWN_EXTENSION):
            base_dir = posixpath.dirname(source_key)
            relative = posixpath.normpath(posixpath.join(base_dir, normalized))
            if relative != normalized:
                candidates.append(relative)

        for candidate in candidates:
            url = (
                self.registry.get_document_url(candidate)
                or self.registry.get_document_url(candidate + MARKDOWN_EXTENSION)
            )
            if url:
                return url
        return None

    @staticmethod
    def _is_rewritten(target: str) -> bool:
        return target.startswith(DOCUMENT_URL_PREFIX) and not target.endswith(MARKDOWN_EXTENSION)

    def _rewrite(self, body: str, source_key: Optional[str]) -> Tuple[str, int, int, List[str]]:
        document_count = 0
        attachment_count = 0
        unresolved: List[str] = []

        def replace_link(match):
            nonlocal document_count, attachment_count

            bang, text, target = match.group(1), match.group(2), match.group(3)

            if target.startswith('http') or self._is_rewritten(target):
                return match.group(0)

            document_url = self.resolve_document_url(target, source_key)
            if document_url:
                document_count += 1
                return f"{bang}[{text}]({document_url})"

            # Attachments were registered by the literal link text
            attachment_url = self.registry.get_attachment_url(target, source_key)
            if attachment_url:
                attachment_count += 1
                return f"{bang}[{text}]({attachment_url})"

            unresolved.append(target)
            return match.group(0)

        rewritten = REWRITE_PATTERN.sub(replace_link, body)
        return rewritten, document_count, attachment_count, unresolved

    def get_statistics(self) -> Dict[str, Any]:
        stats = dict(self.stats)
        stats['unresolved'] = list(self.unresolved)
        return stats


def rewrite_links(
    raw_content: str,
    registry,
    source_key: Optional[str] = None,
    preamble_lines: int = METADATA_PREAMBLE_LINES
) -> str:
    """Convenience wrapper around LinkRewriter.rewrite_links()."""
    return LinkRewriter(registry, preamble_lines=preamble_lines).rewrite_links(raw_content, source_key)


__all__ = ['LinkRewriter', 'normalize_document_target', 'rewrite_links', 'REWRITE_PATTERN']
