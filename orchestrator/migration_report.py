"""
Migration report generator for aggregating statistics and formatting reports.

This module generates migration reports from phase statistics, formatting
them for console display and JSON export.
"""

import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

logger = logging.getLogger('slite_outline_migrator.orchestrator.migration_report')

PHASE_TITLES = {
    'structure': 'Structure Creation',
    'attachments': 'Attachment Upload',
    'link_rewrite': 'Link Rewriting',
    'preview': 'Dry Run Preview'
}


class MigrationReport:
    """Generates migration reports aggregating statistics from all phases."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        """
        Initialize migration report generator.

        Args:
            logger: Optional logger instance
        """
        self.logger = logger or logging.getLogger('slite_outline_migrator.orchestrator.migration_report')

    def generate_report(
        self,
        phase_stats: Dict[str, Any],
        migration_duration: float,
        final_state: str,
        registry_stats: Optional[Dict[str, int]] = None,
        source_path: Optional[str] = None,
        dry_run: bool = False
    ) -> Dict[str, Any]:
        """
        Generate migration report.

        Args:
            phase_stats: Statistics from all phases, keyed by phase name
            migration_duration: Total migration duration in seconds
            final_state: Final orchestrator state value
            registry_stats: Counts from the ID mapping tracker
            source_path: Export root that was migrated
            dry_run: Whether this was a dry run

        Returns:
            Migration report dictionary
        """
        report = {
            'summary': self._build_summary(phase_stats, migration_duration, final_state, registry_stats or {}),
            'phases': self._build_phase_breakdown(phase_stats),
            'errors': self._build_error_summary(phase_stats),
            'source_path': source_path,
            'dry_run': dry_run,
            'timestamp': datetime.now().isoformat()
        }

        self.logger.info(
            f"Report generated: {report['summary']['documents']} documents, "
            f"{report['summary']['total_errors']} errors"
        )

        return report

    def _build_summary(
        self,
        phase_stats: Dict[str, Any],
        duration: float,
        final_state: str,
        registry_stats: Dict[str, int]
    ) -> Dict[str, Any]:
        """Build high-level summary section."""
        attachment_stats = phase_stats.get('attachments', {})
        rewrite_stats = phase_stats.get('link_rewrite', {})

        summary = {
            'final_state': final_state,
            'collections': registry_stats.get('collections', 0),
            'documents': registry_stats.get('documents', 0),
            'containers': registry_stats.get('containers', 0),
            'attachments_uploaded': attachment_stats.get('uploaded', 0),
            'attachments_missing': attachment_stats.get('missing_files', 0),
            'documents_updated': rewrite_stats.get('documents_updated', 0),
            'links_rewritten': (
                rewrite_stats.get('document_links', 0) + rewrite_stats.get('attachment_links', 0)
            ),
            'unresolved_links': rewrite_stats.get('unresolved_links', 0),
            'duration_seconds': duration,
            'duration_formatted': self._format_duration(duration),
            'orchestration_failed': False
        }

        summary['total_errors'] = self._count_total_errors(phase_stats)
        return summary

    def _build_phase_breakdown(self, phase_stats: Dict[str, Any]) -> Dict[str, Any]:
        """Build detailed breakdown by phase, without per-item error lists."""
        breakdown = {}
        for phase_name, stats in phase_stats.items():
            breakdown[phase_name] = {
                key: value for key, value in stats.items()
                if key not in ('errors', 'attachments', 'unresolved')
            }
            breakdown[phase_name]['errors'] = len(stats.get('errors', []))
        return breakdown

    def _build_error_summary(self, phase_stats: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Aggregate errors from all phases."""
        all_errors = []

        for phase_name, stats in phase_stats.items():
            for error in stats.get('errors', []):
                error_copy = error.copy()
                error_copy['phase'] = phase_name
                all_errors.append(error_copy)

        return all_errors

    def _format_duration(self, seconds: float) -> str:
        """Format duration in human-readable format."""
        if seconds < 60:
            return f"{seconds:.1f}s"
        elif seconds < 3600:
            minutes = int(seconds // 60)
            secs = int(seconds % 60)
            return f"{minutes}m {secs}s"
        else:
            hours = int(seconds // 3600)
            minutes = int((seconds % 3600) // 60)
            secs = int(seconds % 60)
            return f"{hours}h {minutes}m {secs}s"

    def _count_total_errors(self, phase_stats: Dict[str, Any]) -> int:
        return sum(len(stats.get('errors', [])) for stats in phase_stats.values())

    def format_console_report(self, report: Dict[str, Any]) -> str:
        """
        Format report for console display.

        Args:
            report: Migration report dictionary

        Returns:
            Formatted console string
        """
        sections = []

        sections.append("=" * 60)
        sections.append("MIGRATION REPORT" + (" (DRY RUN)" if report.get('dry_run') else ""))
        sections.append("=" * 60)
        sections.append("")

        summary = report.get('summary', {})
        sections.append("Summary:")
        if report.get('source_path'):
            sections.append(f"  Source:      {report['source_path']}")
        sections.append(f"  State:       {summary.get('final_state', 'unknown')}")
        sections.append(f"  Collections: {summary.get('collections', 0)}")
        sections.append(f"  Documents:   {summary.get('documents', 0)}")
        sections.append(f"  Containers:  {summary.get('containers', 0)}")
        sections.append(f"  Attachments: {summary.get('attachments_uploaded', 0)}")
        sections.append(f"  Duration:    {summary.get('duration_formatted', '0s')}")

        if summary.get('attachments_missing', 0) > 0:
            sections.append(f"  Missing:     {summary['attachments_missing']} attachment files")
        if summary.get('unresolved_links', 0) > 0:
            sections.append(f"  Unresolved:  {summary['unresolved_links']} links left unchanged")

        if summary.get('orchestration_failed'):
            sections.append(f"  FAILED:      {summary.get('orchestration_error', 'unknown error')}")

        sections.append("")

        phases = report.get('phases', {})
        if phases:
            sections.append("Phase Breakdown:")
            sections.append("-" * 60)

            for phase_name, stats in phases.items():
                sections.append(f"  {PHASE_TITLES.get(phase_name, phase_name)}:")
                for key, value in stats.items():
                    if isinstance(value, (int, float, str, bool)):
                        sections.append(f"    {key.replace('_', ' ').capitalize()}: {value}")

            sections.append("")

        errors = report.get('errors', [])
        if errors:
            sections.append("Error Summary:")
            sections.append(f"  Total errors: {len(errors)}")

            errors_by_phase: Dict[str, int] = {}
            for error in errors:
                phase = error.get('phase', 'unknown')
                errors_by_phase[phase] = errors_by_phase.get(phase, 0) + 1

            for phase, count in sorted(errors_by_phase.items()):
                sections.append(f"  {phase}: {count} errors")

            sections.append("")

        sections.append("=" * 60)

        return "\n".join(sections)

    def export_json_report(self, report: Dict[str, Any], filepath: str) -> None:
        """
        Export report to JSON file.

        Args:
            report: Migration report dictionary
            filepath: Output file path
        """
        with open(filepath, 'w', encoding='utf-8') as f:
            json.dump(report, f, indent=2, ensure_ascii=False, default=str)

        self.logger.info(f"JSON report exported to {filepath}")


__all__ = ['MigrationReport']
