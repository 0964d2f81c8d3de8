"""
Orchestration package for coordinating migration pipeline phases.

This package provides the core orchestration layer that sequences all migration
phases: Structure → Attachments → Link Rewriting → Report.
"""

from .migration_orchestrator import MigrationOrchestrator
from .migration_report import MigrationReport

__all__ = [
    'MigrationOrchestrator',
    'MigrationReport'
]
