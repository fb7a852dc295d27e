"""Migration engine and strategies."""

from .engine import MigrationEngine
from .exceptions import (
    ConnectionValidationError,
    MigrationError,
    MigrationIncompleteError,
    PlanningError,
    WorkspaceMigrationError,
)
from .normalizer import ENVIRONMENT_SUFFIXES, normalize_name
from .orchestrator import MigrationOrchestrator, split_batches
from .planner import MigrationPlan, MigrationPlanner
from .stats import FailedMigration, MigrationStats
from .strategy import MigrationContext, MigrationOptions, StateMigrationStrategy

__all__ = [
    'ConnectionValidationError',
    'ENVIRONMENT_SUFFIXES',
    'FailedMigration',
    'MigrationContext',
    'MigrationEngine',
    'MigrationError',
    'MigrationIncompleteError',
    'MigrationOptions',
    'MigrationOrchestrator',
    'MigrationPlan',
    'MigrationPlanner',
    'MigrationStats',
    'PlanningError',
    'StateMigrationStrategy',
    'WorkspaceMigrationError',
    'normalize_name',
    'split_batches',
]
