"""Application layer package."""

from application.controller import MigrationController, PlannedAction
from application.factories import MigrationFactory
from application.pipeline import TransferPipeline
from application.resolver import ExistenceResolver

__all__ = [
    "MigrationController",
    "PlannedAction",
    "MigrationFactory",
    "TransferPipeline",
    "ExistenceResolver",
]
