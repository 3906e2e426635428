"""Service layer exports."""

from . import (
	allocation_service,
	pool_service,
	reconciliation_service,
	workflow_service,
)

__all__ = [
	"allocation_service",
	"pool_service",
	"reconciliation_service",
	"workflow_service",
]
