"""
Core Application - Infrastructure & Base Classes

Generic building blocks shared by the domain apps. Nothing here knows
about billing.

Models (import from core.models):
    - BaseModel: Abstract model with timestamps (created_at, updated_at)

Model Mixins (import from core.model_mixins):
    - UUIDPrimaryKeyMixin: UUID as primary key
    - MetadataMixin: Flexible JSON metadata storage

Managers (import from core.managers):
    - BaseQuerySet: QuerySet with ownership and date helpers
    - BaseManager: Manager using BaseQuerySet

Services (import from core.services):
    - BaseService: Base class for service layer
    - ServiceResult: Standard result wrapper for expected failures

Exceptions (import from core.exceptions):
    - BaseApplicationError: Base exception with error codes
    - NotFoundError, PermissionDeniedError, ConflictError

Views (import from core.views):
    - health_check: Liveness endpoint for load balancers

Note:
    Models, model mixins and managers are NOT imported here to avoid
    AppRegistryNotReady errors. Import them directly from their modules.
"""

from .exceptions import (
    BaseApplicationError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
)
from .services import BaseService, ServiceResult

__all__ = [
    "BaseApplicationError",
    "BaseService",
    "ConflictError",
    "NotFoundError",
    "PermissionDeniedError",
    "ServiceResult",
]
