"""
Core Application - Infrastructure & Base Classes

Generic, reusable building blocks with no domain-specific logic.

Models (import from core.models):
    - BaseModel: Abstract model with timestamps (created_at, updated_at)

Model Mixins (import from core.model_mixins):
    - UUIDPrimaryKeyMixin: UUID as primary key

Services (import from core.services):
    - BaseService: Base class for service layer
    - ServiceResult: Standard result wrapper for success/failure handling

Exceptions (import from core.exceptions):
    - BaseApplicationError: Base exception with error codes and retry flag

Protocols (import from core.protocols):
    - DocumentStore: Transactional JSON document store interface
    - RetryQueue: Durable work queue interface

Note:
    Django models and model mixins are NOT imported here to avoid
    AppRegistryNotReady errors. Import them directly from their modules.
"""

# Services (no Django model dependencies)
from .services import BaseService, ServiceResult

# Exceptions (no Django dependencies)
from .exceptions import BaseApplicationError

# Protocols (no Django dependencies)
from .protocols import DocumentStore, RetryQueue

__all__ = [
    # Services
    "BaseService",
    "ServiceResult",
    # Exceptions
    "BaseApplicationError",
    # Protocols
    "DocumentStore",
    "RetryQueue",
]
