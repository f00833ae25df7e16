"""Service layer for todokeep.

Services hold the business rules and sit between the command layer and the
repository.
"""

from .config_service import ConfigService, get_config_service
from .events import EventBus
from .integrity_service import IntegrityService
from .storage_strategy import build_service
from .task_service import TaskService

__all__ = [
    "ConfigService",
    "EventBus",
    "IntegrityService",
    "TaskService",
    "build_service",
    "get_config_service",
]
