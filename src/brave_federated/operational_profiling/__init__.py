"""Operational profiling: slot-scheduled anonymous pings.

This package provides:
- CollectionIdManager: Rotating anonymous collection id
- SlotScheduler: Training-step and slot-start timers
- CollectionSlotUploader: Payload building and the single POST per slot
- OperationalProfiling: Owns the three and the persisted cursor
"""

from brave_federated.operational_profiling.collection_id import (
    CollectionIdManager,
    generate_collection_id,
)
from brave_federated.operational_profiling.errors import (
    OperationalProfilingError,
    SchedulerError,
)
from brave_federated.operational_profiling.models import CollectionSlotPayload
from brave_federated.operational_profiling.profiling import OperationalProfiling
from brave_federated.operational_profiling.scheduler import SchedulerState, SlotScheduler
from brave_federated.operational_profiling.slots import get_current_collection_slot
from brave_federated.operational_profiling.uploader import CollectionSlotUploader

__all__ = [
    "CollectionIdManager",
    "CollectionSlotPayload",
    "CollectionSlotUploader",
    "OperationalProfiling",
    "OperationalProfilingError",
    "SchedulerError",
    "SchedulerState",
    "SlotScheduler",
    "generate_collection_id",
    "get_current_collection_slot",
]
