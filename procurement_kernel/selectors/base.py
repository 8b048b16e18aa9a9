"""
Module: procurement_kernel.selectors.base
Responsibility: Base class for read-only selectors.  Selectors answer the
    polling reads behind queues, dashboards and history views.
Architecture position: Kernel > Selectors.  May import from models/ and
    services/record_store.  Selectors never append or update records.
"""

from abc import ABC

from procurement_kernel.services.record_store import RecordStore


class BaseSelector(ABC):
    """Holds the caller's RecordStore; subclasses add the queries."""

    def __init__(self, store: RecordStore):
        self.store = store
