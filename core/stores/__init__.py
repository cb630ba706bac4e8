"""Job and vendor persistence."""

from core.stores.base import JobStore, JobUnitOfWork, VendorStore
from core.stores.memory_store import InMemoryJobStore, InMemoryVendorStore
