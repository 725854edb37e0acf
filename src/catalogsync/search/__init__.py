from .keys import normalize
from .orchestrator import RemoteSearch, SearchOrchestrator

__all__ = ["RemoteSearch", "SearchOrchestrator", "normalize"]
