# Infrastructure Progress Adapters Package
from .json_store import JsonFileProgressStore
from .memory_store import InMemoryProgressStore

__all__ = ["InMemoryProgressStore", "JsonFileProgressStore"]
