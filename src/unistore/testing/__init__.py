"""Testing utilities: in-memory storage backends."""

from unistore.testing.memory import MemoryContainer, MemoryLocation, memory_dialer

__all__ = ["MemoryContainer", "MemoryLocation", "memory_dialer"]
