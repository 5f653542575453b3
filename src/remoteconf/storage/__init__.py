"""
In-memory remotes model and durable file replacement.
"""

from remoteconf.storage.atomic import AtomicWriter
from remoteconf.storage.models import RemoteConfig, Section

__all__ = [
    "AtomicWriter",
    "RemoteConfig",
    "Section",
]
