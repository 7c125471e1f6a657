"""
Repository pattern: generic data access over SQLModel sessions, committed through a unit of work.
"""

from .base import BaseRepository, IRepository, SyncRepository
from .query import Include, OrderBy, chain_includes, include
from .unit_of_work import SyncUnitOfWork, UnitOfWork

__all__ = [
    "BaseRepository",
    "IRepository",
    "SyncRepository",
    "UnitOfWork",
    "SyncUnitOfWork",
    "OrderBy",
    "Include",
    "include",
    "chain_includes",
]
