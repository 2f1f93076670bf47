# =============================================================================
# Storage Module
# =============================================================================
# Handles persistent storage using SQLite.
#
# Provides:
#   - Database initialization and migrations
#   - Message and verdict persistence
#   - The notification retry queue
#   - Async operations via aiosqlite
#
# The database is stored in the XDG data directory
# (~/.local/share/smsguard/) unless the config points elsewhere.
# =============================================================================

from smsguard.storage.database import Database
from smsguard.storage.repository import Repository

__all__ = ["Database", "Repository"]
