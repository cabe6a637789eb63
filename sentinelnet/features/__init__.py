"""
User-owned data features for SentinelNet.
"""

from .contacts import ContactBook, MAX_CONTACTS
from .path_history import PathHistory

__all__ = ["ContactBook", "MAX_CONTACTS", "PathHistory"]
