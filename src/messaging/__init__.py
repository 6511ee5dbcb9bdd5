"""Localized messages and their delivery."""

from src.messaging.catalog import MessageCatalog
from src.messaging.notifier import Notifier

__all__ = ["MessageCatalog", "Notifier"]
