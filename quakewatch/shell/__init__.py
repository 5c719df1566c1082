"""Imperative Shell - I/O and side effects.

This module contains all code that interacts with external systems:
- Feed client (HTTP)
- Firestore client (database)
- Push client (FCM over HTTP)
- Configuration loading (environment/files)

Keep this layer thin and simple. All business logic should be in core.
"""

from quakewatch.shell.feed_client import FeedClient
from quakewatch.shell.firestore_client import FirestoreClient
from quakewatch.shell.push_client import PushClient
from quakewatch.shell.config_loader import load_config

__all__ = [
    "FeedClient",
    "FirestoreClient",
    "PushClient",
    "load_config",
]
