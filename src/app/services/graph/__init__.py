"""Microsoft Graph integration for Outlook mail, calendar and To Do."""

from src.app.services.graph.client import GraphAPIError, GraphClient

__all__ = [
    "GraphAPIError",
    "GraphClient",
]
