"""Google Workspace services for Gmail, Calendar and Tasks.

Provides async-wrapped services that act as the signed-in user through the
OAuth access token supplied with each request.
"""

from src.app.services.gsuite.auth import GoogleServiceFactory
from src.app.services.gsuite.calendar import GoogleCalendarService
from src.app.services.gsuite.gmail import GmailService
from src.app.services.gsuite.models import (
    CreatedEventResult,
    CreatedTaskResult,
    SentEmailResult,
)
from src.app.services.gsuite.tasks import GoogleTasksService

__all__ = [
    "CreatedEventResult",
    "CreatedTaskResult",
    "GmailService",
    "GoogleCalendarService",
    "GoogleServiceFactory",
    "GoogleTasksService",
    "SentEmailResult",
]
