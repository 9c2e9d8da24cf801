"""Pydantic schemas for Google Workspace API results."""

from __future__ import annotations

from pydantic import BaseModel, Field


class SentEmailResult(BaseModel):
    """Result from sending an email via Gmail API."""

    message_id: str
    thread_id: str = ""
    label_ids: list[str] = Field(default_factory=list)


class CreatedEventResult(BaseModel):
    """Result from inserting a Google Calendar event."""

    event_id: str
    html_link: str = ""


class CreatedTaskResult(BaseModel):
    """Result from inserting a Google Tasks entry."""

    task_id: str
    tasklist_id: str
