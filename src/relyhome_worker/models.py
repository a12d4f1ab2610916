"""Data models shared across the worker."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

Identifier = Union[str, int]


@dataclass(frozen=True)
class Slot:
    """One selectable appointment option on an acceptance form."""

    value: str
    label: str
    element_id: Optional[str] = None
    group_name: Optional[str] = None


@dataclass(frozen=True)
class ParsedSlotLabel:
    """Facts pulled out of a slot label; every field is optional."""

    date: Optional[str] = None
    day_of_week: Optional[str] = None
    time_range: Optional[str] = None


class JobRequest(BaseModel):
    """Body of ``POST /accept``."""

    model_config = ConfigDict(frozen=True)

    job_id: Identifier
    task_id: Optional[Identifier] = None
    accept_url: str
    preferred_slots: List[str] = Field(default_factory=list)
    preferred_days: List[str] = Field(default_factory=list)
    callback_url: Optional[str] = None
    secret: Optional[str] = None


class JobResult(BaseModel):
    """Callback payload describing the outcome of one accept run."""

    job_id: Identifier
    task_id: Optional[Identifier] = None
    success: bool
    selected_slot: Optional[str] = None
    selected_date: Optional[str] = None
    selected_day: Optional[str] = None
    confirmation_message: Optional[str] = None
    screenshot_base64: Optional[str] = None
    available_slots: List[str] = Field(default_factory=list)
    error: Optional[str] = None
    secret: Optional[str] = None


class AcceptResponse(BaseModel):
    """Immediate acknowledgement for ``POST /accept``."""

    status: str = "processing"
    job_id: Identifier
    task_id: Optional[Identifier] = None


class JobLink(BaseModel):
    """An "accept" link found on the jobs listing."""

    model_config = ConfigDict(populate_by_name=True)

    href: str
    text: str = ""
    row_text: str = Field(default="", alias="rowText")
    index: int


class ScrapeRequest(BaseModel):
    url: Optional[str] = None
    secret: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None


class ScrapeResult(BaseModel):
    success: bool = True
    raw_markdown: str
    raw_html: str
    job_links: List[JobLink] = Field(default_factory=list)
    scraped_at: str


class LoginRequest(BaseModel):
    username: Optional[str] = None
    password: Optional[str] = None
    secret: Optional[str] = None


class LoginResponse(BaseModel):
    success: bool = True
    portal_url: str
    has_tokens: bool
    refreshed_at: str


class HealthResponse(BaseModel):
    status: str = "ok"
    timestamp: str
