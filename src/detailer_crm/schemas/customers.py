"""Customer-facing API schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Any, List

from pydantic import BaseModel, Field

from ..models.domain import CalendarEvent


class CanonicalIdentityModel(BaseModel):
    e164: str | None = None
    last10: str | None = None


class NoteModel(BaseModel):
    id: str
    text: str
    createdAt: datetime
    updatedAt: datetime | None = None
    source: str


class NoteRequest(BaseModel):
    text: str = Field(min_length=1, max_length=5000)


class CustomerSummaryModel(BaseModel):
    id: str
    phone: str
    customerName: str | None = None
    customerType: str | None = None
    vehicles: List[str]
    updatedAt: datetime


class CustomerModel(BaseModel):
    id: str
    phone: str
    identity: CanonicalIdentityModel
    customerName: str | None = None
    customerEmail: str | None = None
    address: str | None = None
    customerType: str | None = None
    derivedCustomerType: str
    vehicles: List[str]
    services: List[str]
    notes: List[NoteModel]
    completedServiceCount: int
    lastCompletedServiceAt: datetime | None = None
    data: dict[str, Any]
    createdAt: datetime
    updatedAt: datetime


class CalendarEventModel(BaseModel):
    id: str
    start: datetime
    status: str = "confirmed"
    phone: str | None = None
    description: str | None = None
    title: str | None = None
    services: List[str] = Field(default_factory=list)

    def to_domain(self) -> CalendarEvent:
        return CalendarEvent(
            id=self.id,
            start=self.start,
            status=self.status,
            phone=self.phone,
            description=self.description,
            title=self.title,
            services=list(self.services),
        )


class LinkJobsRequest(BaseModel):
    events: List[CalendarEventModel]


class JobModel(BaseModel):
    id: str
    start: datetime
    status: str
    title: str | None = None
    services: List[str]
    isUpcoming: bool


class LinkedJobsResponse(BaseModel):
    customerId: str
    upcoming: List[JobModel]
    past: List[JobModel]
