"""Customer profile, jobs and notes endpoints."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Response, status

from ...errors import CustomerNotFoundError, NoteNotFoundError
from ...models.domain import CalendarEvent, CustomerNote, CustomerRecord
from ...persistence.customers import CustomerStore
from ...schemas.customers import (
    CanonicalIdentityModel,
    CustomerModel,
    CustomerSummaryModel,
    JobModel,
    LinkedJobsResponse,
    LinkJobsRequest,
    NoteModel,
    NoteRequest,
)
from ...services.customers import add_note, customer_type_from_history, delete_note, edit_note
from ...services.events import link_events
from ..deps import get_account_id, get_customer_store

router = APIRouter(prefix="/customers", tags=["customers"])


def _note_model(note: CustomerNote) -> NoteModel:
    return NoteModel(
        id=note.id,
        text=note.text,
        createdAt=note.created_at,
        updatedAt=note.updated_at,
        source=note.source,
    )


def _customer_model(record: CustomerRecord) -> CustomerModel:
    return CustomerModel(
        id=record.id,
        phone=record.phone,
        identity=CanonicalIdentityModel(e164=record.phone_e164, last10=record.phone_last10),
        customerName=record.name,
        customerEmail=record.email,
        address=record.address,
        customerType=record.customer_type,
        derivedCustomerType=customer_type_from_history(
            record.completed_service_count, record.last_completed_service_at
        ),
        vehicles=record.vehicles,
        services=record.services,
        notes=[_note_model(note) for note in record.notes],
        completedServiceCount=record.completed_service_count,
        lastCompletedServiceAt=record.last_completed_service_at,
        data=record.data,
        createdAt=record.created_at,
        updatedAt=record.updated_at,
    )


def _job_model(event: CalendarEvent, upcoming: bool) -> JobModel:
    return JobModel(
        id=event.id,
        start=event.start,
        status=event.status,
        title=event.title,
        services=event.services,
        isUpcoming=upcoming,
    )


def _load_customer(store: CustomerStore, account_id: str, customer_id: str) -> CustomerRecord:
    record = store.get(account_id, customer_id)
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Customer not found.")
    return record


@router.get("", response_model=List[CustomerSummaryModel], status_code=status.HTTP_200_OK)
def list_customers(
    account_id: str = Depends(get_account_id),
    store: CustomerStore = Depends(get_customer_store),
) -> List[CustomerSummaryModel]:
    return [
        CustomerSummaryModel(
            id=record.id,
            phone=record.phone,
            customerName=record.name,
            customerType=record.customer_type,
            vehicles=record.vehicles,
            updatedAt=record.updated_at,
        )
        for record in store.list(account_id)
    ]


@router.get("/{customer_id}", response_model=CustomerModel, status_code=status.HTTP_200_OK)
def get_customer(
    customer_id: str,
    account_id: str = Depends(get_account_id),
    store: CustomerStore = Depends(get_customer_store),
) -> CustomerModel:
    return _customer_model(_load_customer(store, account_id, customer_id))


@router.post("/{customer_id}/jobs", response_model=LinkedJobsResponse, status_code=status.HTTP_200_OK)
def link_customer_jobs(
    customer_id: str,
    payload: LinkJobsRequest,
    account_id: str = Depends(get_account_id),
    store: CustomerStore = Depends(get_customer_store),
) -> LinkedJobsResponse:
    """Filter calendar events down to this customer's upcoming and past jobs."""
    record = _load_customer(store, account_id, customer_id)
    linked = link_events(record.identity, [event.to_domain() for event in payload.events])
    return LinkedJobsResponse(
        customerId=record.id,
        upcoming=[_job_model(event, True) for event in linked.upcoming],
        past=[_job_model(event, False) for event in linked.past],
    )


@router.post("/{customer_id}/notes", response_model=NoteModel, status_code=status.HTTP_201_CREATED)
def create_note(
    customer_id: str,
    payload: NoteRequest,
    account_id: str = Depends(get_account_id),
    store: CustomerStore = Depends(get_customer_store),
) -> NoteModel:
    try:
        note = add_note(store, account_id, customer_id, payload.text)
    except CustomerNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return _note_model(note)


@router.patch("/{customer_id}/notes/{note_id}", response_model=NoteModel, status_code=status.HTTP_200_OK)
def update_note(
    customer_id: str,
    note_id: str,
    payload: NoteRequest,
    account_id: str = Depends(get_account_id),
    store: CustomerStore = Depends(get_customer_store),
) -> NoteModel:
    try:
        note = edit_note(store, account_id, customer_id, note_id, payload.text)
    except (CustomerNotFoundError, NoteNotFoundError) as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return _note_model(note)


@router.delete("/{customer_id}/notes/{note_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_note(
    customer_id: str,
    note_id: str,
    account_id: str = Depends(get_account_id),
    store: CustomerStore = Depends(get_customer_store),
) -> Response:
    try:
        delete_note(store, account_id, customer_id, note_id)
    except (CustomerNotFoundError, NoteNotFoundError) as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)
