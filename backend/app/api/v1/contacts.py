"""
FastAPI route: emergency contact management.

    GET    /api/v1/contacts          — list in insertion order
    POST   /api/v1/contacts          — add (validated email shape)
    DELETE /api/v1/contacts/{index}  — remove by position
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from backend.app.api.schemas import ContactInput, ContactListResponse, get_monitor
from backend.app.safety.monitor import SafetyMonitor

router = APIRouter(prefix="/api/v1/contacts", tags=["contacts"])


def _listing(monitor: SafetyMonitor) -> ContactListResponse:
    contacts = list(monitor.contacts.list())
    return ContactListResponse(contacts=contacts, count=len(contacts))


@router.get("", response_model=ContactListResponse)
async def list_contacts(monitor: SafetyMonitor = Depends(get_monitor)):
    return _listing(monitor)


@router.post("", response_model=ContactListResponse, status_code=201)
async def add_contact(request: ContactInput, monitor: SafetyMonitor = Depends(get_monitor)):
    monitor.contacts.add(request.contact)
    return _listing(monitor)


@router.delete("/{index}", response_model=ContactListResponse)
async def remove_contact(index: int, monitor: SafetyMonitor = Depends(get_monitor)):
    monitor.contacts.remove(index)
    return _listing(monitor)
