# supportdesk/routers/tickets.py
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Request

from supportdesk.db import serialize_doc
from supportdesk.dependencies import get_db, get_notifier, get_optional_user, parse_model, read_payload, require_roles
from supportdesk.models import ADMIN, DEVELOPER
from supportdesk.schemas.ticket import AssignRequest, StatusUpdate, TicketCreate
from supportdesk.services import tickets
from supportdesk.services.notifications import (
    STATUS_CHANGED, TICKET_ASSIGNED, TICKET_CREATED, Notifier, TicketEvent,
)
from supportdesk.services.uploads import save_attachment

router = APIRouter(prefix="/tickets", tags=["Tickets"])

ADMIN_PRIORITY_BUCKETS = ("unassigned", "critical", "high")
ALL_BUCKETS = ("unassigned", "critical", "high", "medium", "low")


async def _one(db, ticket: dict) -> dict:
    return (await tickets.expand(db, [ticket]))[0]


# -----------------------------
# CREATE Ticket (public)
# -----------------------------
@router.post("", status_code=201)
async def create_ticket(
    request: Request,
    background_tasks: BackgroundTasks,
    db=Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    current_user: Optional[dict] = Depends(get_optional_user),
):
    fields, files = await read_payload(request)
    data = parse_model(TicketCreate, fields)
    attachment_path = await save_attachment(files.get("attachment"))

    ticket = await tickets.create_ticket(db, data.model_dump(), attachment_path, actor=current_user)

    background_tasks.add_task(notifier.dispatch, TicketEvent(TICKET_CREATED, ticket, actor=current_user))

    return {
        "success": True,
        "message": "Ticket created successfully",
        "data": {"ticket": serialize_doc(ticket)},
    }


# -----------------------------
# LIST Tickets (role scoped)
# -----------------------------
@router.get("")
async def list_tickets(
    status: Optional[str] = None,
    product: Optional[str] = None,
    priority: Optional[str] = None,
    search: Optional[str] = None,
    assignedTo: Optional[str] = None,
    db=Depends(get_db),
    current_user: dict = Depends(require_roles(ADMIN, DEVELOPER)),
):
    base = tickets.scope_query(current_user)
    query = {**base, **tickets.build_filters(status, product, priority, search)}
    if current_user["role"] == ADMIN and assignedTo:
        query["assignedTo"] = tickets.assignee_id(assignedTo)

    items = await tickets.list_tickets(db, query)
    buckets = ADMIN_PRIORITY_BUCKETS if current_user["role"] == ADMIN else ()
    stats = await tickets.count_stats(db, base, buckets)

    return {"success": True, "count": len(items), "data": {"tickets": items, "stats": stats}}


@router.get("/all")
async def list_all_tickets(
    status: Optional[str] = None,
    product: Optional[str] = None,
    priority: Optional[str] = None,
    search: Optional[str] = None,
    assignedTo: Optional[str] = None,
    unassigned: Optional[bool] = None,
    db=Depends(get_db),
    admin: dict = Depends(require_roles(ADMIN)),
):
    query = tickets.build_filters(status, product, priority, search)
    if unassigned:
        query["assignedTo"] = None
    elif assignedTo:
        query["assignedTo"] = tickets.assignee_id(assignedTo)

    items = await tickets.list_tickets(db, query)
    stats = await tickets.count_stats(db, {}, ALL_BUCKETS)

    return {"success": True, "count": len(items), "data": {"tickets": items, "stats": stats}}


@router.get("/user/{email}")
async def tickets_for_user(email: str, db=Depends(get_db)):
    items = await tickets.list_tickets(db, {"userEmail": email.strip().lower()})
    return {"success": True, "count": len(items), "data": {"tickets": items}}


# -----------------------------
# GET Ticket Detail (public)
# -----------------------------
@router.get("/{ticket_id}")
async def get_ticket_detail(ticket_id: str, db=Depends(get_db)):
    ticket = await tickets.get_ticket(db, ticket_id)
    replies = await tickets.replies_for(db, ticket["_id"])
    return {"success": True, "data": {"ticket": await _one(db, ticket), "replies": replies}}


# -----------------------------
# UPDATE Ticket Status
# -----------------------------
@router.put("/{ticket_id}/status")
async def update_status(
    ticket_id: str,
    data: StatusUpdate,
    background_tasks: BackgroundTasks,
    db=Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    current_user: dict = Depends(require_roles(ADMIN, DEVELOPER)),
):
    ticket = await tickets.get_ticket(db, ticket_id)
    updated, old_status = await tickets.change_status(db, ticket, data.status, current_user)

    background_tasks.add_task(
        notifier.dispatch,
        TicketEvent(STATUS_CHANGED, updated, actor=current_user, old_status=old_status, new_status=data.status),
    )

    return {
        "success": True,
        "message": "Ticket status updated successfully",
        "data": {"ticket": await _one(db, updated)},
    }


# -----------------------------
# Assignment (admin only)
# -----------------------------
@router.put("/{ticket_id}/assign")
async def assign_ticket(
    ticket_id: str,
    data: AssignRequest,
    background_tasks: BackgroundTasks,
    db=Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    admin: dict = Depends(require_roles(ADMIN)),
):
    ticket = await tickets.get_ticket(db, ticket_id)
    updated, developer, old_status = await tickets.assign(db, ticket, data.developerId, admin)

    if old_status is not None:
        background_tasks.add_task(
            notifier.dispatch,
            TicketEvent(STATUS_CHANGED, updated, actor=admin, old_status=old_status, new_status=updated["status"]),
        )
    background_tasks.add_task(
        notifier.dispatch, TicketEvent(TICKET_ASSIGNED, updated, actor=admin, developer=developer)
    )

    return {
        "success": True,
        "message": f"Ticket assigned to {developer['name']}",
        "data": {"ticket": await _one(db, updated)},
    }


@router.put("/{ticket_id}/unassign")
async def unassign_ticket(ticket_id: str, db=Depends(get_db), admin: dict = Depends(require_roles(ADMIN))):
    ticket = await tickets.get_ticket(db, ticket_id)
    updated = await tickets.unassign(db, ticket, admin)
    return {
        "success": True,
        "message": "Ticket unassigned successfully",
        "data": {"ticket": await _one(db, updated)},
    }
