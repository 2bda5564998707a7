"""
Ticket store and the status/assignment state machine.

Any of the five statuses may be set from any other one. The only automatic
moves are ``TO DO -> In Progress`` when an unassigned ticket gets a developer
and ``In Progress -> TO DO`` when it loses one. Every status write appends one
entry to ``statusHistory``.
"""

import logging
import re
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from supportdesk.db import serialize_doc, to_object_id, utcnow
from supportdesk.errors import AuthorizationError, NotFoundError, ValidationError
from supportdesk.models import (
    ADMIN, DEVELOPER, IN_PROGRESS, IN_PROGRESS_QA, COMPLETED, DONE, TO_DO,
    REPLIES, SYSTEM_STATE, TICKETS, TICKET_STATUSES, USERS,
)

logger = logging.getLogger(__name__)

TICKET_SEQUENCE = "ticket_sequence"
FIRST_TICKET_NUMBER = 1001

STATUS_BUCKETS = {
    "toDo": TO_DO,
    "inProgress": IN_PROGRESS,
    "inProgressQA": IN_PROGRESS_QA,
    "completed": COMPLETED,
    "done": DONE,
}


def history_entry(status: str, changed_by=None) -> dict:
    return {"status": status, "changedBy": to_object_id(changed_by), "changedAt": utcnow()}


async def next_ticket_id(db: AsyncIOMotorDatabase) -> str:
    state = await db[SYSTEM_STATE].find_one_and_update(
        {"_id": TICKET_SEQUENCE},
        {"$inc": {"value": 1}},
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )
    number = FIRST_TICKET_NUMBER + state["value"] - 1
    return f"TSK-{number:04d}"


async def get_ticket(db: AsyncIOMotorDatabase, ticket_ref: str) -> dict:
    """Look a ticket up by document id or by its TSK-NNNN code."""
    oid = to_object_id(ticket_ref)
    if oid is not None:
        ticket = await db[TICKETS].find_one({"_id": oid})
    else:
        ticket = await db[TICKETS].find_one({"ticketId": str(ticket_ref).upper()})
    if not ticket:
        raise NotFoundError("Ticket not found")
    return ticket


async def create_ticket(db: AsyncIOMotorDatabase, data: dict, attachment_path: Optional[str] = None, actor=None) -> dict:
    status = data.get("status") or TO_DO
    ticket = {
        "ticketId": await next_ticket_id(db),
        "userId": to_object_id(data.get("userId")),
        "userName": data["userName"].strip(),
        "userEmail": data["userEmail"].strip().lower(),
        "product": data["product"],
        "subject": data["subject"].strip(),
        "description": data["description"].strip(),
        "status": status,
        "priority": data.get("priority") or "Medium",
        "assignedTo": None,
        "attachmentPath": attachment_path,
        "statusHistory": [history_entry(status, (actor or {}).get("_id"))],
        "createdAt": utcnow(),
        "updatedAt": utcnow(),
    }
    result = await db[TICKETS].insert_one(ticket)
    ticket["_id"] = result.inserted_id
    logger.info("Ticket %s created for %s", ticket["ticketId"], ticket["userEmail"])
    return ticket


async def _save(db: AsyncIOMotorDatabase, ticket: dict, fields: dict, history: Optional[dict] = None) -> dict:
    update = {"$set": {**fields, "updatedAt": utcnow()}}
    if history is not None:
        update["$push"] = {"statusHistory": history}
    updated = await db[TICKETS].find_one_and_update(
        {"_id": ticket["_id"]}, update, return_document=ReturnDocument.AFTER
    )
    if updated is None:
        raise NotFoundError("Ticket not found")
    return updated


async def change_status(db: AsyncIOMotorDatabase, ticket: dict, new_status: str, actor: dict) -> tuple[dict, str]:
    if new_status not in TICKET_STATUSES:
        raise ValidationError(f"Invalid status '{new_status}'")
    if actor.get("role") == DEVELOPER and str(ticket.get("assignedTo")) != str(actor["_id"]):
        raise AuthorizationError("You can only update tickets assigned to you")

    old_status = ticket["status"]
    updated = await _save(db, ticket, {"status": new_status}, history_entry(new_status, actor["_id"]))
    logger.info("Ticket %s: %s -> %s by %s", ticket["ticketId"], old_status, new_status, actor.get("email"))
    return updated, old_status


async def assign(db: AsyncIOMotorDatabase, ticket: dict, developer_id: str, actor: dict):
    """
    Returns (ticket, developer, old_status). ``old_status`` is set only when
    the assignment moved the ticket from TO DO to In Progress.
    """
    oid = to_object_id(developer_id)
    developer = await db[USERS].find_one({"_id": oid}) if oid else None
    if not developer or developer.get("role") != DEVELOPER:
        raise ValidationError("Invalid developer ID")

    fields = {"assignedTo": developer["_id"]}
    history = None
    old_status = None
    if not ticket.get("assignedTo") and ticket["status"] == TO_DO:
        old_status = ticket["status"]
        fields["status"] = IN_PROGRESS
        history = history_entry(IN_PROGRESS, actor["_id"])

    updated = await _save(db, ticket, fields, history)
    logger.info("Ticket %s assigned to %s", ticket["ticketId"], developer["email"])
    return updated, developer, old_status


async def unassign(db: AsyncIOMotorDatabase, ticket: dict, actor: dict) -> dict:
    fields = {"assignedTo": None}
    history = None
    if ticket["status"] == IN_PROGRESS:
        fields["status"] = TO_DO
        history = history_entry(TO_DO, actor["_id"])
    updated = await _save(db, ticket, fields, history)
    logger.info("Ticket %s unassigned", ticket["ticketId"])
    return updated


async def touch(db: AsyncIOMotorDatabase, ticket: dict):
    await db[TICKETS].update_one({"_id": ticket["_id"]}, {"$set": {"updatedAt": utcnow()}})


# -----------------------------
# Listing
# -----------------------------
def scope_query(user: dict) -> dict:
    if user.get("role") == DEVELOPER:
        return {"assignedTo": user["_id"]}
    if user.get("role") == ADMIN:
        return {}
    return {"userEmail": user.get("email")}


def build_filters(
    status: Optional[str] = None,
    product: Optional[str] = None,
    priority: Optional[str] = None,
    search: Optional[str] = None,
) -> dict:
    query = {}
    if status:
        query["status"] = status
    if product:
        query["product"] = product
    if priority:
        query["priority"] = priority
    if search:
        pattern = {"$regex": re.escape(search), "$options": "i"}
        query["$or"] = [{"ticketId": pattern}, {"subject": pattern}, {"userName": pattern}]
    return query


def assignee_id(developer_id: str):
    oid = to_object_id(developer_id)
    if oid is None:
        raise ValidationError("Invalid developer ID")
    return oid


async def count_stats(db: AsyncIOMotorDatabase, base: dict, extra_buckets=()) -> dict:
    stats = {"total": await db[TICKETS].count_documents(base)}
    for key, status in STATUS_BUCKETS.items():
        stats[key] = await db[TICKETS].count_documents({**base, "status": status})
    for key in extra_buckets:
        if key == "unassigned":
            stats[key] = await db[TICKETS].count_documents({**base, "assignedTo": None})
        else:
            stats[key] = await db[TICKETS].count_documents({**base, "priority": key.capitalize()})
    return stats


async def list_tickets(db: AsyncIOMotorDatabase, query: dict) -> list[dict]:
    tickets = await db[TICKETS].find(query).sort([("createdAt", -1), ("_id", -1)]).to_list(length=None)
    return await expand(db, tickets)


async def expand(db: AsyncIOMotorDatabase, tickets: list[dict]) -> list[dict]:
    """Serialize tickets, replacing user references with name/email stubs."""
    ids = set()
    for t in tickets:
        ids.add(t.get("assignedTo"))
        ids.update(h.get("changedBy") for h in t.get("statusHistory", []))
    ids.discard(None)
    users = {}
    if ids:
        async for u in db[USERS].find({"_id": {"$in": list(ids)}}, {"name": 1, "email": 1}):
            users[u["_id"]] = u

    out = []
    for t in tickets:
        item = serialize_doc(t)
        dev = users.get(t.get("assignedTo"))
        if dev:
            item["assignedTo"] = {"_id": str(dev["_id"]), "name": dev.get("name"), "email": dev.get("email")}
        for entry, raw in zip(item.get("statusHistory", []), t.get("statusHistory", [])):
            who = users.get(raw.get("changedBy"))
            if who:
                entry["changedBy"] = {"_id": str(who["_id"]), "name": who.get("name")}
        out.append(item)
    return out


async def replies_for(db: AsyncIOMotorDatabase, ticket_id) -> list[dict]:
    cursor = db[REPLIES].find({"ticketId": ticket_id}).sort([("createdAt", 1), ("_id", 1)])
    return [serialize_doc(r) async for r in cursor]
