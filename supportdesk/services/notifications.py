"""
Notification fan-out.

Ticket routes commit their write first and then hand a ``TicketEvent`` to
``Notifier.dispatch`` as a background task. Each event turns into up to three
independent effects: a notification row, a Socket.IO push and an email. A
failure in any one of them is logged and does not affect the others or the
ticket write that produced the event.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from supportdesk.db import serialize_doc, to_object_id, utcnow
from supportdesk.models import ADMIN, DEVELOPER, NOTIFICATIONS, TICKETS, USER, USERS
from supportdesk.realtime import ADMIN_CHANNEL, ChannelRegistry, email_channel
from supportdesk.services.email import EmailService

logger = logging.getLogger(__name__)

# Event kinds
TICKET_CREATED = "ticket_created"
STATUS_CHANGED = "status_changed"
TICKET_ASSIGNED = "ticket_assigned"
REPLY_ADDED = "reply_added"

# notify_admin event types
ADMIN_NEW_TICKET = "new_ticket"
ADMIN_STATUS_CHANGE = "status_change"
ADMIN_USER_REPLY = "user_reply"


@dataclass
class TicketEvent:
    kind: str
    ticket: dict
    actor: Optional[dict] = None
    old_status: Optional[str] = None
    new_status: Optional[str] = None
    developer: Optional[dict] = None
    reply: Optional[dict] = None


async def ticket_summaries(db: AsyncIOMotorDatabase, ticket_ids) -> dict:
    ids = list({tid for tid in ticket_ids if tid is not None})
    if not ids:
        return {}
    cursor = db[TICKETS].find({"_id": {"$in": ids}}, {"ticketId": 1, "subject": 1, "status": 1})
    return {t["_id"]: serialize_doc(t) async for t in cursor}


async def unread_count(db: AsyncIOMotorDatabase, email: str) -> int:
    return await db[NOTIFICATIONS].count_documents({"userEmail": email_channel(email), "isRead": False})


class Notifier:
    def __init__(self, db: AsyncIOMotorDatabase, channels: ChannelRegistry, mailer: EmailService):
        self.db = db
        self.channels = channels
        self.mailer = mailer

    async def dispatch(self, event: TicketEvent):
        try:
            if event.kind == TICKET_CREATED:
                await self.notify_ticket_created(event.ticket)
                await self.notify_admin(event.ticket, ADMIN_NEW_TICKET)
            elif event.kind == STATUS_CHANGED:
                await self.notify_status_change(event.ticket, event.old_status, event.new_status, event.actor)
            elif event.kind == TICKET_ASSIGNED:
                await self.notify_ticket_assigned(event.ticket, event.developer, event.actor)
            elif event.kind == REPLY_ADDED:
                await self.notify_reply_added(event.ticket, event.reply, event.actor)
            else:
                logger.warning("Unknown ticket event %s", event.kind)
        except Exception:
            logger.exception("Notification fan-out failed for %s on %s", event.kind, event.ticket.get("ticketId"))

    # -----------------------------
    # Sinks
    # -----------------------------
    async def create_notification(
        self,
        *,
        user_email: str,
        type: str,
        title: str,
        message: str,
        ticket: dict,
        user_id=None,
        metadata: Optional[dict] = None,
    ) -> dict:
        doc = {
            "userId": to_object_id(user_id),
            "userEmail": email_channel(user_email),
            "type": type,
            "title": title,
            "message": message,
            "ticketId": ticket["_id"],
            "ticketNumber": ticket.get("ticketId"),
            "isRead": False,
            "metadata": metadata or {},
            "createdAt": utcnow(),
        }
        try:
            result = await self.db[NOTIFICATIONS].insert_one(doc)
            doc["_id"] = result.inserted_id
        except Exception as e:
            logger.error(f"Error creating notification for {doc['userEmail']}: {e}")
        await self.push(doc, ticket)
        return doc

    async def push(self, doc: dict, ticket: dict):
        try:
            payload = serialize_doc(doc) or {}
            payload["ticket"] = serialize_doc(
                {k: ticket.get(k) for k in ("_id", "ticketId", "subject", "status")}
            )
            await self.channels.emit(
                doc["userEmail"],
                "notification",
                {"notification": payload, "unreadCount": await unread_count(self.db, doc["userEmail"])},
            )
            logger.debug("Real-time notification pushed to %s", doc["userEmail"])
        except Exception as e:
            logger.error(f"Error pushing notification to {doc['userEmail']}: {e}")

    async def email(self, to_email: str, template: str, **context):
        try:
            await self.mailer.send(to_email, template, **context)
        except Exception as e:
            logger.error(f"Error sending {template} email to {to_email}: {e}")

    # -----------------------------
    # Ticket lifecycle
    # -----------------------------
    async def notify_ticket_created(self, ticket: dict):
        await self.create_notification(
            user_email=ticket["userEmail"],
            user_id=ticket.get("userId"),
            type="ticket_created",
            title=f"Ticket Created: {ticket['ticketId']}",
            message=f"Your support ticket \"{ticket['subject']}\" has been received",
            ticket=ticket,
        )
        await self.email(ticket["userEmail"], "ticketCreated", ticket=ticket)

    async def notify_status_change(self, ticket: dict, old_status: str, new_status: str, actor: Optional[dict]):
        changed_by = (actor or {}).get("name")
        await self.create_notification(
            user_email=ticket["userEmail"],
            user_id=ticket.get("userId"),
            type="status_change",
            title=f"Ticket {ticket['ticketId']} Status Updated",
            message=f"Your ticket status has been changed from \"{old_status}\" to \"{new_status}\"",
            ticket=ticket,
            metadata={"oldStatus": old_status, "newStatus": new_status, "changedBy": changed_by},
        )
        if actor and actor.get("role") == DEVELOPER:
            await self.notify_admin(ticket, ADMIN_STATUS_CHANGE, actor=actor, old_status=old_status, new_status=new_status)
        await self.email(
            ticket["userEmail"],
            "statusChanged",
            ticket=ticket,
            old_status=old_status,
            new_status=new_status,
            changed_by=changed_by,
        )

    async def notify_ticket_assigned(self, ticket: dict, developer: dict, actor: Optional[dict] = None):
        assigned_by = (actor or {}).get("name")
        await self.create_notification(
            user_email=ticket["userEmail"],
            user_id=ticket.get("userId"),
            type="ticket_assigned",
            title=f"Ticket {ticket['ticketId']} Assigned",
            message=f"Your ticket has been assigned to {developer['name']}",
            ticket=ticket,
            metadata={"assignedTo": developer["name"], "assignedBy": assigned_by},
        )
        await self.create_notification(
            user_email=developer["email"],
            user_id=developer["_id"],
            type="ticket_assigned",
            title=f"New Ticket Assigned: {ticket['ticketId']}",
            message=f"You have been assigned to ticket \"{ticket['subject']}\"",
            ticket=ticket,
            metadata={"assignedTo": developer["name"], "assignedBy": assigned_by, "priority": ticket.get("priority")},
        )
        await self.email(ticket["userEmail"], "ticketAssigned", ticket=ticket, assigned_to=developer["name"])

    async def notify_reply_added(self, ticket: dict, reply: dict, actor: Optional[dict]):
        sender = reply.get("senderName")
        if reply.get("senderRole") == USER:
            await self.notify_admin(ticket, ADMIN_USER_REPLY, actor=actor)
            developer_id = ticket.get("assignedTo")
            if developer_id:
                developer = await self.db[USERS].find_one({"_id": developer_id})
                if developer:
                    await self.create_notification(
                        user_email=developer["email"],
                        user_id=developer["_id"],
                        type="comment_added",
                        title=f"Reply on {ticket['ticketId']}",
                        message=f"{sender} replied to ticket \"{ticket['subject']}\"",
                        ticket=ticket,
                    )
            return
        await self.create_notification(
            user_email=ticket["userEmail"],
            user_id=ticket.get("userId"),
            type="comment_added",
            title=f"New reply on {ticket['ticketId']}",
            message=f"{sender} replied to your ticket \"{ticket['subject']}\"",
            ticket=ticket,
        )
        await self.email(ticket["userEmail"], "replyAdded", ticket=ticket, sender=sender, message=reply.get("message"))

    async def notify_admin(self, ticket: dict, event_type: str, actor: Optional[dict] = None, **metadata):
        """Notify every admin account and broadcast a summary on the admin channel."""
        who = (actor or {}).get("name") or ticket.get("userName")
        if event_type == ADMIN_NEW_TICKET:
            type_ = "ticket_created"
            title = f"New Ticket: {ticket['ticketId']}"
            message = (
                f"{ticket['userName']} created a new {ticket.get('priority')} priority ticket: \"{ticket['subject']}\""
            )
        elif event_type == ADMIN_STATUS_CHANGE:
            type_ = "status_change"
            title = f"Status Changed: {ticket['ticketId']}"
            message = (
                f"{who} moved \"{ticket['subject']}\" from "
                f"\"{metadata.get('old_status')}\" to \"{metadata.get('new_status')}\""
            )
        else:
            type_ = "comment_added"
            title = f"Reply on {ticket['ticketId']}"
            message = f"{who} replied to ticket \"{ticket['subject']}\""

        meta = {k: v for k, v in {
            "oldStatus": metadata.get("old_status"),
            "newStatus": metadata.get("new_status"),
            "changedBy": (actor or {}).get("name"),
        }.items() if v is not None}

        async for admin in self.db[USERS].find({"role": ADMIN}):
            await self.create_notification(
                user_email=admin["email"],
                user_id=admin["_id"],
                type=type_,
                title=title,
                message=message,
                ticket=ticket,
                metadata=meta,
            )

        try:
            summary = {k: ticket.get(k) for k in ("_id", "ticketId", "userName", "subject", "priority", "status")}
            await self.channels.emit(
                ADMIN_CHANNEL, "admin_notification", {"type": event_type, "ticket": serialize_doc(summary)}
            )
        except Exception as e:
            logger.error(f"Error broadcasting to admin channel: {e}")
