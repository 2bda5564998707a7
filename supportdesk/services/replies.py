import logging
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from supportdesk.db import utcnow
from supportdesk.errors import ValidationError
from supportdesk.models import REPLIES, USER
from supportdesk.services import tickets

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 2000


def sender_role(user: dict) -> str:
    # admins and developers both answer as the support side
    return USER if user.get("role") == USER else "DEVELOPER"


async def add_reply(
    db: AsyncIOMotorDatabase,
    ticket_ref: str,
    message: str,
    actor: dict,
    attachment_path: Optional[str] = None,
) -> tuple[dict, dict]:
    ticket = await tickets.get_ticket(db, ticket_ref)

    message = (message or "").strip()
    if not message:
        raise ValidationError("Please provide a message")
    if len(message) > MAX_MESSAGE_LENGTH:
        raise ValidationError("Message cannot exceed 2000 characters")

    reply = {
        "ticketId": ticket["_id"],
        "senderRole": sender_role(actor),
        "senderName": actor.get("name"),
        "senderId": actor["_id"],
        "message": message,
        "attachmentPath": attachment_path,
        "createdAt": utcnow(),
    }
    result = await db[REPLIES].insert_one(reply)
    reply["_id"] = result.inserted_id

    await tickets.touch(db, ticket)
    logger.info("Reply added to %s by %s", ticket["ticketId"], actor.get("email"))
    return reply, ticket
