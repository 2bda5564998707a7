# supportdesk/routers/replies.py
from fastapi import APIRouter, BackgroundTasks, Depends, Request

from supportdesk.db import serialize_doc
from supportdesk.dependencies import get_current_user, get_db, get_notifier, parse_model, read_payload
from supportdesk.schemas.reply import ReplyCreate
from supportdesk.services import replies, tickets
from supportdesk.services.notifications import REPLY_ADDED, Notifier, TicketEvent
from supportdesk.services.uploads import save_attachment

router = APIRouter(prefix="/replies", tags=["Replies"])


@router.post("", status_code=201)
async def add_reply(
    request: Request,
    background_tasks: BackgroundTasks,
    db=Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    current_user: dict = Depends(get_current_user),
):
    fields, files = await read_payload(request)
    data = parse_model(ReplyCreate, fields)
    # 404 before anything is written to disk
    await tickets.get_ticket(db, data.ticketId)
    attachment_path = await save_attachment(files.get("attachment"))

    reply, ticket = await replies.add_reply(db, data.ticketId, data.message, current_user, attachment_path)

    background_tasks.add_task(
        notifier.dispatch, TicketEvent(REPLY_ADDED, ticket, actor=current_user, reply=reply)
    )

    return {"success": True, "message": "Reply added successfully", "data": {"reply": serialize_doc(reply)}}


@router.get("/{ticket_id}")
async def list_replies(ticket_id: str, db=Depends(get_db)):
    ticket = await tickets.get_ticket(db, ticket_id)
    items = await tickets.replies_for(db, ticket["_id"])
    return {"success": True, "count": len(items), "data": {"replies": items}}
