# supportdesk/routers/notifications.py
from fastapi import APIRouter, Depends

from supportdesk.db import serialize_doc, to_object_id
from supportdesk.dependencies import get_current_user, get_db
from supportdesk.errors import NotFoundError
from supportdesk.models import NOTIFICATIONS
from supportdesk.services.notifications import ticket_summaries, unread_count

router = APIRouter(prefix="/notifications", tags=["Notifications"])

INBOX_LIMIT = 50


async def _inbox(db, email: str) -> dict:
    email = email.strip().lower()
    docs = await (
        db[NOTIFICATIONS].find({"userEmail": email}).sort([("createdAt", -1), ("_id", -1)]).limit(INBOX_LIMIT)
    ).to_list(length=None)
    summaries = await ticket_summaries(db, [d.get("ticketId") for d in docs])
    notifications = []
    for doc in docs:
        item = serialize_doc(doc)
        item["ticket"] = summaries.get(doc.get("ticketId"))
        notifications.append(item)
    return {"notifications": notifications, "unreadCount": await unread_count(db, email)}


@router.get("")
async def my_notifications(db=Depends(get_db), current_user: dict = Depends(get_current_user)):
    return {"success": True, "data": await _inbox(db, current_user["email"])}


# Guest inbox for people who filed tickets without an account
@router.get("/email/{email}")
async def notifications_by_email(email: str, db=Depends(get_db)):
    return {"success": True, "data": await _inbox(db, email)}


@router.put("/read-all")
async def mark_all_read(db=Depends(get_db), current_user: dict = Depends(get_current_user)):
    await db[NOTIFICATIONS].update_many(
        {"userEmail": current_user["email"], "isRead": False}, {"$set": {"isRead": True}}
    )
    return {"success": True, "message": "All notifications marked as read"}


@router.put("/{notification_id}/read")
async def mark_read(notification_id: str, db=Depends(get_db), current_user: dict = Depends(get_current_user)):
    oid = to_object_id(notification_id)
    query = {"_id": oid, "userEmail": current_user["email"]}
    result = await db[NOTIFICATIONS].update_one(query, {"$set": {"isRead": True}}) if oid else None
    if result is None or result.matched_count == 0:
        raise NotFoundError("Notification not found")
    notification = await db[NOTIFICATIONS].find_one(query)
    return {"success": True, "data": {"notification": serialize_doc(notification)}}


@router.delete("/{notification_id}")
async def delete_notification(
    notification_id: str, db=Depends(get_db), current_user: dict = Depends(get_current_user)
):
    oid = to_object_id(notification_id)
    result = (
        await db[NOTIFICATIONS].delete_one({"_id": oid, "userEmail": current_user["email"]}) if oid else None
    )
    if result is None or result.deleted_count == 0:
        raise NotFoundError("Notification not found")
    return {"success": True, "message": "Notification deleted"}


@router.delete("")
async def clear_notifications(db=Depends(get_db), current_user: dict = Depends(get_current_user)):
    result = await db[NOTIFICATIONS].delete_many({"userEmail": current_user["email"]})
    return {"success": True, "message": "All notifications cleared", "count": result.deleted_count}
