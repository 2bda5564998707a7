# supportdesk/routers/users.py
from fastapi import APIRouter, Depends

from supportdesk.db import serialize_doc
from supportdesk.dependencies import get_db, require_roles
from supportdesk.models import ADMIN, DEVELOPER, USER, USERS
from supportdesk.services.workload import developer_workload

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("")
async def get_users(db=Depends(get_db), admin: dict = Depends(require_roles(ADMIN))):
    users = []
    cursor = db[USERS].find({}, {"password": 0}).sort([("role", 1), ("name", 1)])
    async for user in cursor:
        users.append(serialize_doc(user))

    stats = {
        "total": len(users),
        "admins": sum(1 for u in users if u.get("role") == ADMIN),
        "developers": sum(1 for u in users if u.get("role") == DEVELOPER),
        "users": sum(1 for u in users if u.get("role") == USER),
    }
    return {"success": True, "data": {"users": users, "stats": stats}}


# For the assignment dropdown
@router.get("/developers")
async def get_developers(db=Depends(get_db), admin: dict = Depends(require_roles(ADMIN))):
    cursor = db[USERS].find({"role": DEVELOPER}, {"name": 1, "email": 1}).sort("name", 1)
    developers = [serialize_doc(dev) async for dev in cursor]
    return {"success": True, "data": {"developers": developers}}


@router.get("/workload")
async def get_workload(db=Depends(get_db), admin: dict = Depends(require_roles(ADMIN))):
    return {"success": True, "data": {"workload": await developer_workload(db)}}
