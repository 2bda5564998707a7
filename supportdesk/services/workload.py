from motor.motor_asyncio import AsyncIOMotorDatabase

from supportdesk.models import COMPLETED, DEVELOPER, DONE, IN_PROGRESS, IN_PROGRESS_QA, TICKETS, USERS


async def developer_workload(db: AsyncIOMotorDatabase):
    """
    Ticket counts per developer: everything assigned, what is being worked on
    (In Progress / In Progress QA) and what is finished (Completed / Done).
    """
    developers = await db[USERS].find({"role": DEVELOPER}, {"name": 1, "email": 1}).sort("name", 1).to_list(length=None)

    workload = []
    for dev in developers:
        base = {"assignedTo": dev["_id"]}
        workload.append({
            "developer": {"id": str(dev["_id"]), "name": dev.get("name"), "email": dev.get("email")},
            "tickets": {
                "total": await db[TICKETS].count_documents(base),
                "inProgress": await db[TICKETS].count_documents(
                    {**base, "status": {"$in": [IN_PROGRESS, IN_PROGRESS_QA]}}
                ),
                "completed": await db[TICKETS].count_documents({**base, "status": {"$in": [COMPLETED, DONE]}}),
            },
        })
    return workload
