# supportdesk/seed.py
"""Reset the database to a demo data set: python -m supportdesk.seed"""
import asyncio
import logging

from supportdesk.db import db, ensure_indexes
from supportdesk.models import ADMIN, LICENSES, NOTIFICATIONS, REPLIES, SYSTEM_STATE, TICKETS, USERS
from supportdesk.services import accounts, licenses, tickets

logger = logging.getLogger("supportdesk.seed")

DEVELOPERS = [
    ("Usman", "usman@tashkhees.com", "usman123"),
    ("Ahmed", "ahmed@tashkhees.com", "ahmed123"),
    ("Sara", "sara@tashkhees.com", "sara1234"),
]

SAMPLE_TICKETS = [
    {"userName": "Ali Khan", "userEmail": "ali@example.com", "product": "RxScan",
     "subject": "Prescription scan fails on blurry images", "description": "Upload rejects low-light photos.",
     "priority": "High"},
    {"userName": "Fatima Noor", "userEmail": "fatima@example.com", "product": "Medscribe",
     "subject": "Transcript export missing timestamps", "description": "PDF export drops the timestamps column.",
     "priority": "Medium"},
    {"userName": "Bilal Ahmed", "userEmail": "bilal@example.com", "product": "DICOM Viewer",
     "subject": "Viewer crashes on large series", "description": "Series over 800 slices crash the viewer.",
     "priority": "Critical"},
]


async def seed():
    for name in (USERS, TICKETS, REPLIES, NOTIFICATIONS, LICENSES, SYSTEM_STATE):
        await db[name].delete_many({})
    await ensure_indexes(db)

    admin = await accounts.create_user(db, "Super Admin", "superadmin@tashkhees.com", "superadmin123", ADMIN)
    logger.info("Admin: superadmin@tashkhees.com / superadmin123")

    developers = []
    for name, email, password in DEVELOPERS:
        developers.append(await accounts.create_developer(db, name, email, password))
        logger.info("Developer: %s / %s", email, password)

    keys = await licenses.generate(db, count=5, created_by=admin["_id"], notes="seed")
    for key in keys:
        logger.info("License: %s (%s)", key["code"], key["product"])

    for i, data in enumerate(SAMPLE_TICKETS):
        ticket = await tickets.create_ticket(db, data)
        if i < len(developers) - 1:
            await tickets.assign(db, ticket, str(developers[i]["_id"]), admin)
        logger.info("Ticket %s: %s", ticket["ticketId"], ticket["subject"])

    logger.info("Seed complete")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    asyncio.run(seed())
