import logging
import secrets
import string
from datetime import datetime
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from supportdesk.db import as_utc, serialize_doc, to_object_id, utcnow
from supportdesk.errors import NotFoundError, ValidationError
from supportdesk.models import ALL_PRODUCTS, LICENSES, USERS

logger = logging.getLogger(__name__)

CODE_ALPHABET = string.ascii_uppercase + string.digits
MAX_BATCH = 50

ALREADY_USED = "This license key has already been used"
EXPIRED = "This license key has expired"


def generate_code() -> str:
    """TSK- followed by three 4-char segments. Uniqueness is the caller's job."""
    segments = ["".join(secrets.choice(CODE_ALPHABET) for _ in range(4)) for _ in range(3)]
    return "TSK-" + "-".join(segments)


def check_redeemable(license: dict, now: Optional[datetime] = None) -> dict:
    if license.get("isUsed"):
        return {"valid": False, "reason": ALREADY_USED}
    expires_at = as_utc(license.get("expiresAt"))
    if expires_at and (now or utcnow()) > expires_at:
        return {"valid": False, "reason": EXPIRED}
    return {"valid": True, "reason": None}


async def find_by_code(db: AsyncIOMotorDatabase, code: str) -> Optional[dict]:
    if not code:
        return None
    return await db[LICENSES].find_one({"code": code.strip().upper()})


async def generate(
    db: AsyncIOMotorDatabase,
    count: int = 1,
    product: str = ALL_PRODUCTS,
    expires_at: Optional[datetime] = None,
    notes: str = "",
    created_by=None,
) -> list[dict]:
    """
    Create up to 50 new license keys.

    Codes already written stay in place if a later one in the batch fails.
    """
    if count < 1:
        raise ValidationError("Count must be at least 1")

    generated = []
    for _ in range(min(count, MAX_BATCH)):
        while True:
            code = generate_code()
            if await db[LICENSES].find_one({"code": code}):
                continue
            doc = {
                "code": code,
                "product": product,
                "isUsed": False,
                "usedBy": None,
                "usedAt": None,
                "expiresAt": as_utc(expires_at),
                "createdBy": to_object_id(created_by),
                "notes": notes or "",
                "createdAt": utcnow(),
            }
            try:
                result = await db[LICENSES].insert_one(doc)
            except DuplicateKeyError:
                # lost a race with a concurrent batch, draw again
                logger.warning("License code collision on %s, redrawing", code)
                continue
            doc["_id"] = result.inserted_id
            generated.append(doc)
            break

    logger.info("Generated %d license key(s) for %s", len(generated), product)
    return generated


async def validate(db: AsyncIOMotorDatabase, code: str) -> tuple[Optional[dict], dict]:
    license = await find_by_code(db, code)
    if license is None:
        return None, {"valid": False, "reason": "License key not found"}
    return license, check_redeemable(license)


async def redeem(db: AsyncIOMotorDatabase, code: str, user_id) -> dict:
    """Mark a code used by ``user_id``. A second call for the same code fails."""
    license = await find_by_code(db, code)
    if license is None:
        raise NotFoundError("License key not found")
    check = check_redeemable(license)
    if not check["valid"]:
        raise ValidationError(check["reason"])

    updated = await db[LICENSES].find_one_and_update(
        {"_id": license["_id"], "isUsed": False},
        {"$set": {"isUsed": True, "usedBy": to_object_id(user_id), "usedAt": utcnow()}},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        raise ValidationError(ALREADY_USED)
    return updated


async def list_licenses(db: AsyncIOMotorDatabase, used: Optional[bool] = None, product: Optional[str] = None):
    query = {}
    if used is not None:
        query["isUsed"] = used
    if product:
        query["product"] = product

    licenses = await db[LICENSES].find(query).sort("createdAt", -1).to_list(length=None)

    user_ids = {lic.get("usedBy") for lic in licenses} | {lic.get("createdBy") for lic in licenses}
    user_ids.discard(None)
    users = {}
    if user_ids:
        async for u in db[USERS].find({"_id": {"$in": list(user_ids)}}, {"name": 1, "email": 1}):
            users[u["_id"]] = u

    out = []
    for lic in licenses:
        item = serialize_doc(lic)
        used_by = users.get(lic.get("usedBy"))
        created_by = users.get(lic.get("createdBy"))
        item["usedBy"] = serialize_doc(used_by) if used_by else item["usedBy"]
        item["createdBy"] = (
            {"_id": str(created_by["_id"]), "name": created_by.get("name")} if created_by else item["createdBy"]
        )
        out.append(item)

    stats = {
        "total": await db[LICENSES].count_documents({}),
        "used": await db[LICENSES].count_documents({"isUsed": True}),
        "available": await db[LICENSES].count_documents({"isUsed": False}),
    }
    return out, stats


async def delete(db: AsyncIOMotorDatabase, license_id: str):
    oid = to_object_id(license_id)
    license = await db[LICENSES].find_one({"_id": oid}) if oid else None
    if not license:
        raise NotFoundError("License key not found")
    if license.get("isUsed"):
        raise ValidationError("Cannot delete a used license key")
    await db[LICENSES].delete_one({"_id": oid, "isUsed": False})
