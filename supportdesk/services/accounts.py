import logging
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from supportdesk.auth import create_access_token, get_password_hash, verify_password
from supportdesk.db import to_object_id, utcnow
from supportdesk.errors import AuthenticationError, ConflictError, NotFoundError, ValidationError
from supportdesk.models import DEVELOPER, USER, USERS
from supportdesk.services import licenses

logger = logging.getLogger(__name__)

USER_EXISTS = "User already exists with this email"


def public_user(user: dict, *extra: str) -> dict:
    out = {
        "id": str(user["_id"]),
        "name": user.get("name"),
        "email": user.get("email"),
        "role": user.get("role"),
    }
    for key in extra:
        out[key] = user.get(key)
    return out


async def find_by_email(db: AsyncIOMotorDatabase, email: str) -> Optional[dict]:
    if not email:
        return None
    return await db[USERS].find_one({"email": email.strip().lower()})


async def get_user(db: AsyncIOMotorDatabase, user_id) -> Optional[dict]:
    oid = to_object_id(user_id)
    if oid is None:
        return None
    return await db[USERS].find_one({"_id": oid})


async def create_user(db: AsyncIOMotorDatabase, name: str, email: str, password: str, role: str, **fields) -> dict:
    email = email.strip().lower()
    if await find_by_email(db, email):
        raise ConflictError(USER_EXISTS)
    doc = {
        "name": name.strip(),
        "email": email,
        "password": get_password_hash(password),
        "role": role,
        "profilePicture": None,
        "createdAt": utcnow(),
        **fields,
    }
    try:
        result = await db[USERS].insert_one(doc)
    except DuplicateKeyError:
        raise ConflictError(USER_EXISTS)
    doc["_id"] = result.inserted_id
    return doc


async def register(db: AsyncIOMotorDatabase, name: str, email: str, password: str, license_key: Optional[str]):
    """
    Self-registration for end users. Requires a redeemable license key.

    The account is written before the key is redeemed. If redemption fails the
    account stays and the key stays unused; this is logged, not compensated.
    """
    if not license_key:
        raise ValidationError("License key is required for registration")

    license = await licenses.find_by_code(db, license_key)
    if license is None:
        raise ValidationError("Invalid license key. Please check your key and try again.")
    check = licenses.check_redeemable(license)
    if not check["valid"]:
        raise ValidationError(check["reason"])

    user = await create_user(
        db,
        name,
        email,
        password,
        USER,
        licenseKey=license["code"],
        registeredProduct=license["product"],
    )

    try:
        await licenses.redeem(db, license["code"], user["_id"])
    except Exception:
        logger.exception("License %s not redeemed for new user %s", license["code"], user["email"])
        raise

    logger.info("Registered %s with license %s", user["email"], license["code"])
    return user, license, create_access_token(user["_id"])


async def login(db: AsyncIOMotorDatabase, email: str, password: str):
    if not email or not password:
        raise ValidationError("Please provide email and password")
    user = await find_by_email(db, email)
    if not user or not verify_password(password, user.get("password")):
        raise AuthenticationError("Invalid credentials")
    return user, create_access_token(user["_id"])


async def create_developer(db: AsyncIOMotorDatabase, name: str, email: str, password: str) -> dict:
    developer = await create_user(db, name, email, password, DEVELOPER)
    logger.info("Developer %s created", developer["email"])
    return developer


async def delete_developer(db: AsyncIOMotorDatabase, user_id: str):
    developer = await get_user(db, user_id)
    if not developer:
        raise NotFoundError("Developer not found")
    if developer.get("role") != DEVELOPER:
        raise ValidationError("Can only delete developer accounts")
    await db[USERS].delete_one({"_id": developer["_id"]})
    logger.info("Developer %s deleted", developer["email"])


async def update_profile(
    db: AsyncIOMotorDatabase,
    user: dict,
    name: Optional[str] = None,
    profile_picture: Optional[str] = None,
    password: Optional[str] = None,
    current_password: Optional[str] = None,
) -> dict:
    updates = {}
    if name:
        updates["name"] = name.strip()
    if profile_picture:
        updates["profilePicture"] = profile_picture

    if password:
        if not current_password or not verify_password(current_password, user.get("password")):
            raise AuthenticationError("Invalid current password")
        updates["password"] = get_password_hash(password)

    if updates:
        await db[USERS].update_one({"_id": user["_id"]}, {"$set": updates})
    return await get_user(db, user["_id"])
