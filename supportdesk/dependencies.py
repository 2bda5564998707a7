# supportdesk/dependencies.py
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from pydantic import BaseModel, ValidationError as PydanticValidationError
from starlette.datastructures import UploadFile

from supportdesk.auth import decode_access_token
from supportdesk.db import db
from supportdesk.errors import AuthenticationError, AuthorizationError, ValidationError, first_validation_message
from supportdesk.realtime import channels
from supportdesk.services import accounts
from supportdesk.services.email import EmailService
from supportdesk.services.notifications import Notifier

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)

mailer = EmailService()


async def get_db():
    return db


async def get_notifier(database=Depends(get_db)) -> Notifier:
    return Notifier(database, channels, mailer)


async def get_current_user(token: Optional[str] = Depends(oauth2_scheme), database=Depends(get_db)):
    if not token:
        raise AuthenticationError("Not authorized, no token")
    user_id = decode_access_token(token)
    user = await accounts.get_user(database, user_id)
    if user is None:
        raise AuthenticationError("User not found")
    return user


def require_roles(*roles: str):
    async def checker(current_user: dict = Depends(get_current_user)):
        if current_user.get("role") not in roles:
            raise AuthorizationError(f"User role {current_user.get('role')} is not authorized to access this route")
        return current_user

    return checker


async def read_payload(request: Request) -> tuple[dict, dict]:
    """
    Accept JSON or form bodies. Returns (fields, files); empty form values are
    dropped so optional fields fall back to their defaults.
    """
    content_type = request.headers.get("content-type", "")
    if content_type.startswith(("multipart/form-data", "application/x-www-form-urlencoded")):
        form = await request.form()
        fields, files = {}, {}
        for key, value in form.multi_items():
            if isinstance(value, UploadFile):
                files[key] = value
            elif value != "":
                fields[key] = value
        return fields, files
    try:
        body = await request.json()
    except ValueError:
        raise ValidationError("Invalid JSON body")
    if not isinstance(body, dict):
        raise ValidationError("Invalid JSON body")
    return {k: v for k, v in body.items() if v is not None and v != ""}, {}


def parse_model(model: type[BaseModel], data: dict):
    try:
        return model(**data)
    except PydanticValidationError as exc:
        raise ValidationError(first_validation_message(exc.errors()))


async def get_optional_user(token: Optional[str] = Depends(oauth2_scheme), database=Depends(get_db)):
    if not token:
        return None
    return await get_current_user(token, database)
