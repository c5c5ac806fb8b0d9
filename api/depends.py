from fastapi import Depends, Request, Response
from auth.security import get_current_client
from config import config, CookieConfig
from data.storage import StorageAdapter
from data.memory import MemoryStorage
from services.cache import CachedStorage, get_cache_client
import logging
import uuid

logger = logging.getLogger(__name__)

_DEFAULT_STORAGE: StorageAdapter | None = None


def build_storage() -> StorageAdapter:
    """Storage selected by STORAGE_BACKEND, behind the cache when VALKEY_HOST is set."""
    if config.storage_backend == "memory":
        logger.warning("Using in-memory storage; data is lost on restart.")
        storage: StorageAdapter = MemoryStorage()
    else:
        from data.database import SqlStorage
        storage = SqlStorage()

    if config.valkey_host:
        storage = CachedStorage(storage, get_cache_client())
    return storage


def get_storage() -> StorageAdapter:
    global _DEFAULT_STORAGE
    if _DEFAULT_STORAGE is None:
        _DEFAULT_STORAGE = build_storage()
    return _DEFAULT_STORAGE


def get_cookie_config() -> CookieConfig:
    return config.cookie


def resolve_user_id(request: Request, response: Response, cookie: CookieConfig, user_id: str | None = None) -> str:
    """
    Explicit user id first, then the identity cookie. An anonymous caller
    gets a fresh id which is set as the cookie on the response.
    """
    if user_id:
        return user_id

    cookie_user_id = request.cookies.get(cookie.name)
    if cookie_user_id:
        return cookie_user_id

    new_user_id = uuid.uuid4().hex
    response.set_cookie(
        key=cookie.name,
        value=new_user_id,
        max_age=cookie.max_age,
        path=cookie.path,
        domain=cookie.domain,
        secure=cookie.secure,
        samesite=cookie.samesite,
    )
    logger.debug("issued new user id cookie %s", cookie.name)
    return new_user_id


def get_user_id(
    request: Request,
    response: Response,
    user_id: str | None = None,
    cookie: CookieConfig = Depends(get_cookie_config),
) -> str:
    return resolve_user_id(request, response, cookie, user_id)


# --- DEPENDENCY INJECTION SETUP ---
CLIENT_AUTH = Depends(get_current_client)
STORAGE_DEPENDENCY = Depends(get_storage)
USER_ID = Depends(get_user_id)
