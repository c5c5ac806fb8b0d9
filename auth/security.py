from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from fastapi import Depends, HTTPException, status
from config import config
import logging

logger = logging.getLogger(__name__)

# Tokens come from VALID_TOKENS (comma separated), see config.py
bearer_scheme = HTTPBearer()


def get_current_client(credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme)) -> str:
    """Validates the Bearer token for every secured endpoint."""
    if credentials.scheme.lower() != "bearer" or credentials.credentials not in config.valid_tokens:
        logger.info("rejected request with invalid client token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing Bearer token.",
            headers={"WWW-Authenticate": "Bearer"},
        )
    # The token doubles as the client identity
    return credentials.credentials
