import hmac
import secrets
from typing import Optional

from fastapi import HTTPException, Request, status

from ..config import get_settings

WEBHOOK_TOKEN_BYTES = 24


def generate_webhook_token() -> str:
    """Opaque URL-safe secret identifying a webhook."""
    return secrets.token_urlsafe(WEBHOOK_TOKEN_BYTES)


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    if authorization and authorization.startswith("Bearer "):
        return authorization[len("Bearer "):]
    return None


def secrets_match(provided: Optional[str], expected: str) -> bool:
    if provided is None:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


async def require_worker_secret(request: Request) -> None:
    """
    Guard for routes called by the edge worker or its cron trigger.

    The secret comes from ``Authorization: Bearer <secret>`` or, failing
    that, the ``secret`` query parameter.

    Raises:
        HTTPException: 500 if WORKER_SECRET is not set, 401 on mismatch
    """
    worker_secret = get_settings().WORKER_SECRET
    if not worker_secret:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="WORKER_SECRET not configured",
        )

    provided = extract_bearer_token(request.headers.get("authorization"))
    if provided is None:
        provided = request.query_params.get("secret")

    if not secrets_match(provided, worker_secret):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )


async def verify_click_caller(request: Request) -> None:
    """Click reports need the worker secret only when one is configured."""
    worker_secret = get_settings().WORKER_SECRET
    if not worker_secret:
        return

    provided = extract_bearer_token(request.headers.get("authorization"))
    if not secrets_match(provided, worker_secret):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
