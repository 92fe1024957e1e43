import hashlib
import hmac
from dataclasses import dataclass
from uuid import NAMESPACE_DNS, UUID, uuid5

from fastapi import Depends, HTTPException, Request, status

from api.config.logging import get_logger
from api.config.settings import AuthMode, Settings, get_settings
from api.v1.core.exceptions import ForbiddenError, UnauthorizedError

logger = get_logger(__name__)

WEBHOOK_SIGNATURE_HEADER = "X-Provider-Signature"
GATEWAY_SECRET_HEADER = "X-Gateway-Secret"


def string_to_uuid(text: str) -> UUID:
    """Convert a string to a deterministic UUID using namespace DNS."""
    return uuid5(NAMESPACE_DNS, text)


@dataclass
class Principal:
    """Represents the current authenticated user/context."""

    user_id: str
    org_id: str
    roles: list[str]
    email: str | None = None

    @property
    def user_uuid(self) -> UUID:
        """Get the user ID as a UUID for database operations."""
        return string_to_uuid(self.user_id)


async def get_principal(
    request: Request, app_settings: Settings = Depends(get_settings)
) -> Principal:
    """
    Dependency injection function to get the current principal.

    End-user authentication lives outside this service. Behavior by AUTH_MODE:
    - none: Returns dev defaults with admin role
    - dev: Extract identity from headers
    - gateway: Trust identity headers from the auth gateway, which proves
      itself with the shared X-Gateway-Secret
    """
    user_id = request.headers.get("x-user-id")
    org_id = request.headers.get("x-org-id")

    if app_settings.auth_mode == AuthMode.NONE:
        return Principal(
            user_id=app_settings.dev_user_id,
            org_id=app_settings.dev_org_id,
            roles=["admin"],
        )
    elif app_settings.auth_mode == AuthMode.DEV:
        if not user_id or not org_id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="X-User-ID and X-Org-ID headers are required in dev auth mode",
            )

        return Principal(user_id=user_id, org_id=org_id, roles=["user"])
    elif app_settings.auth_mode == AuthMode.GATEWAY:
        presented = request.headers.get(GATEWAY_SECRET_HEADER, "")
        if not presented or not hmac.compare_digest(
            presented.encode(), app_settings.gateway_secret.encode()
        ):
            logger.warning("Request rejected: invalid gateway credentials")
            raise UnauthorizedError("Invalid gateway credentials")
        if not user_id or not org_id:
            raise UnauthorizedError("Missing identity headers")

        email = request.headers.get("x-user-email")
        return Principal(user_id=user_id, org_id=org_id, roles=["user"], email=email)
    else:
        raise ValueError(f"Unknown auth mode: {app_settings.auth_mode}")


def _extract_cron_secret(request: Request) -> str | None:
    header_secret = request.headers.get("x-cron-secret") or request.headers.get(
        "x-cron-key"
    )
    if header_secret:
        return header_secret

    auth_header = request.headers.get("authorization", "")
    if auth_header.lower().startswith("bearer "):
        return auth_header[7:].strip() or None

    return None


async def require_cron_caller(
    request: Request, app_settings: Settings = Depends(get_settings)
) -> str:
    """
    Authenticate the schedule trigger.

    Accepts either the configured shared secret (X-Cron-Secret or bearer token)
    or the trusted cron platform header. Returns how the caller authenticated.
    """
    platform_header = app_settings.cron_platform_header
    if platform_header and request.headers.get(platform_header):
        return "platform"

    if not app_settings.cron_secret:
        logger.warning("Schedule trigger rejected: no cron secret configured")
        raise ForbiddenError("Cron secret is not configured")

    presented = _extract_cron_secret(request)
    if presented is None:
        raise UnauthorizedError("Missing cron credentials")

    if not hmac.compare_digest(presented.encode(), app_settings.cron_secret.encode()):
        logger.warning("Schedule trigger rejected: invalid cron secret")
        raise ForbiddenError("Invalid cron secret")

    return "secret"


def compute_webhook_signature(secret: str, body: bytes) -> str:
    """HMAC-SHA256 hex digest the provider sends alongside webhook bodies."""
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


async def verify_webhook_signature(
    request: Request, app_settings: Settings = Depends(get_settings)
) -> None:
    """Reject webhook calls whose signature does not match the raw body.

    Verification is skipped when no webhook secret is configured.
    """
    secret = app_settings.render_webhook_secret
    if not secret:
        return

    signature = request.headers.get(WEBHOOK_SIGNATURE_HEADER, "")
    expected = compute_webhook_signature(secret, await request.body())
    if not signature or not hmac.compare_digest(signature, expected):
        raise UnauthorizedError("Invalid webhook signature")


# Convenience type aliases for dependency injection
PrincipalDep = Depends(get_principal)
CronCallerDep = Depends(require_cron_caller)
WebhookSignatureDep = Depends(verify_webhook_signature)
