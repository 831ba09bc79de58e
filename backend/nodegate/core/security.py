import hmac

from fastapi import Header, HTTPException, Request, status

from nodegate.core.config import Settings


async def require_admin_api_key(
    request: Request, x_api_key: str | None = Header(default=None, alias="X-API-Key")
) -> None:
    settings: Settings = request.app.state.settings
    expected = settings.admin_api_key.encode("utf-8")
    if not x_api_key or not hmac.compare_digest(x_api_key.encode("utf-8"), expected):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing admin API key",
        )
