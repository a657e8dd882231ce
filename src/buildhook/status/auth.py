import hmac

from fastapi import Header, HTTPException, Request


async def require_operator(
    request: Request,
    authorization: str | None = Header(None),
) -> str:
    """Bearer-token check for operator-only routes."""
    token = request.app.state.settings.api_token
    if not token:
        raise HTTPException(status_code=403, detail="Operator access is not configured")

    scheme, _, supplied = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not hmac.compare_digest(supplied, token):
        raise HTTPException(status_code=401, detail="Invalid operator token")
    return "operator"
