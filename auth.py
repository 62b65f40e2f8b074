"""Table role checks.

The host decides who is the DM; the engine only sees the result as a
request header. ``X-Table-Role: dm`` marks a DM request, anything else
(or no header) is a player.
"""

from fastapi import HTTPException, Request

from config import DM_ROLE

ROLE_HEADER = "X-Table-Role"


def is_dm(request: Request) -> bool:
    """Check if a request was made with the DM role."""
    role = request.headers.get(ROLE_HEADER, "")
    return role.strip().lower() == DM_ROLE


def require_dm(request: Request) -> None:
    """FastAPI dependency: only the DM may call the endpoint.

    Usage:
        @router.post("/endpoint", dependencies=[Depends(require_dm)])
        def endpoint(...):
            ...

    Raises:
        HTTPException 403: If the request does not carry the DM role.
    """
    if not is_dm(request):
        raise HTTPException(status_code=403, detail="Only the DM can do that")
