"""
Example protected endpoint.
"""

from typing import Annotated

from fastapi import APIRouter, Depends

from common.utils import success_response
from smartfinance.dependencies import require_auth
from smartfinance.middleware.auth import AuthContext

router = APIRouter(tags=["protected"])


@router.get("/protected")
async def protected_route(auth: Annotated[AuthContext, Depends(require_auth)]):
    """Only reachable with a valid token from a device that still has a session."""
    return success_response({"userId": auth.user_id, "deviceId": auth.device_id})
