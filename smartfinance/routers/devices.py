"""
FastAPI router for device session management.

Lets a signed-in user see where their account is signed in, sign out other
devices, and review a security analysis of their sessions.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends

from common.utils import NotFoundException, success_response
from smartfinance.dependencies import get_session_manager, require_auth
from smartfinance.middleware.auth import AuthContext
from smartfinance.schemas.devices import DeviceSessionSchema
from smartfinance.services.auth.security_analyzer import (
    analyze_session_security,
    get_security_recommendations,
)
from smartfinance.services.auth.session_manager import SessionManager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/devices", tags=["devices"])


def _serialize(session: dict, current_device_id: str) -> dict:
    return DeviceSessionSchema(
        **session,
        isCurrent=session.get("deviceId") == current_device_id,
    ).model_dump(mode="json")


@router.get("")
async def list_devices(
    auth: Annotated[AuthContext, Depends(require_auth)],
    session_manager: Annotated[SessionManager, Depends(get_session_manager)],
):
    """
    List the user's device sessions, most recently active first.
    """
    sessions = await session_manager.list_sessions(auth.user_id)

    return success_response({
        "sessions": [_serialize(s, auth.device_id) for s in sessions],
        "currentDeviceId": auth.device_id,
    })


# Declared before /{device_id} so "others" is not captured as a device ID
@router.delete("/others")
async def remove_other_devices(
    auth: Annotated[AuthContext, Depends(require_auth)],
    session_manager: Annotated[SessionManager, Depends(get_session_manager)],
):
    """
    Sign out every device except the current one.
    """
    if not await session_manager.remove_others(auth.user_id, auth.device_id):
        raise NotFoundException(message="User not found", code="USER_NOT_FOUND")

    return success_response(message="All other devices have been logged out")


@router.delete("/{device_id}")
async def remove_device(
    device_id: str,
    auth: Annotated[AuthContext, Depends(require_auth)],
    session_manager: Annotated[SessionManager, Depends(get_session_manager)],
):
    """
    Sign out one device.

    Succeeds even if the device had no session, as long as the user exists.
    """
    if not await session_manager.remove(auth.user_id, device_id):
        raise NotFoundException(message="User not found", code="USER_NOT_FOUND")

    return success_response(message="Device removed successfully")


@router.put("/activity")
async def update_activity(
    auth: Annotated[AuthContext, Depends(require_auth)],
    session_manager: Annotated[SessionManager, Depends(get_session_manager)],
):
    """
    Explicitly refresh the current device's lastActive.
    """
    await session_manager.touch(auth.user_id, auth.device_id)
    return success_response(message="Activity updated")


@router.get("/security")
async def get_security_analysis(
    auth: Annotated[AuthContext, Depends(require_auth)],
    session_manager: Annotated[SessionManager, Depends(get_session_manager)],
):
    """
    Risk analysis of the user's sessions plus recommendations.
    """
    sessions = await session_manager.list_sessions(auth.user_id)
    analysis = analyze_session_security(sessions)

    return success_response({
        "analysis": analysis,
        "recommendations": get_security_recommendations(analysis),
    })
