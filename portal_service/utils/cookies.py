"""
Session and OAuth flow cookies
"""

from typing import Optional
from fastapi import Response

from portal_service.config import settings

SECONDS_PER_DAY = 24 * 60 * 60


def set_session_cookie(response: Response, session_token: str, remember_me: bool = False) -> None:
    days = settings.remember_me_ttl_days if remember_me else settings.session_ttl_days
    response.set_cookie(
        settings.session_cookie_name,
        session_token,
        max_age=days * SECONDS_PER_DAY,
        httponly=True,
        secure=settings.secure_cookies,
        samesite="lax"
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(settings.session_cookie_name)


def set_flow_cookie(response: Response, flow_id: Optional[str]) -> None:
    """Remember which OAuth flow this browser started, for the callback"""
    if not flow_id:
        return
    response.set_cookie(
        settings.oauth_flow_cookie_name,
        flow_id,
        max_age=settings.oauth_flow_ttl_seconds,
        httponly=True,
        secure=settings.secure_cookies,
        samesite="lax"
    )


def clear_flow_cookie(response: Response) -> None:
    response.delete_cookie(settings.oauth_flow_cookie_name)
