"""
Login lockout endpoints.
"""

from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from consultlog.api.dependencies import get_lockout
from consultlog.safety.lockout import LoginLockout, normalize_email

router = APIRouter(prefix="/auth", tags=["auth"])


class EmailRequest(BaseModel):
    email: str = ""


def _require_email(body: EmailRequest) -> str:
    email = normalize_email(body.email)
    if not email:
        raise HTTPException(status_code=400, detail="이메일이 필요합니다.")
    return email


@router.post("/check-lock")
async def check_lock(body: EmailRequest, lockout: LoginLockout = Depends(get_lockout)):
    return asdict(lockout.check(_require_email(body)))


@router.post("/record-failure")
async def record_failure(body: EmailRequest, lockout: LoginLockout = Depends(get_lockout)):
    return asdict(lockout.record_failure(_require_email(body)))


@router.post("/login-attempt")
async def login_attempt(body: EmailRequest, lockout: LoginLockout = Depends(get_lockout)):
    """Gate a password login; a locked account answers 423."""
    email = _require_email(body)
    lockout.ensure_unlocked(email)
    return asdict(lockout.check(email))


@router.post("/record-success")
async def record_success(body: EmailRequest, lockout: LoginLockout = Depends(get_lockout)):
    """Clear the failure counter after a successful login."""
    email = _require_email(body)
    lockout.reset(email)
    return asdict(lockout.check(email))
