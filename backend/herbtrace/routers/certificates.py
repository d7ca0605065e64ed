"""Certificate router.

Endpoints:
    POST  /api/certificates/                           Issue a certificate from a test result
    GET   /api/certificates/                           List certificates (?lot_id=)
    POST  /api/certificates/{certificate_id}/revoke    Revoke a certificate
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from herbtrace.auth.deps import Actor, Role, get_current_actor, require_role
from herbtrace.database import get_db
from herbtrace.schemas.certificate import CertificateCreate, CertificateOut
from herbtrace.services.certificates import (
    issue_certificate,
    list_certificates,
    revoke_certificate,
)
from herbtrace.services.notifications import Notifier, get_session_notifier

router = APIRouter()

_issuers = require_role(Role.LAB_TECHNICIAN, Role.SUPPLY_MANAGER)


@router.post("/", response_model=CertificateOut, status_code=status.HTTP_201_CREATED)
async def create_certificate(
    body: CertificateCreate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(_issuers),
    notifier: Notifier = Depends(get_session_notifier),
):
    return await issue_certificate(db, actor, body, notifier)


@router.get("/", response_model=list[CertificateOut])
async def get_certificates(
    lot_id: str | None = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    _actor: Actor = Depends(get_current_actor),
):
    return await list_certificates(db, lot_id, limit, offset)


@router.post("/{certificate_id}/revoke", response_model=CertificateOut)
async def revoke(
    certificate_id: str,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(_issuers),
    notifier: Notifier = Depends(get_session_notifier),
):
    return await revoke_certificate(db, actor, certificate_id, notifier)
