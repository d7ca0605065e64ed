"""Certificate issuance and revocation.

A certificate is backed by one TestResult; its lot and harvest links are
copied from that result.  Issuing a certificate does not touch the
workflow flags, it only moves the lot's supply-chain classification to
"completed".
"""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from herbtrace.auth.deps import Actor
from herbtrace.middleware.exceptions import (
    ResourceNotFoundError,
    ValidationFailureError,
)
from herbtrace.models.certificate import Certificate
from herbtrace.models.test_result import TestResult
from herbtrace.schemas.certificate import CertificateCreate
from herbtrace.services.notifications import Notifier
from herbtrace.utils.numbering import generate_code

logger = logging.getLogger(__name__)


async def issue_certificate(
    db: AsyncSession,
    actor: Actor,
    body: CertificateCreate,
    notifier: Notifier,
) -> Certificate:
    test_result = await db.get(TestResult, body.test_result_id)
    if test_result is None:
        raise ResourceNotFoundError("TestResult", body.test_result_id)
    if test_result.status != "completed":
        raise ValidationFailureError(
            f"Test result is {test_result.status}; only completed tests can be certified",
            field="test_result_id",
        )

    certificate = Certificate(
        certificate_number=await generate_code(db, "certificate"),
        lot_id=test_result.lot_id,
        harvest_id=test_result.harvest_id,
        test_result_id=test_result.id,
        certificate_type=body.certificate_type,
        issued_by=actor.user_id,
        issuer_name=actor.name,
        expiry_date=body.expiry_date,
        status="active",
        digital_signature=(
            body.digital_signature.model_dump() if body.digital_signature else None
        ),
        content=body.content,
    )
    db.add(certificate)
    await db.flush()
    logger.info(
        "Issued %s certificate %s for lot %s",
        certificate.certificate_type, certificate.certificate_number, certificate.lot_id,
    )

    await notifier.publish(
        "certificate.issued",
        {
            "certificate_id": certificate.id,
            "certificate_number": certificate.certificate_number,
            "lot_id": certificate.lot_id,
            "certificate_type": certificate.certificate_type,
            "message": f"Certificate {certificate.certificate_number} issued",
        },
    )
    return certificate


async def revoke_certificate(
    db: AsyncSession,
    actor: Actor,
    certificate_id: str,
    notifier: Notifier,
) -> Certificate:
    certificate = await db.get(Certificate, certificate_id)
    if certificate is None:
        raise ResourceNotFoundError("Certificate", certificate_id)
    if certificate.status == "revoked":
        raise ValidationFailureError("Certificate is already revoked", field="status")

    certificate.status = "revoked"
    await db.flush()
    logger.info("Certificate %s revoked by %s", certificate.certificate_number, actor.user_id)

    await notifier.publish(
        "certificate.revoked",
        {
            "certificate_id": certificate.id,
            "certificate_number": certificate.certificate_number,
            "lot_id": certificate.lot_id,
            "message": f"Certificate {certificate.certificate_number} revoked",
        },
    )
    return certificate


async def list_certificates(
    db: AsyncSession, lot_id: str | None = None, limit: int = 50, offset: int = 0
) -> list[Certificate]:
    stmt = select(Certificate)
    if lot_id:
        stmt = stmt.where(Certificate.lot_id == lot_id)
    stmt = stmt.order_by(Certificate.created_at.desc()).limit(limit).offset(offset)
    result = await db.execute(stmt)
    return list(result.scalars().all())
