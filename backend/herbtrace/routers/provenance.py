"""Public provenance lookup (no authentication).

Endpoints:
    GET  /api/provenance/{token}   Lot story by lookup code, batch code or lot id
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from herbtrace.database import get_db
from herbtrace.schemas.provenance import ProvenanceOut
from herbtrace.services.provenance import compose_provenance

router = APIRouter()


@router.get("/{token}", response_model=ProvenanceOut)
async def get_provenance(token: str, db: AsyncSession = Depends(get_db)):
    return await compose_provenance(db, token)
