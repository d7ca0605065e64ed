"""Shared code generation utility.

Reads format templates from settings (falling back to DEFAULT_FORMATS) and
renders codes for lots and certificates.

Format tokens:
  {date}       → YYYYMMDD
  {seq:N}      → zero-padded sequence number, N digits, resets daily per prefix
  {stamp}      → milliseconds since the epoch
  {rand:N}     → N uppercase hex characters

Default formats:
  lot_batch:     BATCH-{date}-{seq:4}
  lookup:        QR-{stamp}-{rand:6}
  final_lookup:  FINAL-QR-{stamp}-{rand:6}
  certificate:   CERT-{date}-{seq:4}

Lookup codes are opaque to the rest of the system: only equality
comparison is ever applied to them.
"""

import re
import secrets
import time
from datetime import date

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from herbtrace.config import settings
from herbtrace.models.certificate import Certificate
from herbtrace.models.lot import Lot

DEFAULT_FORMATS = {
    "lot_batch": "BATCH-{date}-{seq:4}",
    "lookup": "QR-{stamp}-{rand:6}",
    "final_lookup": "FINAL-QR-{stamp}-{rand:6}",
    "certificate": "CERT-{date}-{seq:4}",
}

# Map entity types to the column holding their codes, for sequence counting
ENTITY_COLUMN_MAP = {
    "lot_batch": Lot.batch_code,
    "lookup": Lot.lookup_code,
    "final_lookup": Lot.lookup_code,
    "certificate": Certificate.certificate_number,
}

_SEQ_RE = re.compile(r"\{seq:(\d+)\}")
_RAND_RE = re.compile(r"\{rand:(\d+)\}")


def _get_format(entity: str) -> str:
    return settings.number_formats.get(entity) or DEFAULT_FORMATS[entity]


def _render_static(fmt: str, today_str: str, stamp: int) -> str:
    code = fmt.replace("{date}", today_str).replace("{stamp}", str(stamp))
    return _RAND_RE.sub(lambda m: secrets.token_hex(int(m.group(1))).upper()[: int(m.group(1))], code)


async def _count_existing(db: AsyncSession, entity: str, prefix: str) -> int:
    """Count existing codes with the given prefix."""
    column = ENTITY_COLUMN_MAP[entity]
    result = await db.execute(
        select(func.count()).where(column.like(f"{prefix}%"))
    )
    return result.scalar() or 0


async def generate_code(db: AsyncSession, entity: str) -> str:
    """Generate a code for `entity` from its configured template.

    Args:
        db: Database session
        entity: One of "lot_batch", "lookup", "final_lookup", "certificate"

    Returns:
        Generated code string, e.g. "BATCH-20261019-0001"
    """
    fmt = _get_format(entity)
    today_str = date.today().strftime("%Y%m%d")
    stamp = int(time.time() * 1000)

    code = _render_static(fmt, today_str, stamp)

    seq_match = _SEQ_RE.search(code)
    if not seq_match:
        return code

    # Prefix is everything before {seq:N}
    prefix = code[: seq_match.start()]
    count = await _count_existing(db, entity, prefix)
    seq_width = int(seq_match.group(1))
    return _SEQ_RE.sub(f"{count + 1:0{seq_width}d}", code, count=1)
