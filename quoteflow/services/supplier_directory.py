"""Supplier directory lookups used when rendering reports."""

from typing import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from quoteflow.models.supplier import Supplier
from quoteflow.services.common import parse_uuid

logger = structlog.get_logger()

UNKNOWN_SUPPLIER = "Unknown"


async def get_supplier(session: AsyncSession, supplier_id):
    result = await session.execute(
        select(Supplier).where(Supplier.id == parse_uuid(supplier_id, "Supplier"))
    )
    return result.scalar_one_or_none()


async def resolve_supplier_names(
    session: AsyncSession, supplier_ids: Iterable
) -> dict[str, str]:
    """Map supplier id → display name. Unresolvable ids are simply absent."""
    ids = {parse_uuid(sid, "Supplier") for sid in supplier_ids}
    if not ids:
        return {}
    result = await session.execute(
        select(Supplier.id, Supplier.name).where(Supplier.id.in_(ids))
    )
    names = {str(row.id): row.name for row in result.all() if row.name}
    missing = len(ids) - len(names)
    if missing:
        logger.warning("supplier_names_unresolved", count=missing)
    return names


def display_name(names: dict[str, str], supplier_id) -> str:
    return names.get(str(supplier_id)) or UNKNOWN_SUPPLIER
