"""Vector index naming and per-requester index discovery."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.config.logger import app_logger
from app.config.settings import settings
from app.models.index_registration import IndexKind, IndexRegistration
from app.services.rag_errors import IndexOwnershipError

INDEX_PREFIX = "rag_docs"
ARTICLE_MARKER = "article_"

SCOPE_OWNER = "owner"
SCOPE_SHARED = "shared"


def generate_index_name(name: str) -> str:
    """Deterministic backend index name for a document group."""
    return f"{INDEX_PREFIX}:{name}:idx"


def article_index_name(author_id: int, external_id: int) -> str:
    return generate_index_name(f"{ARTICLE_MARKER}{author_id}_{external_id}")


def upload_index_name(filename: str) -> str:
    return generate_index_name(Path(filename).name)


def is_article_index(index_name: str) -> bool:
    return f"{INDEX_PREFIX}:{ARTICLE_MARKER}" in index_name


async def _get_registration(session: AsyncSession, index_name: str) -> Optional[IndexRegistration]:
    result = await session.execute(
        select(IndexRegistration).where(IndexRegistration.index_name == index_name)
    )
    return result.scalars().first()


async def index_owner(session: AsyncSession, index_name: str) -> Optional[str]:
    """Owner ``index_name`` is registered to, or None if it is unregistered."""
    registration = await _get_registration(session, index_name)
    return registration.owner if registration else None


async def register_index(
    session: AsyncSession,
    owner: str,
    index_name: str,
    kind: str,
    source: str = "",
) -> IndexRegistration:
    """Record that ``owner`` may query ``index_name``. The caller commits.

    Raises IndexOwnershipError if the name is registered to someone else.
    """
    registration = await _get_registration(session, index_name)
    now = datetime.now(timezone.utc)

    if registration is not None and registration.owner != owner:
        raise IndexOwnershipError(
            f"vector index {index_name} is already registered to another owner"
        )

    if registration is None:
        registration = IndexRegistration(
            owner=owner,
            index_name=index_name,
            kind=kind,
            source=source,
            created_at=now,
            updated_at=now,
        )
    else:
        registration.kind = kind
        registration.source = source
        registration.updated_at = now

    session.add(registration)
    return registration


async def unregister_index(session: AsyncSession, index_name: str) -> bool:
    """Drop the registration for ``index_name``. The caller commits."""
    registration = await _get_registration(session, index_name)
    if registration is None:
        return False
    await session.delete(registration)
    return True


async def list_owned_indexes(
    session: AsyncSession,
    owner: str,
    kind: Optional[str] = None,
) -> List[str]:
    """Index names registered to ``owner``, oldest first."""
    statement = select(IndexRegistration).where(IndexRegistration.owner == owner)
    if kind:
        statement = statement.where(IndexRegistration.kind == kind)
    statement = statement.order_by(IndexRegistration.created_at, IndexRegistration.id)
    result = await session.execute(statement)
    return [registration.index_name for registration in result.scalars().all()]


def scan_article_indexes(store) -> List[str]:
    """List every article index in the backend (linear scan, filtered by name)."""
    return sorted(name for name in store.list_namespaces() if is_article_index(name))


def _dedupe_preserve(names: List[str]) -> List[str]:
    seen = set()
    ordered: List[str] = []
    for name in names:
        if name and name not in seen:
            seen.add(name)
            ordered.append(name)
    return ordered


async def discover_index_names(
    session: AsyncSession,
    store,
    username: str,
    author_id: Optional[int] = None,
    scope: Optional[str] = None,
) -> List[str]:
    """Return the index names ``username`` may query, uploads first.

    In ``owner`` scope, article indexes are limited to those registered to
    ``author_id``. In ``shared`` scope every article index in the backend is
    included as well. An empty list means the requester has no knowledge base.
    """
    scope = scope or settings.RAG_ARTICLE_INDEX_SCOPE

    names = await list_owned_indexes(session, username, kind=IndexKind.UPLOAD)

    if author_id is not None:
        names += await list_owned_indexes(session, str(author_id), kind=IndexKind.ARTICLE)

    if scope == SCOPE_SHARED:
        try:
            names += await asyncio.to_thread(scan_article_indexes, store)
        except Exception as exc:
            app_logger.warning(f"Article index scan failed for {username}: {exc}")
    elif scope != SCOPE_OWNER:
        app_logger.warning(f"Unknown article index scope '{scope}', using '{SCOPE_OWNER}'")

    return _dedupe_preserve(names)
