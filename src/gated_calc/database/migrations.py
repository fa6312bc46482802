"""Schema creation and seed data."""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from ..models.base import Base
from ..models.role import Permission, Role, RolePermission
from ..security.permissions import (
    ROLE_DAILY_LIMITS,
    ROLE_DESCRIPTIONS,
    ROLE_PERMISSIONS,
    Capability,
)
from .connection import db_manager

logger = logging.getLogger(__name__)


def _resolve_engine(engine: Optional[AsyncEngine]) -> AsyncEngine:
    if engine is None:
        if not db_manager.engine:
            db_manager.initialize()
        engine = db_manager.engine
    return engine


async def create_tables(engine: AsyncEngine = None):
    """Create all database tables."""
    engine = _resolve_engine(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def seed_roles(
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
) -> int:
    """Insert the default permissions, roles and grants.

    Idempotent: existing rows are left untouched, including a role's daily
    limit if an administrator has changed it. Returns the number of rows added.
    """
    if session_factory is None:
        if not db_manager.session_factory:
            db_manager.initialize()
        session_factory = db_manager.session_factory

    added = 0
    async with session_factory() as session:
        permissions = {
            p.name: p for p in (await session.execute(select(Permission))).scalars().all()
        }
        for capability in Capability:
            if capability.value not in permissions:
                permission = Permission(name=capability.value)
                session.add(permission)
                permissions[capability.value] = permission
                added += 1

        roles = {r.name: r for r in (await session.execute(select(Role))).scalars().all()}
        for role_name, limit in ROLE_DAILY_LIMITS.items():
            if role_name.value not in roles:
                role = Role(
                    name=role_name.value,
                    description=ROLE_DESCRIPTIONS[role_name],
                    daily_limit=limit,
                )
                session.add(role)
                roles[role_name.value] = role
                added += 1

        # Assign primary keys before building grants
        await session.flush()

        existing = {
            (row.role_id, row.permission_id)
            for row in (
                await session.execute(
                    select(RolePermission.role_id, RolePermission.permission_id)
                )
            ).all()
        }
        for role_name, capabilities in ROLE_PERMISSIONS.items():
            role = roles[role_name.value]
            for capability in capabilities:
                permission = permissions[capability.value]
                if (role.id, permission.id) not in existing:
                    session.add(RolePermission(role_id=role.id, permission_id=permission.id))
                    added += 1

        await session.commit()

    if added:
        logger.info("Seeded %d role/permission rows", added)
    return added


async def init_database(engine: AsyncEngine = None) -> int:
    """Create tables and seed roles. Returns the number of seed rows added."""
    await create_tables(engine)
    if engine is None:
        return await seed_roles()
    return await seed_roles(
        async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    )
