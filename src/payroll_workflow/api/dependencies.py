"""FastAPI dependencies for dependency injection."""

from collections.abc import AsyncGenerator
from typing import Annotated
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_workflow.database import init_db


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency; commits when the request succeeds."""
    _, factory = init_db()
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_actor_role(
    x_actor_role: Annotated[str | None, Header()] = None
) -> str:
    """Extract the acting role from header."""
    if not x_actor_role:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-Actor-Role header is required",
        )
    return x_actor_role.strip()


async def get_actor_id(
    x_actor_id: Annotated[str | None, Header()] = None
) -> str | None:
    return x_actor_id


async def get_employee_actor(
    x_actor_id: Annotated[str | None, Header()] = None
) -> UUID:
    """Extract the requesting employee's ID from header."""
    if not x_actor_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-Actor-ID header is required",
        )
    try:
        return UUID(x_actor_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid X-Actor-ID format",
        )


async def get_optional_actor_role(
    x_actor_role: Annotated[str | None, Header()] = None
) -> str | None:
    return x_actor_role.strip() if x_actor_role else None


# Type aliases for cleaner dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db_session)]
ActorRole = Annotated[str, Depends(get_actor_role)]
ActorId = Annotated[str | None, Depends(get_actor_id)]
EmployeeActor = Annotated[UUID, Depends(get_employee_actor)]
OptionalActorRole = Annotated[str | None, Depends(get_optional_actor_role)]
