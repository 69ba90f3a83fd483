"""
Async SQLAlchemy repository for stored workout plans.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from functools import wraps
from importlib import resources
from pathlib import Path
from typing import Any, TypeVar

from sqlalchemy import delete, select
from sqlalchemy.engine import make_url
from sqlalchemy.exc import DBAPIError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import selectinload
from sqlalchemy.pool import StaticPool

from ..config import SETTINGS
from ..planner import PlannedDay
from ..preferences import PlanPreferences
from ..schemas import PlanOut, PlanSummary
from .models import Base, Plan, PlanDay, PlanExercise

logger = logging.getLogger(__name__)

_engine: AsyncEngine | None = None
_session: async_sessionmaker[AsyncSession] | None = None

F = TypeVar("F", bound=Callable[..., Any])


class PersistenceError(Exception):
    """Storing a plan failed; nothing was written."""


def retry_on_connection_error(max_retries: int = 3, delay: float = 0.1):
    """
    Decorator to retry read operations on dropped or invalidated connections.
    """

    def decorator(func: F) -> F:
        @wraps(func)
        async def wrapper(*args, **kwargs):
            for attempt in range(max_retries):
                try:
                    return await func(*args, **kwargs)
                except DBAPIError as e:
                    transient = isinstance(e, OperationalError) or e.connection_invalidated
                    if not transient or attempt >= max_retries - 1:
                        raise
                    wait_time = delay * (2**attempt)
                    logger.warning(
                        "Database connection error on attempt %d/%d, retrying in %.2fs: %s",
                        attempt + 1,
                        max_retries,
                        wait_time,
                        e,
                    )
                    await asyncio.sleep(wait_time)
            raise RuntimeError("Retry mechanism failed unexpectedly")

        return wrapper  # type: ignore

    return decorator


def _prepare_url(url: str) -> tuple[str, dict]:
    """Return sanitized DB URL and connect args.

    SSL query parameters are moved into ``connect_args`` for asyncpg, which
    does not understand libpq's ``sslmode``. ``ssl=false`` becomes ``disable``.
    """

    url_obj = make_url(url)
    query = dict(url_obj.query)
    connect_args: dict[str, object] = {}
    driver = url_obj.drivername or ""

    if driver.startswith("postgresql+asyncpg"):
        sslmode = query.pop("sslmode", None)
        ssl_val = query.pop("ssl", None)
        if ssl_val is not None:
            sslmode = (
                "disable" if str(ssl_val).lower() in {"0", "false", "off", "no"} else "require"
            )
        if sslmode:
            connect_args["ssl"] = sslmode
        # PgBouncer in transaction mode cannot hold prepared statements
        connect_args.setdefault("statement_cache_size", 0)

    url_obj = url_obj.set(query=query)
    return url_obj.render_as_string(hide_password=False), connect_args


def _migration_paths() -> list[Any]:
    """Bundled ``.sql`` files, falling back to the source tree."""
    paths: list[Any] = []
    try:
        pkg_migrations = resources.files("fitplan").joinpath("migrations")
        if pkg_migrations.is_dir():
            paths.extend(p for p in pkg_migrations.iterdir() if p.name.endswith(".sql"))
    except ModuleNotFoundError:
        pass

    if not paths:
        fs_dir = Path(__file__).resolve().parents[1] / "migrations"
        if fs_dir.is_dir():
            paths = [p for p in fs_dir.iterdir() if p.suffix == ".sql"]
    return sorted(paths, key=lambda p: p.name)


async def _run_migrations(conn: Any) -> None:
    """Execute .sql migration files sequentially."""
    for path in _migration_paths():
        sql = path.read_text(encoding="utf-8")
        for stmt in sql.split(";"):
            stmt = stmt.strip()
            if stmt:
                await conn.exec_driver_sql(stmt)
        logger.info("Applied migration %s", path.name)


async def init_db(url: str | None = None) -> None:
    """
    Initialize the async database engine and sessionmaker, and create tables if needed.

    SQLite gets its schema from the ORM metadata; other backends run the
    bundled migrations.
    """
    global _engine, _session
    if _engine:
        return
    url = url or SETTINGS.DATABASE_URL
    if not url:
        logger.error("DATABASE_URL is required for DB initialization.")
        raise RuntimeError("DATABASE_URL is required")
    db_url, connect_args = _prepare_url(url)
    url_obj = make_url(db_url)
    is_sqlite = url_obj.drivername.startswith("sqlite")

    engine_kwargs: dict[str, Any] = {"echo": False, "connect_args": connect_args}
    if is_sqlite:
        if url_obj.database in {":memory:", "", None}:
            # one shared connection, otherwise every checkout sees an empty db
            engine_kwargs["poolclass"] = StaticPool
    else:
        engine_kwargs.update(
            pool_pre_ping=True,
            pool_recycle=3600,  # Recycle connections every hour
            pool_timeout=30,
            max_overflow=10,
            pool_size=20,
        )

    _engine = create_async_engine(db_url, **engine_kwargs)
    _session = async_sessionmaker(_engine, expire_on_commit=False)
    async with _engine.begin() as conn:
        if is_sqlite:
            await conn.run_sync(Base.metadata.create_all)
        else:
            await _run_migrations(conn)
    logger.info("Database initialized (%s)", url_obj.drivername)


def get_session() -> async_sessionmaker[AsyncSession]:
    """
    Get the async sessionmaker. Raises if DB is not initialized.
    """
    if not _session:
        raise RuntimeError("DB not initialized; call init_db() first")
    return _session


async def close_db() -> None:
    """Dispose of the database engine and reset session state."""

    global _engine, _session
    if _engine:
        await _engine.dispose()
    _engine = None
    _session = None


def _plan_query():
    return select(Plan).options(selectinload(Plan.days).selectinload(PlanDay.exercises))


async def persist_plan(
    owner_id: str, title: str, prefs: PlanPreferences, days: Sequence[PlannedDay]
) -> PlanOut:
    """
    Store a plan with its days and exercises in a single transaction.

    Raises:
        PersistenceError: when any insert fails. The whole plan is rolled back.
    """
    sessmaker = get_session()
    try:
        async with sessmaker() as s, s.begin():
            plan = Plan(
                owner_id=owner_id,
                title=title,
                goal=prefs.goal,
                days_per_week=prefs.days_per_week,
                minutes_per_session=prefs.minutes_per_session,
                equipment=prefs.equipment,
                level=prefs.level,
                add_cardio=prefs.add_cardio,
                add_core=prefs.add_core,
                add_mobility=prefs.add_mobility,
            )
            s.add(plan)
            await s.flush()
            for day in days:
                row = PlanDay(
                    plan_id=plan.id,
                    day_order=day.day_order,
                    focus=day.focus,
                    warmup=day.warmup,
                    cooldown=day.cooldown,
                )
                s.add(row)
                await s.flush()
                for ex in sorted(day.exercises, key=lambda e: e.seq):
                    s.add(
                        PlanExercise(
                            day_id=row.id,
                            seq=ex.seq,
                            name=ex.name,
                            sets=ex.sets,
                            reps_or_time=ex.reps_or_time,
                            rest_sec=ex.rest_sec,
                            notes=ex.notes,
                        )
                    )
                await s.flush()
            plan_id, created_at = plan.id, plan.created_at
    except SQLAlchemyError as e:
        logger.error("Failed to persist plan for owner %s: %s", owner_id, e)
        raise PersistenceError(f"failed to store plan: {e}") from e

    logger.info("Persisted plan %d (%d days) for owner %s", plan_id, len(days), owner_id)
    return PlanOut.model_validate(
        {
            "id": plan_id,
            "title": title,
            "goal": prefs.goal,
            "days_per_week": prefs.days_per_week,
            "minutes_per_session": prefs.minutes_per_session,
            "equipment": prefs.equipment,
            "level": prefs.level,
            "add_cardio": prefs.add_cardio,
            "add_core": prefs.add_core,
            "add_mobility": prefs.add_mobility,
            "created_at": created_at,
            "days": [
                {
                    "day_order": d.day_order,
                    "focus": d.focus,
                    "warmup": d.warmup,
                    "cooldown": d.cooldown,
                    "exercises": [
                        {
                            "seq": e.seq,
                            "name": e.name,
                            "sets": e.sets,
                            "reps_or_time": e.reps_or_time,
                            "rest_sec": e.rest_sec,
                            "notes": e.notes,
                        }
                        for e in sorted(d.exercises, key=lambda e: e.seq)
                    ],
                }
                for d in days
            ],
        }
    )


@retry_on_connection_error(max_retries=3, delay=0.1)
async def fetch_plan(plan_id: int, owner_id: str) -> PlanOut | None:
    """Return one of the owner's plans, days by order and exercises by seq."""
    sessmaker = get_session()
    async with sessmaker() as s:
        res = await s.execute(_plan_query().where(Plan.id == plan_id, Plan.owner_id == owner_id))
        plan = res.scalar_one_or_none()
        return PlanOut.model_validate(plan) if plan else None


@retry_on_connection_error(max_retries=3, delay=0.1)
async def latest_plan(owner_id: str) -> PlanOut | None:
    """Return the owner's newest plan, if any."""
    sessmaker = get_session()
    async with sessmaker() as s:
        res = await s.execute(
            _plan_query()
            .where(Plan.owner_id == owner_id)
            .order_by(Plan.created_at.desc(), Plan.id.desc())
            .limit(1)
        )
        plan = res.scalar_one_or_none()
        return PlanOut.model_validate(plan) if plan else None


@retry_on_connection_error(max_retries=3, delay=0.1)
async def list_plans(owner_id: str, limit: int = 50) -> list[PlanSummary]:
    """Plan summaries for an owner, newest first."""
    sessmaker = get_session()
    async with sessmaker() as s:
        res = await s.execute(
            select(Plan)
            .where(Plan.owner_id == owner_id)
            .order_by(Plan.created_at.desc(), Plan.id.desc())
            .limit(limit)
        )
        return [PlanSummary.model_validate(p) for p in res.scalars().all()]


async def delete_plan(plan_id: int, owner_id: str) -> bool:
    """Delete an owned plan with its days and exercises. False when not found."""
    sessmaker = get_session()
    async with sessmaker() as s, s.begin():
        res = await s.execute(
            select(Plan.id).where(Plan.id == plan_id, Plan.owner_id == owner_id)
        )
        if res.scalar_one_or_none() is None:
            return False
        day_ids = select(PlanDay.id).where(PlanDay.plan_id == plan_id)
        await s.execute(delete(PlanExercise).where(PlanExercise.day_id.in_(day_ids)))
        await s.execute(delete(PlanDay).where(PlanDay.plan_id == plan_id))
        await s.execute(delete(Plan).where(Plan.id == plan_id))
    logger.info("Deleted plan %d for owner %s", plan_id, owner_id)
    return True
