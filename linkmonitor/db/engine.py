import os
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy import text

from linkmonitor.db.repo import init_schema


def _default_database_url() -> str:
    path = os.environ.get("DATABASE_FILE", os.path.join("data", "linkmonitor.db"))
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    return f"sqlite+aiosqlite:///{path}"


def get_database_url(url: Optional[str] = None) -> str:
    url = url or os.environ.get("DATABASE_URL")
    if url:
        return url
    return _default_database_url()


async def create_engine_and_init(url: Optional[str] = None) -> AsyncEngine:
    url = get_database_url(url)
    engine: AsyncEngine = create_async_engine(url, echo=False, pool_pre_ping=True)
    async with engine.begin() as conn:
        # SQLite tuning: WAL mode and reasonable sync settings
        if url.startswith("sqlite+"):
            await conn.execute(text("PRAGMA journal_mode=WAL"))
            await conn.execute(text("PRAGMA synchronous=NORMAL"))
            await conn.execute(text("PRAGMA temp_store=MEMORY"))
    await init_schema(engine)
    return engine


async def ensure_engine(runtime: Dict[str, Any], url: Optional[str] = None) -> AsyncEngine:
    """Return the process engine, connecting on first use."""
    engine = runtime.get("db_engine")
    if engine is None:
        engine = await create_engine_and_init(url)
        runtime["db_engine"] = engine
    return engine


async def dispose_engine(runtime: Dict[str, Any]) -> None:
    engine = runtime.pop("db_engine", None)
    if engine is not None:
        await engine.dispose()
