from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from fastapi import Request

from iot_platform.core.settings import settings
from iot_platform.db.base import Base

"""
DB Session.

Rôle (fonctionnel) :
- Initialise l’engine SQLAlchemy en mode async (runtime FastAPI + polling des devices).
- Fournit une factory de sessions AsyncSession (AsyncSessionLocal).
- Expose `get_db()` comme dépendance FastAPI : la factory est lue sur app.state
  (injectable par create_app, notamment pour les tests).
- `init_models()` crée le schéma sans Alembic (DB_AUTO_CREATE, dev / tests).

Notes :
- expire_on_commit=False : permet de réutiliser les objets après commit sans rechargement automatique.
- SQLite (aiosqlite) : une seule connexion partagée (StaticPool) pour que la base mémoire
  soit visible de toutes les sessions.
"""


def _enable_sqlite_transactions(engine: AsyncEngine) -> None:
    """
    SQLite : clés étrangères actives + BEGIN explicite.

    Le driver sqlite3 gère lui-même ses transactions (BEGIN implicite avant un DML seulement),
    ce qui casse les SAVEPOINT. On reprend la main côté SQLAlchemy.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


def build_engine(url: str) -> AsyncEngine:
    """Crée l’engine async adapté au driver (Postgres en prod, SQLite en dev / tests)."""
    if url.startswith("sqlite"):
        sqlite_engine = create_async_engine(
            url,
            echo=False,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
        _enable_sqlite_transactions(sqlite_engine)
        return sqlite_engine
    return create_async_engine(url, echo=False, pool_pre_ping=True)


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=bind, class_=AsyncSession, expire_on_commit=False)


# Engine async par défaut (settings.DATABASE_URL)
engine = build_engine(settings.DATABASE_URL)

# Factory de sessions async par défaut
AsyncSessionLocal = build_session_factory(engine)


async def init_models(bind: AsyncEngine) -> None:
    """Crée toutes les tables déclarées sur Base (idempotent)."""
    import iot_platform.models  # noqa: F401  (enregistre les modèles dans la metadata)

    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_db(request: Request):
    """Dépendance FastAPI : yield une session DB et garantit sa fermeture."""
    factory = getattr(request.app.state, "session_factory", None) or AsyncSessionLocal
    async with factory() as session:
        yield session
