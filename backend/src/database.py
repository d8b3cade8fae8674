import logging
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker
# Importer SQLModel pour utiliser ses métadonnées
from sqlmodel import SQLModel

# Importer settings depuis config
from src.config import settings

logger = logging.getLogger(__name__)

DATABASE_URL = settings.database_url

# SQLite (tests) ne supporte pas les options de pool
engine_options = {} if DATABASE_URL.startswith("sqlite") else {
    "pool_size": settings.DB_POOL_SIZE,
    "max_overflow": settings.DB_MAX_OVERFLOW,
}

try:
    # Créer le moteur de base de données asynchrone
    engine = create_async_engine(
        DATABASE_URL,
        echo=settings.DB_ECHO_LOG, # Utiliser la variable de config pour echo
        **engine_options,
    )

    # Créer une classe de session asynchrone
    AsyncSessionLocal = sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False # Empêche les objets d'expirer après commit
    )

    logger.info("Moteur et Session Factory SQLAlchemy Async configurés.")

except Exception as e:
    logger.critical(f"Erreur lors de la configuration de SQLAlchemy Async: {e}", exc_info=True)
    engine = None
    AsyncSessionLocal = None

# Fonction dépendance pour obtenir une session de base de données asynchrone
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency that provides an async database session."""
    if AsyncSessionLocal is None:
        logger.error("La factory de session SQLAlchemy n'est pas initialisée.")
        raise RuntimeError("Database session factory is not initialized.")

    async with AsyncSessionLocal() as session:
        try:
            yield session
            # Les commits sont gérés par les services applicatifs
        except Exception as e:
            logger.error(f"Erreur durant la session DB, rollback: {e}", exc_info=True)
            await session.rollback()
            # Propager l'exception pour que FastAPI la gère (ex: retourne 500)
            raise
        finally:
            # Fermer la session à la fin de la requête.
            await session.close()
            logger.debug("Session DB fermée.")

async def create_tables():
    """Crée toutes les tables définies sur SQLModel.metadata."""
    # Les modèles doivent être importés pour être enregistrés dans les métadonnées
    import src.models  # noqa: F401
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
