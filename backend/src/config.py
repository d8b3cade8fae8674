import logging
from decimal import Decimal
from typing import List, Optional

from dotenv import load_dotenv
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

# Charger les variables d'environnement AVANT de définir la classe Settings
load_dotenv()

# Classe de configuration utilisant Pydantic BaseSettings
class Settings(BaseSettings):
    # --- SMTP ---
    SENDER_EMAIL: str = "facturation@monstudio.ca"
    SENDER_PASSWORD: Optional[str] = None
    SMTP_HOST: str = "smtp.monstudio.ca"
    SMTP_PORT: int = 587
    SMTP_USE_TLS: bool = True

    # --- Base de Données ---
    # DATABASE_URL prend le dessus sur les composants POSTGRES_* s'il est défini
    DATABASE_URL: Optional[str] = None
    POSTGRES_DB: str = "studio"
    POSTGRES_USER: str = "studio"
    POSTGRES_PASSWORD: Optional[str] = None
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: str = "5432"
    DB_ECHO_LOG: bool = False
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10
    # Création des tables au démarrage (développement uniquement)
    DB_CREATE_TABLES_ON_STARTUP: bool = False

    # --- Studio (en-têtes PDF et emails) ---
    STUDIO_NAME: str = "Mon Studio"
    STUDIO_ADDRESS: str = ""
    STUDIO_EMAIL: str = "contact@example.com"
    STUDIO_PHONE: Optional[str] = None
    TPS_NUMBER: Optional[str] = None
    TVQ_NUMBER: Optional[str] = None

    # --- Facturation ---
    DEFAULT_TPS_RATE: Decimal = Decimal("0.05")
    DEFAULT_TVQ_RATE: Decimal = Decimal("0.09975")
    DEFAULT_DEPOSIT_PERCENT: Decimal = Decimal("50")
    QUOTE_VALIDITY_DAYS: int = 30
    INVOICE_PAYMENT_TERMS_DAYS: int = 30

    # --- Application URLs ---
    PUBLIC_APP_URL: str = "http://localhost:3000"
    API_V1_PREFIX: str = "/api/v1"
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:5173"]

    # --- Logging ---
    LOG_LEVEL: str = "INFO"

    class Config:
        # Charger depuis les variables d'environnement (respecte load_dotenv)
        env_file = ".env"
        env_file_encoding = 'utf-8'
        extra = 'ignore' # Ignorer les variables d'env non définies dans le modèle

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@"
            f"{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

# Instancier la classe de configuration
settings = Settings()

if not settings.DATABASE_URL and settings.POSTGRES_PASSWORD is None:
    logger.critical("Ni DATABASE_URL ni POSTGRES_PASSWORD ne sont définis!")

if settings.SENDER_PASSWORD is None:
    logger.warning("SENDER_PASSWORD n'est pas défini: l'envoi d'emails sera indisponible.")

logger.info(f"Configuration chargée: DB={settings.POSTGRES_DB}@{settings.POSTGRES_HOST}, Sender={settings.SENDER_EMAIL}, Studio={settings.STUDIO_NAME}")
