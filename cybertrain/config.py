from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from dotenv import load_dotenv
import logging

load_dotenv()

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    DATABASE_URL: str = "sqlite:///./cybertrain.db"
    SECRET_KEY: str = "change-me-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30
    COOKIE_SECURE: bool = False

    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"
    LOG_FILE: str = "backend.log"

    # Used by scripts/seed_database.py
    ADMIN_EMAIL: str = "admin@cybertrain.local"
    ADMIN_PASSWORD: str = "Admin123"

    CERTIFICATE_PROGRAM_NAME: str = "Cybersecurity Training"


settings = Settings()


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {}


engine = create_engine(settings.DATABASE_URL, **_engine_kwargs(settings.DATABASE_URL))
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def reset_db():
    Base.metadata.drop_all(bind=engine)
    logger.info("Database dropped")
    create_db()


def create_db():
    # Models must be imported so their tables are registered on Base.metadata.
    import cybertrain.models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    logger.info("Database created")


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
