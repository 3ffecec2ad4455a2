import os
from dataclasses import dataclass

def _bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}

def _project_dir(name: str) -> str:
    # bookswap/ -> proyecto/
    project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
    path = os.path.join(project_root, name)
    os.makedirs(path, exist_ok=True)
    return path

def _default_sqlite_uri() -> str:
    db_path = os.path.join(_project_dir("instance"), "bookswap.db")
    return "sqlite:///" + db_path

@dataclass(frozen=True)
class BaseConfig:
    SECRET_KEY: str = os.getenv("SECRET_KEY", "dev-change-me")
    SQLALCHEMY_DATABASE_URI: str = os.getenv("DATABASE_URL", _default_sqlite_uri())
    SQLALCHEMY_TRACK_MODIFICATIONS: bool = False

    SESSION_COOKIE_HTTPONLY: bool = True
    SESSION_COOKIE_SAMESITE: str = "Lax"
    SESSION_COOKIE_SECURE: bool = _bool(os.getenv("SESSION_COOKIE_SECURE"), default=False)

    # sign-up
    OTP_TTL_MINUTES: int = int(os.getenv("OTP_TTL_MINUTES", "10"))

    # uploads
    UPLOAD_FOLDER: str = os.getenv("UPLOAD_FOLDER") or _project_dir("uploads")
    MAX_CONTENT_LENGTH: int = 5 * 1024 * 1024

    # mail
    MAIL_SERVER: str = os.getenv("MAIL_SERVER", "smtp.gmail.com")
    MAIL_PORT: int = int(os.getenv("MAIL_PORT", "587"))
    MAIL_USE_TLS: bool = _bool(os.getenv("MAIL_USE_TLS"), default=True)
    MAIL_USERNAME: str | None = os.getenv("MAIL_USERNAME")
    MAIL_PASSWORD: str | None = os.getenv("MAIL_PASSWORD")
    MAIL_DEFAULT_SENDER: str = os.getenv("MAIL_DEFAULT_SENDER", "BookSwap Marketplace <no-reply@bookswap.local>")
    MAIL_TIMEOUT: float = float(os.getenv("MAIL_TIMEOUT", "10"))
    MAIL_MAX_WORKERS: int = int(os.getenv("MAIL_MAX_WORKERS", "2"))
    MAIL_SUPPRESS_SEND: bool = _bool(os.getenv("MAIL_SUPPRESS_SEND"), default=False)

class DevelopmentConfig(BaseConfig):
    DEBUG: bool = True

class ProductionConfig(BaseConfig):
    DEBUG: bool = False

def get_config():
    env = os.getenv("FLASK_ENV", "development").lower()
    if env == "production":
        return ProductionConfig
    return DevelopmentConfig
