"""
Django settings for the stackqa project.

Values come from the environment (or a `.env` file next to manage.py) through
a pydantic-settings model, so every knob is typed and validated at import
time. Unknown variables are ignored.
"""
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parent.parent


class AppSettings(BaseSettings):
    """Environment-driven configuration for the Q&A backend."""

    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    SECRET_KEY: str = Field("django-insecure-dev-only-change-me", description="Django signing key.")
    DEBUG: bool = Field(False, description="Django debug mode.")
    ALLOWED_HOSTS: str = Field("localhost,127.0.0.1,testserver", description="Comma separated host names.")

    DB_ENGINE: str = Field("sqlite", description="`sqlite` or `postgresql`.")
    DB_NAME: str = Field("db.sqlite3", description="Database name (file name for SQLite).")
    DB_USER: str = Field("", description="Database user.")
    DB_PASSWORD: str = Field("", description="Database password.")
    DB_HOST: str = Field("localhost", description="Database host.")
    DB_PORT: int = Field(5432, description="Database port.")
    DB_CONN_MAX_AGE: int = Field(60, description="Seconds a per-request connection may be reused.")
    DB_POOL: bool = Field(False, description="Use psycopg's connection pool (PostgreSQL only).")

    SESSION_EXP_MINUTES: int = Field(60 * 24, description="Lifetime of issued auth tokens.")
    AUTH_COOKIE_NAME: str = Field("stackqa_token", description="Cookie carrying the auth token.")
    AUTH_COOKIE_SECURE: bool = Field(False, description="Send the auth cookie over HTTPS only.")

    CORS_ALLOWED_ORIGINS: str = Field("http://localhost:5173,http://localhost:3000",
                                      description="Comma separated origins of the web client.")
    LOG_LEVEL: str = Field("INFO", description="Level for the application loggers.")


def _split(value: str):
    return [item.strip() for item in value.split(",") if item.strip()]


env = AppSettings()

SECRET_KEY = env.SECRET_KEY
DEBUG = env.DEBUG
ALLOWED_HOSTS = _split(env.ALLOWED_HOSTS)

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "corsheaders",
    "rest_framework",
    "qa",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "corsheaders.middleware.CorsMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "stackqa.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

WSGI_APPLICATION = "stackqa.wsgi.application"

if env.DB_ENGINE == "postgresql":
    _db = {
        "ENGINE": "django.db.backends.postgresql",
        "NAME": env.DB_NAME,
        "USER": env.DB_USER,
        "PASSWORD": env.DB_PASSWORD,
        "HOST": env.DB_HOST,
        "PORT": env.DB_PORT,
        "CONN_MAX_AGE": env.DB_CONN_MAX_AGE,
        "CONN_HEALTH_CHECKS": True,
    }
    if env.DB_POOL:
        # Pooled connections must not also be persisted by Django.
        _db["OPTIONS"] = {"pool": True}
        _db["CONN_MAX_AGE"] = 0
    DATABASES = {"default": _db}
elif env.DB_ENGINE == "sqlite":
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": BASE_DIR / env.DB_NAME,
        }
    }
else:
    raise ValueError(f"Unsupported DB_ENGINE {env.DB_ENGINE!r}; expected 'sqlite' or 'postgresql'")

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

AUTH_USER_MODEL = "qa.User"

PASSWORD_HASHERS = [
    "django.contrib.auth.hashers.PBKDF2PasswordHasher",
    "django.contrib.auth.hashers.BCryptSHA256PasswordHasher",
    # Seed data ships raw bcrypt hashes, stored with the `bcrypt$` prefix.
    "django.contrib.auth.hashers.BCryptPasswordHasher",
]

AUTH_PASSWORD_VALIDATORS = [
    {"NAME": "django.contrib.auth.password_validation.UserAttributeSimilarityValidator"},
    {"NAME": "django.contrib.auth.password_validation.MinimumLengthValidator"},
    {"NAME": "django.contrib.auth.password_validation.CommonPasswordValidator"},
    {"NAME": "django.contrib.auth.password_validation.NumericPasswordValidator"},
]

SESSION_EXP_MINUTES = env.SESSION_EXP_MINUTES
AUTH_COOKIE_NAME = env.AUTH_COOKIE_NAME
AUTH_COOKIE_SECURE = env.AUTH_COOKIE_SECURE

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": [
        "qa.authentication.BearerSessionAuthentication",
    ],
    "DEFAULT_PERMISSION_CLASSES": [
        "rest_framework.permissions.IsAuthenticatedOrReadOnly",
    ],
    "DEFAULT_RENDERER_CLASSES": [
        "rest_framework.renderers.JSONRenderer",
    ],
    "DEFAULT_PARSER_CLASSES": [
        "rest_framework.parsers.JSONParser",
    ],
    "EXCEPTION_HANDLER": "qa.exceptions.api_exception_handler",
    "TEST_REQUEST_DEFAULT_FORMAT": "json",
}

CORS_ALLOWED_ORIGINS = _split(env.CORS_ALLOWED_ORIGINS)
CORS_ALLOW_CREDENTIALS = True
CSRF_TRUSTED_ORIGINS = CORS_ALLOWED_ORIGINS

LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

STATIC_URL = "static/"
STATIC_ROOT = BASE_DIR / "staticfiles"

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "standard": {
            "format": "%(asctime)s %(levelname)s [%(name)s] %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "standard",
        },
    },
    "root": {
        "handlers": ["console"],
        "level": "WARNING",
    },
    "loggers": {
        "django": {"handlers": ["console"], "level": "INFO", "propagate": False},
        "qa": {"handlers": ["console"], "level": env.LOG_LEVEL.upper(), "propagate": False},
    },
}
