"""
Django settings:pacesync_api project.
"""

from pathlib import Path
import os
import environ
import logging

# ---------------------------------------
# Paths
# ---------------------------------------
BASE_DIR = Path(__file__).resolve().parent.parent

# ---------------------------------------
# Env
# ---------------------------------------
env = environ.Env()
environ.Env.read_env(os.path.join(BASE_DIR, ".env"))  # Explicit path to .env file

# --- Spotify (token exchange + proxy) ---
SPOTIFY_CLIENT_ID     = env("SPOTIFY_CLIENT_ID", default="")
SPOTIFY_CLIENT_SECRET = env("SPOTIFY_CLIENT_SECRET", default="")
SPOTIFY_REDIRECT_URI  = env("SPOTIFY_REDIRECT_URI", default="")
SPOTIFY_TIMEOUT       = env.int("SPOTIFY_TIMEOUT", default=15)

# --- Matcher / session knobs (all optional) ---
SEARCH_LIMIT          = env.int("SEARCH_LIMIT", default=50)
TEMPO_LOOKUP_WORKERS  = env.int("TEMPO_LOOKUP_WORKERS", default=8)
SESSION_TICK_SECONDS  = env.float("SESSION_TICK_SECONDS", default=1.0)
PLAYLIST_SIZE         = env.int("PLAYLIST_SIZE", default=20)
SIMULATE_MAX_TICKS    = env.int("SIMULATE_MAX_TICKS", default=6 * 60 * 60)

# ---------------------------------------
# Core
# ---------------------------------------
SECRET_KEY = env("DJANGO_SECRET_KEY", default="dev-insecure-secret")
DEBUG = env.bool("DEBUG", default=True)

ALLOWED_HOSTS = env.list("ALLOWED_HOSTS", default=["*"])

# If deploy behind a domain, set this (esp. if DEBUG=False)
CSRF_TRUSTED_ORIGINS = env.list(
    "CSRF_TRUSTED_ORIGINS",
    default=[
        "http://localhost:8000",
        "http://127.0.0.1:8000",
    ],
)

# ---------------------------------------
# Apps
# ---------------------------------------
INSTALLED_APPS = [
    # Django
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.staticfiles",

    # Third-party
    "rest_framework",

    # Local app
    "cadence",
]

# ---------------------------------------
# Middleware
# ---------------------------------------
MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

# ---------------------------------------
# URLs / WSGI
# ---------------------------------------
ROOT_URLCONF = "pacesync_api.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
            ],
        },
    },
]

WSGI_APPLICATION = "pacesync_api.wsgi.application"

# ---------------------------------------
# Database (SQLite for dev; nothing of ours is persisted)
# ---------------------------------------
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": str(BASE_DIR / "db.sqlite3"),
    }
}

# ---------------------------------------
# I18N
# ---------------------------------------
LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

# ---------------------------------------
# Static
# ---------------------------------------
STATIC_URL = "/static/"

# Where manage.py collectstatic will put files (for prod)
STATIC_ROOT = BASE_DIR / "staticfiles"

# ---------------------------------------
# DRF (kept minimal)
# ---------------------------------------
REST_FRAMEWORK = {
    "DEFAULT_RENDERER_CLASSES": [
        "rest_framework.renderers.JSONRenderer",
        "rest_framework.renderers.BrowsableAPIRenderer" if DEBUG else "rest_framework.renderers.JSONRenderer",
    ],
}
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"
# ---------------------------------------
# Logging (dev-friendly)
# ---------------------------------------
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "plain": {"format": "%(levelname)s %(name)s - %(message)s"},
    },
    "handlers": {"console": {"class": "logging.StreamHandler", "formatter": "plain"}},
    "root": {"handlers": ["console"], "level": "INFO"},
    "loggers": {
        "cadence": {"level": env("CADENCE_LOG_LEVEL", default="INFO")},
    },
}
logging.getLogger("urllib3").setLevel(logging.ERROR)
logging.getLogger("urllib3.connectionpool").setLevel(logging.ERROR)
