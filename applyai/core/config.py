import os

# ✅ Database
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./applyai.db")
RUN_MIGRATIONS = os.getenv("RUN_MIGRATIONS", "0") == "1"

# ✅ Security
SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-change-me")
ALGORITHM = os.getenv("ALGORITHM", "HS256")

# ✅ OpenAI
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
MAX_TOKENS_PER_REQUEST = int(os.getenv("MAX_TOKENS_PER_REQUEST", "2000"))

# ✅ Generation limits
GENERATION_TIMEOUT_SECONDS = float(os.getenv("GENERATION_TIMEOUT_SECONDS", "8"))
GENERATION_MAX_WORKERS = int(os.getenv("GENERATION_MAX_WORKERS", "4"))

# ✅ Usage metering (free plan defaults)
MAX_DAILY_API_CALLS = int(os.getenv("MAX_DAILY_API_CALLS", "50"))
FREE_DAILY_CREDITS = int(os.getenv("FREE_DAILY_CREDITS", "3"))

# ✅ Application preparation
PREPARATION_STALE_SECONDS = int(os.getenv("PREPARATION_STALE_SECONDS", "300"))

# ✅ Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# ✅ CORS
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",")
    if origin.strip()
]
