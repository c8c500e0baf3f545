import os

# ✅ Database
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./finance.db")
RUN_MIGRATIONS = os.getenv("RUN_MIGRATIONS", "0") == "1"

# ✅ Security
SECRET_KEY = os.getenv("SECRET_KEY", "change-me-in-production")
ALGORITHM = os.getenv("ALGORITHM", "HS256")
SESSION_TTL_HOURS = int(os.getenv("SESSION_TTL_HOURS", "168"))

# ✅ Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# ✅ Gemini
GEMINI_API_KEY = os.getenv("GEMINI_API_KEY") or os.getenv("EXPO_PUBLIC_GEMINI_API_KEY")
GEMINI_MODEL = (
    os.getenv("GEMINI_MODEL")
    or os.getenv("EXPO_PUBLIC_GEMINI_MODEL")
    or "gemini-2.5-flash-preview-05-20"
)
GEMINI_BASE_URL = os.getenv(
    "GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta"
)
GEMINI_MAX_RETRIES = int(os.getenv("GEMINI_MAX_RETRIES", "3"))
GEMINI_BACKOFF_SECONDS = float(os.getenv("GEMINI_BACKOFF_SECONDS", "1.0"))
GEMINI_TIMEOUT_SECONDS = float(os.getenv("GEMINI_TIMEOUT_SECONDS", "30"))

# Per-feature deadlines for a whole AI call, retries included
RECEIPT_TIMEOUT_SECONDS = 45.0
TIPS_TIMEOUT_SECONDS = 40.0
MEAL_PLAN_TIMEOUT_SECONDS = 45.0

# Token pricing env keys (decimal cents per 1000 tokens)
PROMPT_COST_ENV = "GEMINI_PROMPT_COST_PER_1K_CENTS"
RESPONSE_COST_ENV = "GEMINI_RESPONSE_COST_PER_1K_CENTS"

# ✅ CORS
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:8081").split(",")
    if origin.strip()
]
