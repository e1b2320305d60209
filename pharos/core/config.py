import os

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./pharos.db")

JWT_SECRET = os.getenv("JWT_SECRET", "dev-secret-change-me")
JWT_ALG = "HS256"
JWT_EXPIRE_MIN = int(os.getenv("JWT_EXPIRE_MIN", "43200"))  # 30 días

# 0 apaga el timer; la pasada de arranque y las pasadas bajo demanda siguen
SCHEDULER_INTERVAL_SECONDS = int(os.getenv("SCHEDULER_INTERVAL_SECONDS", "3600"))
SCHEDULER_MAX_CATCHUP = int(os.getenv("SCHEDULER_MAX_CATCHUP", "366"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

CORS_ORIGINS = [
    o.strip()
    for o in os.getenv("CORS_ORIGINS", "http://localhost:5173").split(",")
    if o.strip()
]
