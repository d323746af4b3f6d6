# portal/backend/main.py
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import redis.asyncio as redis
import asyncpg
import logging

# Proje ayarlarını ve modüllerini import edelim
from .config.config import settings
from .logging.logging_config import setup_logging
from .api import auth, super_admin, teachers, attendance
from .api.utilities.limiter import limiter
from .api.utilities.responses import register_exception_handlers

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Uygulama başlatıldığında ve durdurulduğunda çalışacak olan yaşam döngüsü yöneticisi.
    """
    setup_logging(log_dir=settings.LOG_DIR)
    logger.info("Uygulama başlatılıyor...")

    app.state.postgres_pool = None
    app.state.redis_pool = None

    try:
        app.state.postgres_pool = await asyncpg.create_pool(
            dsn=settings.DATABASE_URL, min_size=5, max_size=20
        )
        logger.info("PostgreSQL bağlantı havuzu başarıyla oluşturuldu.")
    except (OSError, asyncpg.PostgresError) as e:
        logger.error(f"HATA: PostgreSQL bağlantı havuzu oluşturulamadı: {e}")

    if settings.APPLICATION_REDIS_URL:
        # Redis yoksa liste cache'i devre dışı kalır, uygulama çalışmaya devam eder.
        app.state.redis_pool = redis.ConnectionPool.from_url(
            settings.APPLICATION_REDIS_URL, decode_responses=True
        )
        logger.info("Redis bağlantı havuzu oluşturuldu.")
    else:
        logger.warning("APPLICATION_REDIS_URL tanımlı değil; liste cache'i kapalı.")

    yield

    logger.info("Uygulama kapatılıyor...")
    if app.state.postgres_pool:
        await app.state.postgres_pool.close()
        logger.info("PostgreSQL bağlantı havuzu kapatıldı.")
    if app.state.redis_pool:
        await app.state.redis_pool.disconnect()
        logger.info("Redis bağlantı havuzu kapatıldı.")


# Ana FastAPI uygulamasını oluştur
app = FastAPI(
    title="School Portal API",
    description="Çok kiracılı okul yönetim portalı: kimlik doğrulama, kapsam yetkilendirme, öğretmen dizini ve yoklama.",
    version="1.0.0",
    lifespan=lifespan
)

# Rate limiter'ı uygulama state'ine ekle
app.state.limiter = limiter

app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in settings.CORS_ORIGINS.split(",")],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Tüm hatalar ortak zarf formatında döner
register_exception_handlers(app)

# API router'larını uygulamaya dahil et
app.include_router(auth.router, prefix="/api/v1")
app.include_router(super_admin.router, prefix="/api/v1")
app.include_router(teachers.router, prefix="/api/v1")
app.include_router(attendance.router, prefix="/api/v1")


@app.get("/health", tags=["System"])
def health_check():
    """Uygulamanın ayakta ve sağlıklı olup olmadığını kontrol etmek için basit bir endpoint."""
    return {"status": "ok", "message": "School Portal API is running."}


if __name__ == "__main__":
    import uvicorn
    # python -m portal.backend.main
    uvicorn.run(app, host="0.0.0.0", port=8000)
