import os
from dotenv import load_dotenv

load_dotenv()

class Config:
    """
    Ortam değişkenlerinden ayarları doğrudan ve basit bir şekilde tutan sınıf.
    """
    # Veritabanı
    DATABASE_URL: str = os.environ.get("DATABASE_URL")

    # Redis: liste cache'i ve rate limiter ayrı veritabanlarını kullanabilir
    APPLICATION_REDIS_URL: str = os.environ.get("APPLICATION_REDIS_URL")
    RATE_LIMITER_REDIS_URL: str = os.environ.get("RATE_LIMITER_REDIS_URL", "memory://")
    LIST_CACHE_TTL_SECONDS: int = int(os.environ.get("LIST_CACHE_TTL_SECONDS", 300))

    # JWT ve parola ayarları
    SECRET_KEY: str = os.environ.get("SECRET_KEY")
    ALGORITHM: str = os.environ.get("ALGORITHM", "HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = int(os.environ.get("ACCESS_TOKEN_EXPIRE_MINUTES", 24 * 60))
    PASSWORD_HASH_METHOD: str = os.environ.get("PASSWORD_HASH_METHOD", "scrypt")

    # Loglama
    LOG_DIR: str = os.environ.get("LOG_DIR", "logs")
    CORS_ORIGINS: str = os.environ.get("CORS_ORIGINS", "*")

# Ayarların tek ve içe aktarılabilir bir örneğini oluştur
settings = Config()
