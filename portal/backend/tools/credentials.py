from typing import Optional
from werkzeug.security import generate_password_hash, check_password_hash

from ..config.config import settings
from ..services.errors import StorageError

# Bilinmeyen e-posta ile gelen girişlerde de aynı maliyette karşılaştırma
# yapabilmek için kullanılan sabit hash.
_DUMMY_HASH: Optional[str] = None


def hash_secret(secret: str) -> str:
    """Parolayı tuzlu ve yavaş bir hash ile saklanabilir hale getirir."""
    return generate_password_hash(secret, method=settings.PASSWORD_HASH_METHOD)


def verify_secret(presented: str, stored_hash: Optional[str]) -> bool:
    """
    Sunulan parolayı saklanan hash ile karşılaştırır.

    Yanlış parola için False döner, asla exception fırlatmaz. Hash kaydı
    okunamıyorsa (boş veya bozuk) StorageError fırlatır. Parola hiçbir
    koşulda loglanmaz ya da döndürülmez.
    """
    # werkzeug formatı: method$salt$hash
    if not stored_hash or stored_hash.count("$") < 2:
        raise StorageError("Stored credential record could not be read.")
    try:
        return check_password_hash(stored_hash, presented)
    except (ValueError, TypeError) as e:
        # Bilinmeyen hash metodu veya bozuk parametreler
        raise StorageError("Stored credential record could not be read.") from e


def burn_verification_time(presented: str) -> None:
    """Hesap bulunamadığında zamanlama farkını kapatmak için boş bir karşılaştırma yapar."""
    global _DUMMY_HASH
    if _DUMMY_HASH is None:
        _DUMMY_HASH = hash_secret("dummy-password-for-timing")
    check_password_hash(_DUMMY_HASH, presented)
