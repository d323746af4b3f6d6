import logging
import re
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from ..config.config import settings

LOG_FORMAT = "%(asctime)s - [%(name)s] - %(levelname)s - %(message)s"

# Bearer başlıkları ve JWT benzeri üç parçalı değerler
_BEARER = re.compile(r"(?i)(bearer\s+)[A-Za-z0-9._~+/=-]+")
_JWT = re.compile(r"\beyJ[A-Za-z0-9_-]*\.[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+")
# werkzeug hash formatı: method$salt$hash
_PASSWORD_HASH = re.compile(r"\b(?:scrypt|pbkdf2)[^\s$]*\$[^\s$]+\$[0-9a-f]+")


class SecretRedactingFilter(logging.Filter):
    """
    Log kaydı handler'a ulaşmadan önce token ve parola hash'lerini maskeler.
    Modüller zaten gizli değer loglamaz; bu filtre gözden kaçanlar içindir.
    """
    MASK = "[REDACTED]"

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = _BEARER.sub(lambda m: m.group(1) + self.MASK, message)
        redacted = _JWT.sub(self.MASK, redacted)
        redacted = _PASSWORD_HASH.sub(self.MASK, redacted)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def setup_logging(level: int = logging.INFO, log_dir: Optional[str] = None):
    """
    Uygulama genelinde kullanılacak olan merkezi loglama yapılandırmasını kurar.

    Loglar hem konsola hem de 5MB'ı geçince dönen bir dosyaya yazılır. Her iki
    handler da SecretRedactingFilter'dan geçer.
    """
    # Docker volume ile bu klasör sunucudaki kalıcı bir dizine bağlanır.
    target_dir = Path(log_dir or settings.LOG_DIR)
    target_dir.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    root.setLevel(level)

    # Uvicorn gibi kütüphanelerin varsayılan handler'larını temizle
    if root.hasHandlers():
        root.handlers.clear()

    redactor = SecretRedactingFilter()
    formatter = logging.Formatter(LOG_FORMAT)

    stdout_handler = logging.StreamHandler(sys.stdout)
    file_handler = RotatingFileHandler(target_dir / "portal.log", maxBytes=5*1024*1024, backupCount=5)
    for handler in (stdout_handler, file_handler):
        handler.setFormatter(formatter)
        handler.addFilter(redactor)
        root.addHandler(handler)

    # Erişim logları sorgu parametrelerini içerir; sadece uyarılar kalsın.
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
