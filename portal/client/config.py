import os
from dotenv import load_dotenv

load_dotenv()

class ClientConfig:
    """
    Python istemcisinin ayarları; sunucu tarafındaki Config ile aynı düzende.
    """
    PORTAL_API_URL: str = os.environ.get("PORTAL_API_URL", "http://localhost:8000/api/v1")
    SESSION_STORE_PATH: str = os.environ.get("SESSION_STORE_PATH", os.path.join(os.path.expanduser("~"), ".school-portal", "session.json"))
    CLIENT_CACHE_TTL_SECONDS: float = float(os.environ.get("CLIENT_CACHE_TTL_SECONDS", 60))
    CLIENT_REQUEST_TIMEOUT_SECONDS: float = float(os.environ.get("CLIENT_REQUEST_TIMEOUT_SECONDS", 30))

client_settings = ClientConfig()
