import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# Rutas
BASE_DIR = Path(__file__).parent
DATA_DIR = Path(os.getenv("TIMESCRIBE_DATA_DIR", str(BASE_DIR / "data")))
RECORDINGS_DIR = DATA_DIR / "recordings"
TEMP_DIR = DATA_DIR / "tmp"
DB_PATH = DATA_DIR / "timetracking.db"

# Servidor local
HOST = "127.0.0.1"
PORT = 8787

# Proxy de categorizacion
PROXY_HOST = os.getenv("TIMESCRIBE_PROXY_HOST", "0.0.0.0")
PROXY_PORT = int(os.getenv("PORT", "8080"))

# Audio
SAMPLE_RATE = 16000
CHANNELS = 1
MIC_DEVICE_INDEX = None  # None = dispositivo por defecto

# Whisper
WHISPER_MODEL = os.getenv("TIMESCRIBE_WHISPER_MODEL", "base")
WHISPER_LANGUAGE = os.getenv("TIMESCRIBE_LANGUAGE", "en")

# LLM
LLM_PROVIDER = os.getenv("TIMESCRIBE_LLM_PROVIDER", "gemini")
GEMINI_API_KEY = os.getenv("GEMINI_API_KEY", "")
GEMINI_MODEL = os.getenv("TIMESCRIBE_GEMINI_MODEL", "gemini-2.0-flash")
ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY", "")
ANTHROPIC_MODEL = "claude-sonnet-4-5-20250929"
OLLAMA_MODEL = os.getenv("TIMESCRIBE_OLLAMA_MODEL", "llama3")
OLLAMA_URL = os.getenv("TIMESCRIBE_OLLAMA_URL", "http://localhost:11434")
PROXY_URL = os.getenv("TIMESCRIBE_PROXY_URL", "")
LLM_TIMEOUT_SECS = int(os.getenv("TIMESCRIBE_LLM_TIMEOUT", "60"))

PLACEHOLDER_API_KEYS = {"your_api_key_here"}


def provider_api_key(provider: str) -> str:
    """Retorna la API key del entorno para el proveedor ("" si no esta configurada)."""
    if provider == "anthropic":
        key = ANTHROPIC_API_KEY
    else:
        key = GEMINI_API_KEY
    if key.strip().lower() in PLACEHOLDER_API_KEYS:
        return ""
    return key.strip()
