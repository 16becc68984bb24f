"""
Configuration Management
Loads environment variables and validates required API keys.
"""

from dotenv import load_dotenv
import os
from pathlib import Path
import logging

from signal_agent.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# Load .env file from project root
project_root = Path(__file__).parent.parent.parent
env_path = project_root / '.env'

if env_path.exists():
    load_dotenv(env_path)
    logger.info(f"Loaded environment variables from {env_path}")
else:
    logger.warning(f".env file not found at {env_path}. Using environment variables only.")
    load_dotenv()  # Try to load from system environment


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == '':
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Invalid value for {name}={raw!r}, using default {default}")
        return default


# ============================================================================
# REQUIRED API KEYS
# ============================================================================

# Evidence search (data_fetch node)
TAVILY_API_KEY = os.getenv('TAVILY_API_KEY')

# LLM signal analysis (llm_analysis node)
GROQ_API_KEY = os.getenv('GROQ_API_KEY')

# Signal delivery
TELEGRAM_BOT_TOKEN = os.getenv('TELEGRAM_BOT_TOKEN')


# ============================================================================
# OPTIONAL SETTINGS
# ============================================================================

GROQ_MODEL = os.getenv('GROQ_MODEL', 'llama-3.3-70b-versatile')
GROQ_API_URL = os.getenv('GROQ_API_URL', 'https://api.groq.com/openai/v1/chat/completions')
TAVILY_API_URL = os.getenv('TAVILY_API_URL', 'https://api.tavily.com/search')
TELEGRAM_API_URL = os.getenv('TELEGRAM_API_URL', 'https://api.telegram.org')

# Per-node timeout applied by the pipeline engine (0 disables it)
NODE_TIMEOUT_SECONDS = _env_float('NODE_TIMEOUT_SECONDS', 60.0)

# HTTP timeouts for the external collaborators
SEARCH_TIMEOUT_SECONDS = _env_float('SEARCH_TIMEOUT_SECONDS', 30.0)
LLM_TIMEOUT_SECONDS = _env_float('LLM_TIMEOUT_SECONDS', 60.0)
TELEGRAM_TIMEOUT_SECONDS = _env_float('TELEGRAM_TIMEOUT_SECONDS', 15.0)

LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

# Optional log file; unset logs to stdout only
LOG_FILE = os.getenv('LOG_FILE') or None


# ============================================================================
# VALIDATION
# ============================================================================

def validate_config() -> None:
    """
    Validate that all required configuration is present.

    Raises:
        ConfigurationError: If required API keys are missing

    Example:
        >>> from signal_agent.utils.config import validate_config
        >>> validate_config()
        >>> # Raises ConfigurationError if keys missing
    """
    missing_keys = []

    if not TAVILY_API_KEY:
        missing_keys.append('TAVILY_API_KEY')

    if not GROQ_API_KEY:
        missing_keys.append('GROQ_API_KEY')

    if not TELEGRAM_BOT_TOKEN:
        missing_keys.append('TELEGRAM_BOT_TOKEN')

    if missing_keys:
        raise ConfigurationError(
            f"Missing required API keys in .env file: {', '.join(missing_keys)}\n"
            f"Please copy .env.example to .env and add your API keys."
        )

    logger.info("Configuration validated successfully")


def get_config_summary() -> dict:
    """
    Get configuration summary for debugging.

    Returns:
        Dict with configuration status (keys masked for security)
    """
    return {
        'tavily_key_present': bool(TAVILY_API_KEY),
        'groq_key_present': bool(GROQ_API_KEY),
        'telegram_token_present': bool(TELEGRAM_BOT_TOKEN),
        'groq_model': GROQ_MODEL,
        'node_timeout_seconds': NODE_TIMEOUT_SECONDS,
        'search_timeout_seconds': SEARCH_TIMEOUT_SECONDS,
        'llm_timeout_seconds': LLM_TIMEOUT_SECONDS,
        'log_level': LOG_LEVEL,
        'log_file': LOG_FILE
    }
