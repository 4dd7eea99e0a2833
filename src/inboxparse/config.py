import os
from pathlib import Path

from dotenv import load_dotenv

# Configuration
CONFIG_DIR = Path.home() / ".config" / "inboxparse"
TOKEN_PATH = CONFIG_DIR / "token.json"
CREDENTIALS_PATH = CONFIG_DIR / "credentials.json"
ENV_PATH = CONFIG_DIR / ".env"

# If modifying these scopes, delete the previously saved token.json.
SCOPES = ["https://www.googleapis.com/auth/gmail.readonly"]

DEFAULT_QUERY = "label:newsletter after:2021/05/01 from: hi@vimtricks.com"
DEFAULT_USER = "me"
DEFAULT_LOG_LEVEL = "WARNING"


def load_env(env_path: Path = ENV_PATH) -> None:
    """Load optional overrides from the .env file in the config directory."""
    if env_path.exists():
        load_dotenv(env_path)


def default_query() -> str:
    return os.getenv("INBOXPARSE_QUERY", DEFAULT_QUERY)


def default_user() -> str:
    return os.getenv("INBOXPARSE_USER", DEFAULT_USER)


def default_log_level() -> str:
    return os.getenv("INBOXPARSE_LOG_LEVEL", DEFAULT_LOG_LEVEL).upper()
