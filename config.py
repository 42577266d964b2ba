import tomllib
import shutil
from pathlib import Path
from typing import Any, Dict, Optional
from dotenv import load_dotenv
import os

CONFIG_DIR = Path.home() / ".kotoba"
CONFIG_PATH = CONFIG_DIR / "config.toml"
PROJECT_CONFIG_EXAMPLE = Path(__file__).parent / "config.toml"

def _env_bool(name: str, default: Any) -> bool:
    return os.getenv(name, str(default)).lower() == "true"

def load_config() -> Dict[str, Any]:
    """Load config from ~/.kotoba/config.toml, copy example if missing, load .env overrides."""
    load_dotenv()  # .env may carry KOTOBA_DB_PATH, LOG_LEVEL, ...
    if not CONFIG_PATH.exists():
        CONFIG_DIR.mkdir(parents=True, exist_ok=True)
        shutil.copy(PROJECT_CONFIG_EXAMPLE, CONFIG_PATH)
    with open(CONFIG_PATH, "rb") as f:
        config = tomllib.load(f)

    server_cfg = config.get("server", {})
    config["server"] = {
        "host": os.getenv("KOTOBA_HOST", server_cfg.get("host", "127.0.0.1")),
        "port": int(os.getenv("KOTOBA_PORT", server_cfg.get("port", 8000))),
    }
    database_cfg = config.get("database", {})
    db_path = os.getenv("KOTOBA_DB_PATH", database_cfg.get("path") or str(CONFIG_DIR / "kotoba.db"))
    config["database"] = {
        "path": str(Path(db_path).expanduser()),
        "busy_timeout": float(os.getenv("KOTOBA_DB_TIMEOUT", database_cfg.get("busy_timeout", 5.0))),
    }
    logging_cfg = config.get("logging", {})
    config["logging"] = {
        "level": os.getenv("LOG_LEVEL", logging_cfg.get("level", "INFO")).upper(),
        "json": _env_bool("LOG_JSON", logging_cfg.get("json", True)),
    }
    return config

def get_config_value(section: str, key: str, default: Optional[Any] = None) -> Any:
    """Get nested config value, e.g., get_config_value('database', 'path')."""
    config = load_config()
    value = config.get(section, {}).get(key, default)
    return value
