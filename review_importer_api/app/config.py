"""
Configuration management for the Product Reviews Importer API.
"""

import json
import re
import tempfile
from pathlib import Path
from typing import Dict, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    """Application settings."""

    woo_config_path: str = Field(default="./woo_config.json")
    redis_url: str = Field(default="redis://localhost:6379/0")
    log_level: str = Field(default="INFO")
    data_dir: str = Field(
        default=str(Path(tempfile.gettempdir()) / "review_import"),
        description="Directory for uploaded CSV files awaiting import"
    )
    import_batch_size: int = Field(default=50, ge=1)
    upload_ttl_seconds: int = Field(default=3600, ge=60)
    max_upload_size: int = Field(default=10 * 1024 * 1024)
    timezone: str = Field(default="UTC", description="Store timezone used for 'now' review dates")
    cleanup_interval_seconds: int = Field(default=3600)

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)


_settings = Settings()


def load_stores_config(config_path: Optional[str] = None) -> Dict:
    """
    Load stores configuration from JSON file.

    Args:
        config_path: Optional path to config file. If None, uses WOO_CONFIG_PATH.

    Returns:
        Dict with 'stores' key mapping store names to store configs.

    Raises:
        FileNotFoundError: If config file doesn't exist.
        ValueError: If config is invalid.
    """
    path = Path(config_path or _settings.woo_config_path)

    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)

    if not isinstance(data, dict) or "stores" not in data:
        raise ValueError("Config must be a JSON object with a 'stores' key")

    return data


def save_stores_config(config_data: Dict, config_path: Optional[str] = None) -> None:
    """
    Save stores configuration to JSON file.

    Args:
        config_data: Dict with 'stores' key.
        config_path: Optional path to config file. If None, uses WOO_CONFIG_PATH.
    """
    if not isinstance(config_data, dict) or "stores" not in config_data:
        raise ValueError("Config must be a JSON object with a 'stores' key")

    path = Path(config_path or _settings.woo_config_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w", encoding="utf-8") as f:
        json.dump(config_data, f, indent=2, ensure_ascii=False)


def get_all_stores(config_path: Optional[str] = None) -> Dict[str, Dict]:
    """Get all stores keyed by display name."""
    config = load_stores_config(config_path)
    return config.get("stores", {})


def generate_store_id(store_name: str) -> str:
    """
    Generate a stable store_id (slug) from store name.

    Args:
        store_name: Store display name.

    Returns:
        URL-safe slug.
    """
    slug = re.sub(r'[^\w\s-]', '', store_name.lower())
    slug = re.sub(r'[-\s]+', '-', slug)
    return slug.strip('-')


def get_review_import_options(store_name: str, config_path: Optional[str] = None) -> Dict:
    """
    Get raw review importer options stored under a store's config.

    Args:
        store_name: Store display name (key in stores dict)
        config_path: Optional path to config file.

    Returns:
        Options dict (empty if the store has none saved yet).
    """
    stores = get_all_stores(config_path)
    store = stores.get(store_name) or {}
    return dict(store.get("review_import") or {})


def save_review_import_options(
    store_name: str,
    options: Dict,
    config_path: Optional[str] = None
) -> None:
    """
    Persist review importer options under a store's config.

    Raises:
        ValueError: If store doesn't exist.
    """
    config = load_stores_config(config_path)
    stores = config.get("stores", {})

    if store_name not in stores:
        raise ValueError(f"Store '{store_name}' not found")

    stores[store_name]["review_import"] = options
    save_stores_config(config, config_path)


def get_settings() -> Settings:
    """Get application settings."""
    return _settings
