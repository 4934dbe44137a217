from pathlib import Path
import json
import os
from typing import Dict, Any

# Package defaults (bundled with code)
PACKAGE_CONFIG_DIR = Path(__file__).parent / "defaults"

# User configs (in project root, gitignored)
PROJECT_ROOT = Path(__file__).parent.parent.parent.parent
USER_CONFIG_DIR = PROJECT_ROOT / "config"

DB_PATH_ENV = "TRANSACTION_TAGGER_DB"
DEFAULT_DB_PATH = Path("data") / "transactions.db"


class ConfigLoader:
    """Load configuration with user overrides"""

    @staticmethod
    def load_config(config_name: str) -> Dict[str, Any]:
        """
        Load config with fallback: user config -> default config

        Args:
            config_name: Name of the config file (e.g., 'rules.json')

        Raises:
            FileNotFoundError: If no config file was found

        Returns:
            Parsed JSON configuration
        """
        user_config_path = USER_CONFIG_DIR / config_name
        if user_config_path.exists():
            with open(user_config_path) as f:
                return json.load(f)

        default_config_path = PACKAGE_CONFIG_DIR / config_name
        if default_config_path.exists():
            with open(default_config_path) as f:
                return json.load(f)

        raise FileNotFoundError(
            f"Config file '{config_name}' not found in:\n"
            f" - {user_config_path}\n"
            f" - {default_config_path}"
        )

    @staticmethod
    def load_rules_config() -> Dict[str, Any]:
        """Load the static rule catalog (category rules, special rules, tag detectors)"""
        return ConfigLoader.load_config('rules.json')

    @staticmethod
    def load_tag_mapping_config() -> Dict[str, Any]:
        """Load the built-in category/subcategory -> tag mapping"""
        return ConfigLoader.load_config('tag_mapping.json')

    @staticmethod
    def load_loaders_config() -> Dict[str, Any]:
        """Load the record loader registry configuration"""
        return ConfigLoader.load_config('loaders.json')

    @staticmethod
    def database_path() -> Path:
        """Database file location, overridable through $TRANSACTION_TAGGER_DB"""
        return Path(os.getenv(DB_PATH_ENV, str(DEFAULT_DB_PATH)))
