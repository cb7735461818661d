"""
Configuration management for patchstore.

Settings are merged from several sources so a project can pin its own
defaults (./patchstore.toml) while a user keeps personal ones in
~/.config/patchstore/config.toml.
"""
import os
import tomli
import tomli_w
from pathlib import Path
from typing import Dict, Any, Optional
from dataclasses import dataclass, field, asdict


@dataclass
class StoreConfig:
    """
    patchstore configuration with sensible defaults.

    Configuration hierarchy (highest to lowest priority):
    1. Command-line arguments
    2. Environment variables (PATCHSTORE_*)
    3. Explicit config file
    4. Local config file (./patchstore.toml, ./.patchstorerc or ./.patchstore/config.toml)
    5. User config file (~/.config/patchstore/config.toml)
    6. Defaults
    """

    # Store behaviour
    id_property: str = field(default="id")
    strict_subscribers: bool = field(default=False)  # Re-raise subscriber errors
    snapshot_updates: bool = field(default=True)  # Deep-copy old items for diffs

    # Display settings
    output_format: str = field(default="table")  # table, json
    json_indent: int = field(default=2)
    page_size: int = field(default=20)

    # Named query definitions (YAML)
    views_file: Optional[str] = field(default=None)

    log_level: str = field(default="INFO")

    @classmethod
    def load(cls, config_file: Optional[Path] = None) -> "StoreConfig":
        """
        Load configuration from files and environment.

        Args:
            config_file: Specific config file to load (overrides search)

        Returns:
            Merged configuration object
        """
        config = cls()

        user_config_path = Path.home() / ".config" / "patchstore" / "config.toml"
        if user_config_path.exists():
            config._merge(cls._load_toml(user_config_path))

        local_paths = [
            Path.cwd() / "patchstore.toml",
            Path.cwd() / ".patchstorerc",
            Path.cwd() / ".patchstore" / "config.toml"
        ]

        for path in local_paths:
            if path.exists():
                config._merge(cls._load_toml(path))
                break

        if config_file and Path(config_file).exists():
            config._merge(cls._load_toml(Path(config_file)))

        config._apply_env_vars()
        config._expand_paths()

        return config

    @staticmethod
    def _load_toml(path: Path) -> Dict[str, Any]:
        """Load TOML configuration file."""
        with open(path, "rb") as f:
            return tomli.load(f)

    def _merge(self, data: Dict[str, Any]):
        """Merge configuration data into this instance."""
        for key, value in data.items():
            if hasattr(self, key):
                setattr(self, key, value)

    def _apply_env_vars(self):
        """Apply environment variables with PATCHSTORE_ prefix."""
        prefix = "PATCHSTORE_"
        for key, value in os.environ.items():
            if key.startswith(prefix):
                config_key = key[len(prefix):].lower()
                if hasattr(self, config_key):
                    current_value = getattr(self, config_key)
                    if isinstance(current_value, bool):
                        setattr(self, config_key, value.lower() in ("true", "1", "yes"))
                    elif isinstance(current_value, int):
                        setattr(self, config_key, int(value))
                    else:
                        setattr(self, config_key, value)

    def _expand_paths(self):
        """Expand ~ and environment variables in paths."""
        if isinstance(self.views_file, str):
            self.views_file = os.path.expanduser(os.path.expandvars(self.views_file))

    def to_dict(self) -> Dict[str, Any]:
        """Settings as a TOML-safe dictionary (unset values dropped)."""
        return {key: value for key, value in asdict(self).items() if value is not None}

    def save(self, path: Optional[Path] = None) -> Path:
        """
        Save current configuration to TOML file.

        Args:
            path: Path to save to (defaults to user config)

        Returns:
            The path written
        """
        if path is None:
            path = Path.home() / ".config" / "patchstore" / "config.toml"
        path = Path(path)

        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "wb") as f:
            tomli_w.dump(self.to_dict(), f)
        return path


# Global configuration instance
_config: Optional[StoreConfig] = None


def get_config(reload: bool = False, config_file: Optional[Path] = None) -> StoreConfig:
    """
    Get the global configuration instance.

    Args:
        reload: Force reload configuration from files
        config_file: Specific config file to load

    Returns:
        Global configuration instance
    """
    global _config
    if _config is None or reload:
        _config = StoreConfig.load(config_file)
    return _config


def init_config(**kwargs) -> StoreConfig:
    """
    Initialize configuration with command-line overrides.

    None values are ignored so unset CLI flags keep the loaded setting.
    """
    config = get_config()

    for key, value in kwargs.items():
        if hasattr(config, key) and value is not None:
            setattr(config, key, value)

    return config
