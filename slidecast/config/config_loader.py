"""
Configuration loader for Slidecast

Reads the packaged defaults, merges an optional user file over them and then
applies SLIDECAST_* environment variables.
"""

import os
import yaml
import logging
from pathlib import Path
from typing import Dict, Any, Optional, List

logger = logging.getLogger(__name__)

ENV_PREFIX = 'SLIDECAST_'


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Return base updated with override; nested mappings merge key by key"""
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = value
    return merged


class ConfigLoader:
    """
    Cascading configuration, later layers winning:
    1. slidecast/config/default.yaml (packaged)
    2. config/config.yaml at the project root, or an explicit path
    3. SLIDECAST_SECTION_KEY environment variables
    """

    def __init__(self, user_config_path: Optional[str] = None):
        self.package_dir = Path(__file__).parent
        self.default_config_path = self.package_dir / "default.yaml"
        if user_config_path:
            self.user_config_path = Path(user_config_path)
        else:
            # slidecast/config/ -> project root
            self.user_config_path = self.package_dir.parent.parent / "config" / "config.yaml"

        self.config = self._load_config()

    def _load_yaml(self, file_path: Path) -> Dict[str, Any]:
        """Read one YAML layer; unreadable or non-mapping files count as empty"""
        if not file_path.exists():
            logger.debug(f"Config file not found: {file_path}")
            return {}

        try:
            data = yaml.safe_load(file_path.read_text(encoding='utf-8'))
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Error loading config from {file_path}: {e}")
            return {}

        if data is None:
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring config at {file_path}: top level is not a mapping")
            return {}
        return data

    @staticmethod
    def _parse_env_value(env_value: str) -> Any:
        """Numbers and yes/no/true/false are typed; anything else stays a string"""
        try:
            return float(env_value) if '.' in env_value else int(env_value)
        except ValueError:
            pass

        flags = {'true': True, 'yes': True, 'false': False, 'no': False}
        return flags.get(env_value.lower(), env_value)

    @staticmethod
    def _match_key(section: Dict[str, Any], parts: List[str]) -> int:
        """
        Return how many leading parts form an existing key in section.

        Keys may themselves contain underscores (e.g. ``timeout_seconds``), so
        the longest existing key wins. Falls back to a single part.
        """
        for size in range(len(parts), 0, -1):
            if '_'.join(parts[:size]) in section:
                return size
        return 1

    def _apply_env_override(self, config: Dict[str, Any], env_key: str, env_value: str) -> None:
        """Set one SLIDECAST_* variable into config, copying the sections it touches"""
        parts = env_key[len(ENV_PREFIX):].lower().split('_')
        if len(parts) < 2:
            return

        node = config
        while parts:
            size = self._match_key(node, parts)
            key, parts = '_'.join(parts[:size]), parts[size:]
            if not parts:
                node[key] = self._parse_env_value(env_value)
                logger.debug(f"Applied env override: {env_key} = {env_value}")
                return

            child = node.get(key)
            if child is None:
                child = {}
            elif not isinstance(child, dict):
                logger.debug(f"Ignoring env override {env_key}: {key} is not a section")
                return
            node[key] = dict(child)
            node = node[key]

    def _load_config(self) -> Dict[str, Any]:
        logger.debug(f"Loading default config from: {self.default_config_path}")
        config = self._load_yaml(self.default_config_path)

        if self.user_config_path.exists():
            logger.info(f"Loading user config from: {self.user_config_path}")
            config = deep_merge(config, self._load_yaml(self.user_config_path))
        else:
            logger.debug(f"No user config found at: {self.user_config_path}")

        config = dict(config)
        for env_key, env_value in os.environ.items():
            if env_key.startswith(ENV_PREFIX):
                self._apply_env_override(config, env_key, env_value)
        return config

    def get(self, *keys, default: Any = None) -> Any:
        """
        Look up a value by path.

        Accepts separate keys or one dotted string:
            config.get('encoder', 'ffmpeg_binary')
            config.get('encoder.ffmpeg_binary')
            config.get('video', 'default_quality', default='medium')
        """
        if len(keys) == 1 and isinstance(keys[0], str) and '.' in keys[0]:
            keys = tuple(keys[0].split('.'))

        node: Any = self.config
        for key in keys:
            if not isinstance(node, dict) or key not in node:
                return default
            node = node[key]
        return node

    def get_section(self, section: str) -> Dict[str, Any]:
        """Whole section as a dict ({} when absent)"""
        return self.get(section, default={})

    def reload(self) -> None:
        """Re-read every layer"""
        self.config = self._load_config()
        logger.info("Configuration reloaded")

    def __repr__(self) -> str:
        return f"ConfigLoader(default={self.default_config_path}, user={self.user_config_path})"
