# config/config_loader.py

import os
import yaml
from pathlib import Path

from connectors.errors import ConfigurationError

DEFAULTS_FILE = "defaults.yaml"

# Environment variable -> (section, key)
ENV_OVERRIDES = {
    "SERVERPILOT_ASSISTANT_URL": ("assistant", "url"),
    "SERVERPILOT_ASSISTANT_KEY": ("assistant", "api_key"),
    "SERVERPILOT_ADMIN_PASSWORD": ("server", "admin_password"),
}


class ConfigLoader:
    def __init__(self, base_dir="config"):
        self.base_dir = Path(base_dir)

    def _load_yaml(self, path: Path):
        if not Path(path).exists():
            raise FileNotFoundError(f"YAML not found: {path}")
        try:
            data = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigurationError(f"Top level of {path} must be a mapping")
        return data

    def list_environments(self):
        """
        List all available environments by scanning config directory.

        Returns:
            list: Sorted list of environment names
        """
        envs = []
        if not self.base_dir.exists():
            return envs

        for item in self.base_dir.iterdir():
            if item.is_dir() and (item / f"{item.name}.yaml").exists():
                envs.append(item.name)

        return sorted(envs)

    def load_environment(self, env_name: str, explicit_path: str = None):
        """
        1) If explicit_path is FILE → load that file.
        2) If explicit_path is DIR → load DIR/<env>.yaml
        3) Otherwise → load config/<env>/<env>.yaml
        """
        if env_name is None:
            raise ValueError("Environment name cannot be None")

        if explicit_path:
            exp = Path(explicit_path)

            # CASE 1 - explicit_path = file
            if exp.is_file():
                return self._load_yaml(exp)

            # CASE 2 - explicit_path = directory
            yaml_path = exp / f"{env_name}.yaml"
            return self._load_yaml(yaml_path)

        # CASE 3 - normal runtime path: config/<env>/<env>.yaml
        default_path = self.base_dir / env_name / f"{env_name}.yaml"
        return self._load_yaml(default_path)

    def load_defaults(self) -> dict:
        path = self.base_dir / DEFAULTS_FILE
        if not path.exists():
            return {}
        return self._load_yaml(path)

    def load(self, env_name: str = None, explicit_path: str = None, environ=None) -> dict:
        """
        Load the effective run configuration.

        Configuration hierarchy:
        1. config/defaults.yaml
        2. config/<env>/<env>.yaml (or the explicit file/dir), when given
        3. SERVERPILOT_* environment variables
        """
        config = self.load_defaults()

        if env_name or explicit_path:
            try:
                override = self.load_environment(env_name or "", explicit_path)
            except FileNotFoundError as e:
                raise ConfigurationError(str(e)) from e
            config = self._deep_merge(config, override)

        return self.apply_env_overrides(config, environ)

    def apply_env_overrides(self, config: dict, environ=None) -> dict:
        environ = os.environ if environ is None else environ
        result = dict(config)
        for var, (section, key) in ENV_OVERRIDES.items():
            value = environ.get(var)
            if value:
                merged = dict(result.get(section) or {})
                merged[key] = value
                result[section] = merged
        return result

    def _deep_merge(self, base: dict, override: dict) -> dict:
        """
        Deep merge two dictionaries, with override taking precedence.

        Args:
            base: Base dictionary
            override: Override dictionary

        Returns:
            dict: Merged dictionary
        """
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result
