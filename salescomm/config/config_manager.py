"""
YAML configuration for the commission engine
Location: salescomm/config/config_manager.py

Sections:
  logging        level, file, json
  engine         target_prefix
  storage        snapshot_dir
  profiles       commission profiles with per-category tiers
  managers       manager hierarchy
  rep_settings   representative -> profile bindings
  beta_mappings  proxy-channel name -> representative
"""

import os
import yaml
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from ..core.aggregator import TARGET_PREFIX
from ..models.schemas import RuleSet

DEFAULT_CONFIG_PATH = Path(__file__).with_name("default_config.yaml")
CONFIG_ENV_VAR = "SALESCOMM_CONFIG"
DEFAULT_SNAPSHOT_DIR = "data/snapshots"

RULE_SECTIONS = ("profiles", "managers", "rep_settings", "beta_mappings")


class ConfigManager:
    def __init__(self, config_path: Optional[str] = None):
        """
        Args:
            config_path: YAML file to read. When omitted, the SALESCOMM_CONFIG
                environment variable is used, then the packaged defaults.
        """
        self.config_path = str(config_path or os.getenv(CONFIG_ENV_VAR) or DEFAULT_CONFIG_PATH)
        self.config: Dict[str, Any] = {}
        self.logger = logging.getLogger(__name__)

        self._load_config()

    def _load_config(self) -> None:
        self.logger.info(f"Reading commission configuration: {self.config_path}")

        if not os.path.exists(self.config_path):
            self.logger.error(f"Configuration file not found: {self.config_path}")
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

        try:
            with open(self.config_path, 'r', encoding='utf-8') as fh:
                self.config = yaml.safe_load(fh) or {}
        except yaml.YAMLError as e:
            self.logger.exception(f"Malformed YAML in {self.config_path}: {e}")
            raise

        if not self.config:
            self.logger.warning(f"{self.config_path} is empty; running with no profiles")
            return
        self.logger.info(
            f"Configuration has sections {list(self.config)}, "
            f"{len(self.config.get('profiles') or [])} profiles"
        )

    def get(self, section: str, key: Optional[str] = None, default: Any = None) -> Any:
        """
        Look up ``section`` or ``section.key``.

        Returns ``default`` when the section or key is absent, or when the
        section is not a mapping and a key was asked for.
        """
        if key is None:
            return self.config.get(section, default)

        values = self.config.get(section)
        if not isinstance(values, dict):
            self.logger.debug(f"No [{section}] mapping; using default for {key}")
            return default
        return values.get(key, default)

    def get_section(self, section: str) -> Any:
        return self.config.get(section) or {}

    def get_all(self) -> Dict[str, Any]:
        return self.config

    def set(self, section: str, key: str, value: Any) -> None:
        if not isinstance(self.config.get(section), dict):
            self.config[section] = {}
        self.config[section][key] = value

    def set_section(self, section: str, value: Any) -> None:
        """Replace a whole section, e.g. the list of profiles."""
        self.config[section] = value

    @property
    def target_prefix(self) -> str:
        return self.get("engine", "target_prefix") or TARGET_PREFIX

    @property
    def snapshot_dir(self) -> str:
        return self.get("storage", "snapshot_dir") or DEFAULT_SNAPSHOT_DIR

    @property
    def rule_set(self) -> RuleSet:
        return load_rule_set(self)

    def save(self, output_path: Optional[str] = None) -> None:
        """Write the configuration back as YAML (to ``output_path`` if given)."""
        target = output_path or self.config_path
        directory = os.path.dirname(target)
        if directory:
            os.makedirs(directory, exist_ok=True)

        with open(target, 'w', encoding='utf-8') as fh:
            yaml.safe_dump(self.config, fh, allow_unicode=True, sort_keys=False, default_flow_style=False)
        self.logger.info(f"Configuration written to {target}")


def load_rule_set(config: ConfigManager) -> RuleSet:
    """Validate the administrator sections into a RuleSet; missing sections are empty."""
    return RuleSet.model_validate({section: config.get(section) or [] for section in RULE_SECTIONS})


def save_rule_set(config: ConfigManager, rules: RuleSet, output_path: Optional[str] = None) -> None:
    """Store ``rules`` in the config sections and persist the file."""
    data = rules.model_dump(mode="json")
    for section in RULE_SECTIONS:
        config.set_section(section, data[section])
    config.save(output_path)
