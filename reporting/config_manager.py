"""
╔═════════════════════════════════════════════════════════════════════════════╗
║                  CONFIGURATION MANAGER SCRIPT - ver. 02.00                  ║
║ Purpose: Environment-driven configuration for the test run and reporting    ║
║ File:    config_manager.py                                                  ║
╠═════════════════════════════════════════════════════════════════════════════╣
║ Section 1: Initial Settings and Imports                                     ║
║ Purpose:   Configure initial settings, imports, and script variables        ║
╚═════════════════════════════════════════════════════════════════════════════╝
"""
import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

import yaml
from dotenv import load_dotenv
from loguru import logger
from pydantic import BaseModel, ValidationError, field_validator

from reporting.error_handling import ConfigError

PROJECT_ROOT = Path(__file__).resolve().parent.parent
CONFIG_DIR = PROJECT_ROOT / "config"
CONFIG_PATH = CONFIG_DIR / "reporting.yaml"

KNOWN_PROJECTS = ("e2e", "api")
BASE_URL_VARIABLES = {
    "LOCAL": "BASE_URL_LOCAL",
    "PROD": "BASE_URL_PROD",
    "ORANGE": "BASE_URL_ORANGE",
}

# Environment variable -> settings field
ENV_KEYS = {
    "TEST_ENV": "test_env",
    "API_BASE_URL": "api_base_url",
    "GRAPHQL_PATH": "graphql_path",
    "TAGS": "tags",
    "THREADS": "threads",
    "DISCORD_BOT_TOKEN": "discord_bot_token",
    "DISCORD_CHANNEL_ID": "discord_channel_id",
    "DISCORD_LOG_PASSED": "log_passed",
    "DISCORD_RUN_META_PATH": "run_meta_path",
    "REPORT_URL": "report_url",
    "LOG_LEVEL": "log_level",
}
#
"""
╔═════════════════════════════════════════════════════════════════════════════╗
║ Section 2: Pydantic Configuration Models                                    ║
║ Purpose:   Define the data structure and validation for run settings        ║
╠═════════════════════════════════════════════════════════════════════════════╣
║ Class 2.1: ReportingSettings                                                ║
║ Purpose:   Validated settings for one test run                              ║
╚═════════════════════════════════════════════════════════════════════════════╝
"""
class ReportingSettings(BaseModel):
     suite_name: str = "End2End Test Suite"
     test_env: str = "LOCAL"
     base_urls: Dict[str, str] = {}
     api_base_url: str = ""
     graphql_path: str = "/api/v1/pharmaserv/graphql"
     tags: str = ""
     threads: int = 4
     projects: List[str] = []

     discord_bot_token: str = ""
     discord_channel_id: str = ""
     discord_api_base: str = "https://discord.com/api/v10"
     log_passed: bool = False
     run_meta_path: str = ".discord-run.json"
     report_url: str = ""

     # Notification queue / header tunables (seconds)
     flush_delay: float = 0.1
     retry_delay: float = 0.15
     drain_timeout: float = 10.0
     request_timeout: float = 10.0
     bar_segments: int = 8
     snippet_limit: int = 1400

     artifact_dirs: List[str] = ["screenshots", "test-results", ".pytest-report"]
     log_dir: str = "logs"
     log_level: str = "INFO"

     @field_validator("test_env", mode="before")
     @classmethod
     def _normalize_env(cls, value):
          return (str(value or "").strip() or "LOCAL").upper()

     @field_validator("api_base_url", mode="before")
     @classmethod
     def _normalize_api_base_url(cls, value):
          # macOS resolves localhost to ::1 first; the API servers bind IPv4
          return str(value or "").replace("localhost", "127.0.0.1")

     @field_validator("log_passed", mode="before")
     @classmethod
     def _parse_flag(cls, value):
          if isinstance(value, str):
               return value.strip() == "1" or value.strip().lower() == "true"
          return bool(value)

     @field_validator("projects", mode="before")
     @classmethod
     def _parse_projects(cls, value):
          if isinstance(value, str):
               value = [part for part in value.split(",")]
          wanted = [str(p).strip().lower() for p in (value or []) if str(p).strip()]
          unknown = [p for p in wanted if p not in KNOWN_PROJECTS]
          if unknown:
               raise ValueError(
                    f'Unknown PROJECT="{",".join(unknown)}". Valid: {", ".join(KNOWN_PROJECTS)}'
               )
          return wanted

     @field_validator("threads")
     @classmethod
     def _positive_threads(cls, value):
          if value < 1:
               raise ValueError("THREADS must be at least 1")
          return value

     @property
     def discord_enabled(self) -> bool:
          return bool(self.discord_bot_token and self.discord_channel_id)

     @property
     def base_url_variable(self) -> str:
          return BASE_URL_VARIABLES.get(self.test_env, "BASE_URL_LOCAL")

     @property
     def base_url(self) -> Optional[str]:
          return self.base_urls.get(self.base_url_variable) or None

     def resolve_base_url(self) -> str:
          """Returns the UI base URL for TEST_ENV, failing fast when it is missing."""
          if not self.base_url:
               raise ConfigError(
                    f"Missing baseURL for TEST_ENV={self.test_env}. "
                    f"Please set {self.base_url_variable} in your .env"
               )
          return self.base_url

     def resolve_api_base_url(self) -> str:
          if not self.api_base_url:
               raise ConfigError("Missing API_BASE_URL (set it in .env or your shell)")
          return self.api_base_url

     def project_selected(self, project: str) -> bool:
          return not self.projects or project in self.projects
# End class
#
"""
╔═════════════════════════════════════════════════════════════════════════════╗
║ Class 2.2: ConfigManager                                                    ║
║ Purpose:   Merges yaml defaults, .env and the process environment           ║
╚═════════════════════════════════════════════════════════════════════════════╝
"""
class ConfigManager:
     """
     Loads ReportingSettings from three layers, lowest priority first:
     config/reporting.yaml, the .env file (python-dotenv) and the real
     process environment.
     """
     def __init__(self, config_path: Union[str, Path, None] = None,
                  env: Optional[Mapping[str, str]] = None,
                  dotenv_path: Union[str, Path, None] = None,
                  use_dotenv: bool = True):
          self.config_path = Path(config_path) if config_path else CONFIG_PATH
          self.dotenv_path = dotenv_path
          self.use_dotenv = use_dotenv
          self._env = env
          self._settings: Optional[ReportingSettings] = None

     # =========================================================================
     # Function 2.2.1: reload
     # =========================================================================
     def reload(self) -> ReportingSettings:
          """Re-reads every layer and re-validates the merged settings."""
          data = self._read_yaml_defaults()

          if self.use_dotenv and self._env is None:
               # override=False: a variable exported in the shell beats .env
               load_dotenv(self.dotenv_path, override=False)
          env = self._env if self._env is not None else os.environ

          data.update(self._env_overrides(env))
          try:
               self._settings = ReportingSettings(**data)
          except ValidationError as e:
               raise ConfigError(f"Configuration validation error: {e}")
          logger.debug(f"Loaded settings for TEST_ENV={self._settings.test_env}")
          return self._settings
     # End function

     # =========================================================================
     # Function 2.2.2: get
     # =========================================================================
     def get(self) -> ReportingSettings:
          """Returns the current, validated settings object."""
          if self._settings is None:
               return self.reload()
          return self._settings
     # End function

     def _read_yaml_defaults(self) -> Dict[str, Any]:
          if not self.config_path.exists():
               logger.debug(f"No settings file at {self.config_path}; using built-in defaults")
               return {}
          try:
               with open(self.config_path, 'r', encoding='utf-8') as f:
                    data = yaml.safe_load(f) or {}
          except yaml.YAMLError as e:
               raise ConfigError(f"Failed to parse settings file {self.config_path}: {e}")
          if not isinstance(data, dict):
               raise ConfigError(f"Settings file {self.config_path} must contain a mapping")
          return data

     @staticmethod
     def _env_overrides(env: Mapping[str, str]) -> Dict[str, Any]:
          overrides: Dict[str, Any] = {}
          for variable, field in ENV_KEYS.items():
               value = env.get(variable)
               if value is not None and value != "":
                    overrides[field] = value

          projects = (env.get("PROJECT") or env.get("PROJECTS") or "").strip()
          if projects:
               overrides["projects"] = projects

          base_urls = {name: env[name] for name in BASE_URL_VARIABLES.values() if env.get(name)}
          if base_urls:
               overrides["base_urls"] = base_urls
          return overrides
# End class
#
#
## End of script
