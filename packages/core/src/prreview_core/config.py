import copy
import logging
import os
from pathlib import Path
from typing import Optional

import yaml

from prreview_core.exceptions import ConfigurationError
from prreview_core.providers.registry import Provider, default_model, parse_provider

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".pr-review.yml"
USER_CONFIG_PATH = Path.home() / ".pr-review" / "config.yml"

DEFAULT_CONFIG: dict = {
    "provider": "claude",
    "model": None,  # None = provider default
    "endpoint": None,  # Azure OpenAI resource endpoint
    "api_version": "2024-10-21",
    "organization": None,
    "project": None,
    "rules": {
        "path": None,  # None = built-in rules
        "style_guide": None,  # None = built-in guide if shipped, else no guide
    },
}

# Provider → environment variable holding its API key.
API_KEY_ENV_VARS = {
    Provider.CLAUDE: "ANTHROPIC_API_KEY",
    Provider.OPENAI: "OPENAI_API_KEY",
    Provider.AZURE_OPENAI: "AZURE_OPENAI_API_KEY",
}

DEFAULT_RULES = "Review for code quality, security issues, and best practices."
STYLE_GUIDE_CHAR_LIMIT = 20_000

BUILTIN_RULES_DIR = Path(__file__).parent / "rules"
_BUILTIN_RULES = BUILTIN_RULES_DIR / "pr-review.md"
_BUILTIN_STYLE_GUIDE = BUILTIN_RULES_DIR / "clean-code.md"


def _read_config_file(config_path: Optional[str]) -> dict:
    candidates = [Path(p) for p in (config_path, CONFIG_FILENAME) if p] + [USER_CONFIG_PATH]
    for path in candidates:
        if not path.exists():
            continue
        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.warning("Ignoring unreadable config file %s: %s", path, e)
            continue
        if not isinstance(data, dict):
            logger.warning("Ignoring config file %s: top level is not a mapping", path)
            continue
        logger.debug("Loaded config from %s", path)
        return data
    return {}


def load_config(config_path: Optional[str] = None, cli_overrides: Optional[dict] = None) -> dict:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. The first config file found: config_path, ./.pr-review.yml, ~/.pr-review/config.yml
      3. CLI argument overrides
    Credentials always come from environment variables.
    """
    config = copy.deepcopy(DEFAULT_CONFIG)

    file_config = _read_config_file(config_path)
    file_rules = file_config.pop("rules", None) or {}
    if not isinstance(file_rules, dict):
        logger.warning("Ignoring 'rules' in config file: expected a mapping, got %r", file_rules)
        file_rules = {}
    config.update(file_config)
    config["rules"].update(file_rules)

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is not None:
                config[key] = value

    config["azure_devops_pat"] = os.environ.get("AZURE_DEVOPS_PAT")
    config["endpoint"] = os.environ.get("AZURE_OPENAI_ENDPOINT") or config.get("endpoint")

    try:
        provider = parse_provider(config["provider"])
    except ConfigurationError:
        # validate_config reports this; leave the key and model unresolved.
        config["api_key"] = None
        return config

    config["api_key"] = os.environ.get(API_KEY_ENV_VARS[provider]) or config.get("api_key")
    config["model"] = config.get("model") or default_model(provider)
    return config


def validate_config(config: dict) -> None:
    """Raise ConfigurationError if the config cannot drive a review."""
    provider = parse_provider(config.get("provider", ""))
    if not config.get("api_key"):
        raise ConfigurationError(f"{API_KEY_ENV_VARS[provider]} environment variable is not set.")
    if provider is Provider.AZURE_OPENAI and not config.get("endpoint"):
        raise ConfigurationError("AZURE_OPENAI_ENDPOINT environment variable is not set.")


def load_rules(config: dict) -> str:
    """
    Load the review rules text.

    Uses ``rules.path`` when it points at an existing file, then the built-in
    rules, then DEFAULT_RULES. A missing rules file is never fatal.
    """
    custom_path = (config.get("rules") or {}).get("path")
    if custom_path:
        p = Path(custom_path)
        if p.exists():
            return p.read_text(encoding="utf-8")
        logger.warning("Rules file not found: %s. Using built-in rules.", custom_path)

    if _BUILTIN_RULES.exists():
        return _BUILTIN_RULES.read_text(encoding="utf-8")

    return DEFAULT_RULES


def load_style_guide(config: dict) -> Optional[str]:
    """Load the optional clean-code guide, truncated to STYLE_GUIDE_CHAR_LIMIT characters."""
    custom_path = (config.get("rules") or {}).get("style_guide")
    path = Path(custom_path) if custom_path else _BUILTIN_STYLE_GUIDE
    if not path.exists():
        if custom_path:
            logger.warning("Style guide not found: %s. Reviewing without one.", custom_path)
        return None
    return truncate_style_guide(path.read_text(encoding="utf-8"))


def truncate_style_guide(text: str) -> str:
    return text[:STYLE_GUIDE_CHAR_LIMIT]
