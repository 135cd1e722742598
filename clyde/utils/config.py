"""Configuration loading from dotenv-style config files and the environment."""

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from clyde.utils.logging import LogLevel, get_logger

logger = get_logger(__name__)

CONFIG_DIR_NAME = ".clyde"
API_KEY_VARS = ("TS_AGENT_API_KEY", "ANTHROPIC_API_KEY")


class ConfigError(Exception):
    """Raised when the configuration cannot be found or is incomplete."""


class Settings(BaseModel):
    """Runtime settings for the agent."""

    api_key: str = Field(..., min_length=1)
    brave_search_api_key: str | None = None
    api_url: str = "https://api.anthropic.com"
    model: str = "claude-sonnet-4-5-20250929"
    max_tokens: int = Field(default=4096, gt=0)
    max_retries: int = Field(default=2, ge=0)
    log_level: LogLevel = "WARNING"


def find_config_file(home: Path | None = None) -> Path | None:
    """Locate the config file to load.

    Priority order:
      1. ENV_PATH environment variable (must exist if set)
      2. .env in the current directory
      3. ~/.clyde/config
      4. ~/.clyde (legacy: a plain file instead of a directory)

    Returns:
        Path of the config file, or None when nothing was found

    Raises:
        ConfigError: If ENV_PATH points to a missing file
    """
    env_path = os.getenv("ENV_PATH")
    if env_path:
        path = Path(env_path)
        if path.is_file():
            return path
        raise ConfigError(f"ENV_PATH is set to '{env_path}' but file does not exist")

    local_env = Path(".env")
    if local_env.is_file():
        return local_env

    home_dir = home or Path.home()
    config_path = home_dir / CONFIG_DIR_NAME / "config"
    if config_path.is_file():
        return config_path

    legacy_path = home_dir / CONFIG_DIR_NAME
    if legacy_path.is_file():
        return legacy_path

    return None


def _missing_config_message(home_dir: Path) -> str:
    config_dir = home_dir / CONFIG_DIR_NAME
    config_file = config_dir / "config"
    return (
        "No configuration file found\n\n"
        "To get started, create a config file:\n\n"
        f"  mkdir -p {config_dir}\n"
        f"  cat > {config_file} << 'EOF'\n"
        "TS_AGENT_API_KEY=your-anthropic-api-key\n"
        "BRAVE_SEARCH_API_KEY=your-brave-api-key  # Optional\n"
        "EOF\n\n"
        "Get your Anthropic API key at: https://console.anthropic.com/\n"
        "Get your Brave Search API key at: https://brave.com/search/api/ (optional)\n\n"
        "Alternatively, create a .env file in your project directory for project-specific config."
    )


def load_settings(home: Path | None = None) -> Settings:
    """Load settings from the first config file found.

    Values already present in the environment take precedence over the file.

    Raises:
        ConfigError: If no config file exists or the API key is missing
    """
    home_dir = home or Path.home()
    config_path = find_config_file(home_dir)
    if config_path is None:
        raise ConfigError(_missing_config_message(home_dir))

    logger.debug(f"Loading configuration from {config_path}")
    load_dotenv(config_path, override=False)

    api_key = next((os.environ[var] for var in API_KEY_VARS if os.getenv(var)), None)
    if not api_key:
        raise ConfigError(
            f"TS_AGENT_API_KEY not found in '{config_path}'\n\n"
            "Please add this line to your config file:\n"
            "  TS_AGENT_API_KEY=your-anthropic-api-key-here\n\n"
            "Get your API key from: https://console.anthropic.com/"
        )

    overrides: dict[str, str] = {}
    if model := os.getenv("CLYDE_MODEL"):
        overrides["model"] = model
    if api_url := os.getenv("CLYDE_API_URL"):
        overrides["api_url"] = api_url
    if max_tokens := os.getenv("CLYDE_MAX_TOKENS"):
        overrides["max_tokens"] = max_tokens
    if log_level := os.getenv("LOG_LEVEL"):
        overrides["log_level"] = log_level

    try:
        return Settings.model_validate(
            {
                "api_key": api_key,
                "brave_search_api_key": os.getenv("BRAVE_SEARCH_API_KEY") or None,
                **overrides,
            }
        )
    except ValueError as e:
        raise ConfigError(f"Invalid configuration in '{config_path}': {e}") from e
