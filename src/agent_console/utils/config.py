"""Configuration management for the agent console."""

import logging
import os
import yaml
from pathlib import Path
from typing import Dict, Any, Literal, Optional
from pydantic import BaseModel, Field, ValidationError, model_validator
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


class ConsoleConfig(BaseModel):
    """Settings for the full-screen console."""
    max_output_lines: int = Field(default=2000, ge=1, description="Lines kept in the output pane")
    history_limit: int = Field(default=1000, ge=1, description="Maximum submitted inputs remembered")
    render_interval_ms: int = Field(default=50, ge=0, description="Minimum delay between output-triggered redraws")
    poll_interval_ms: int = Field(default=50, ge=1, description="Input poll timeout")
    paste_window_ms: int = Field(default=10, ge=0, description="Window for detecting a paste burst after Enter")
    min_output_height: int = Field(default=3, ge=0, description="Rows always left to the output pane")
    scroll_step: int = Field(default=3, ge=1, description="Lines scrolled per mouse wheel step")
    prompt_marker: str = Field(default="> ", description="Marker on the first input line")
    continuation_marker: str = Field(default="| ", description="Marker on continuation input lines")
    clipboard: Literal["osc52", "native"] = Field(default="osc52", description="How selected output is copied")

    @model_validator(mode="after")
    def _align_markers(self) -> "ConsoleConfig":
        width = len(self.prompt_marker)
        self.continuation_marker = self.continuation_marker[:width].ljust(width)
        return self


class AgentConfig(BaseModel):
    """Main agent configuration."""

    # Core settings
    name: str = Field(default="CodeAssistant", description="Agent name")
    version: str = Field(default="1.0.0", description="Agent version")

    # Console settings
    console: ConsoleConfig = Field(default_factory=ConsoleConfig)

    # Interface settings
    verbose: bool = Field(default=False, description="Verbose output")
    color_output: bool = Field(default=True, description="Colored terminal output")
    log_level: str = Field(default="info", description="Default log level")


ENV_OVERRIDES: Dict[str, str] = {
    "AGENT_CONSOLE_PASTE_WINDOW_MS": "paste_window_ms",
    "AGENT_CONSOLE_RENDER_INTERVAL_MS": "render_interval_ms",
    "AGENT_CONSOLE_MAX_OUTPUT_LINES": "max_output_lines",
    "AGENT_CONSOLE_CLIPBOARD": "clipboard",
}


class ConfigManager:
    """Manages configuration loading and saving."""

    def __init__(self, config_path: Optional[Path] = None):
        self.config_path = config_path or Path.home() / ".agent_console" / "config.yaml"
        self._config: Optional[AgentConfig] = None

    def load_config(self) -> AgentConfig:
        """Load configuration from file or create default."""
        if self._config is not None:
            return self._config

        if self.config_path.exists():
            try:
                with open(self.config_path, 'r') as f:
                    data = yaml.safe_load(f) or {}
                self._config = AgentConfig(**data)
            except Exception as e:
                logger.warning("Could not load config from %s: %s", self.config_path, e)
                self._config = AgentConfig()
        else:
            self._config = AgentConfig()

        # Override with environment variables
        self._apply_env_overrides()
        return self._config

    def save_config(self) -> None:
        """Save current configuration to file."""
        if self._config is None:
            return

        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.config_path, 'w') as f:
            yaml.dump(self._config.model_dump(), f, default_flow_style=False)

    def _apply_env_overrides(self) -> None:
        """Apply environment variable overrides."""
        if not self._config:
            return

        console = self._config.console
        for variable, field in ENV_OVERRIDES.items():
            value = os.getenv(variable)
            if not value:
                continue
            # Validate one override at a time so a bad value only drops itself.
            try:
                console = ConsoleConfig(**{**console.model_dump(), field: value})
            except ValidationError as e:
                logger.warning("Ignoring %s=%r: %s", variable, value, e.errors()[0]["msg"])
        self._config.console = console

        if os.getenv("AGENT_CONSOLE_LOG"):
            self._config.log_level = os.getenv("AGENT_CONSOLE_LOG")

    @property
    def config(self) -> AgentConfig:
        """Get current configuration."""
        if self._config is None:
            self.load_config()
        return self._config

    def update_config(self, **kwargs) -> None:
        """Update configuration values."""
        if self._config is None:
            self.load_config()

        for key, value in kwargs.items():
            if hasattr(self._config, key):
                setattr(self._config, key, value)

        self.save_config()

    def set_value(self, dotted_key: str, value: Any) -> None:
        """Set a nested value such as ``console.paste_window_ms``."""
        keys = dotted_key.split(".")
        data = self.config.model_dump()
        current = data
        for key in keys[:-1]:
            if not isinstance(current.get(key), dict):
                raise KeyError(dotted_key)
            current = current[key]
        if keys[-1] not in current:
            raise KeyError(dotted_key)
        current[keys[-1]] = value
        # Re-validate so string values from the command line are coerced.
        self._config = AgentConfig(**data)
        self.save_config()


# Global config manager instance
config_manager = ConfigManager()
