"""
Configuration management for the execution loop.
"""

from pathlib import Path

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings

from taskloop.core.domain.loop_detection import DetectorConfig

# Budget per iteration when sizing the detector window: two reasoner calls
# plus tool execution.
ITERATION_WINDOW_MS = 60000


class LoopSettings(BaseSettings):
    """Loop configuration settings with environment variable support."""

    # Loop limits
    max_iterations: int = Field(default=50, ge=1, description="Iteration budget per session")
    loop_check_interval: int = Field(
        default=5, ge=1, description="Run loop detection every N iterations"
    )
    error_window: int = Field(default=3, ge=1, description="Recent iterations checked for errors")
    error_threshold: int = Field(
        default=2, ge=1, description="Errored iterations in the window that stop the loop"
    )

    # Behaviour
    plan_first: bool = Field(default=True, description="Ask the reasoner for a plan before acting")
    soft_loop_check: bool = Field(
        default=False, description="Ask the reasoner to judge loops the detector missed"
    )

    # Repetition detector
    max_history_size: int = Field(default=20, ge=1)
    exact_repeat_threshold: int = Field(default=3, ge=2)
    alternating_pattern_threshold: int = Field(default=4, ge=2)
    parameter_cycle_threshold: int = Field(default=5, ge=2)
    time_window_ms: int | None = Field(
        default=None,
        gt=0,
        description="Detector window; derived from loop_check_interval when unset",
    )

    # Reasoner
    model: str = Field(default="gpt-4o-mini", description="LiteLLM model name")
    temperature: float = Field(default=0.2, ge=0.0, le=2.0)

    # Debug settings
    log_level: str = Field(default="WARNING", description="Logging level")

    model_config = {
        "env_file": ".env",
        "env_prefix": "TASKLOOP_",
        "case_sensitive": False,
        "extra": "ignore",
    }

    @classmethod
    def load_from_file(cls, config_path: Path) -> "LoopSettings":
        """Load settings from a YAML configuration file."""
        if not config_path.exists():
            return cls()

        with open(config_path, "r") as f:
            config_data = yaml.safe_load(f) or {}

        return cls(**config_data)

    def save_to_file(self, config_path: Path) -> None:
        """Save settings to a YAML configuration file."""
        config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(config_path, "w") as f:
            yaml.dump(self.model_dump(), f, default_flow_style=False, indent=2)

    def detector_window_ms(self) -> int:
        """Window long enough to hold every call made between two loop checks."""
        if self.time_window_ms is not None:
            return self.time_window_ms
        return self.loop_check_interval * ITERATION_WINDOW_MS

    def detector_config(self) -> DetectorConfig:
        return DetectorConfig(
            max_history_size=self.max_history_size,
            exact_repeat_threshold=self.exact_repeat_threshold,
            alternating_pattern_threshold=self.alternating_pattern_threshold,
            parameter_cycle_threshold=self.parameter_cycle_threshold,
            time_window_ms=self.detector_window_ms(),
        )
