"""Centralized configuration management for the risk scorer."""

import logging
import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "RISK_SCORER_CONFIG"
LOCAL_CONFIG_NAMES = ("risk-scorer-config.yaml", "risk-scorer-config.yml")


class ScoringPolicy(BaseModel):
    """Numeric policy applied to every answer impact.

    Each category starts at the baseline; negative impacts on critical
    questions are amplified, then every impact is damped.
    """
    model_config = ConfigDict(frozen=True)

    baseline: float = Field(
        70.0, ge=0, le=100,
        description="Starting score of every category before any answer (0-100)"
    )
    critical_multiplier: float = Field(
        1.5, gt=0,
        description="Multiplier for negative impacts on questions flagged critical"
    )
    damping: float = Field(
        0.85, gt=0,
        description="Attenuation applied to every impact after the critical multiplier"
    )


class ConfidencePolicy(BaseModel):
    """Parameters of the coverage/variance confidence estimate.

    confidence = 100 * max(floor, coverage_weight * coverage - variance_weight * variance)
    """
    model_config = ConfigDict(frozen=True)

    coverage_weight: float = Field(0.9, ge=0, description="Reward for answering across categories")
    variance_weight: float = Field(0.3, ge=0, description="Penalty for answer-to-answer variability")
    floor: float = Field(0.4, ge=0, le=1, description="Lowest confidence fraction ever reported")
    variance_fallback: float = Field(
        0.2, ge=0, le=1,
        description="Variance assumed when fewer than two impacts were recorded"
    )
    variance_scale: float = Field(
        10.0, gt=0,
        description="Divisor normalizing the impact standard deviation to 0-1"
    )


class ScorerConfig(BaseModel):
    """Complete configuration for the risk scorer."""
    scoring_policy: ScoringPolicy = Field(default_factory=ScoringPolicy)
    confidence_policy: ConfidencePolicy = Field(default_factory=ConfidencePolicy)


# Global config instance
_config: Optional[ScorerConfig] = None


def get_config() -> ScorerConfig:
    """Get the current configuration.

    Returns the global config, initializing with defaults if not yet loaded.
    """
    global _config
    if _config is None:
        _config = ScorerConfig()
    return _config


def load_config(path: Path) -> ScorerConfig:
    """Load configuration from a YAML file.

    Keys left out of the file keep their defaults.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        The loaded ScorerConfig.

    Raises:
        ValueError: If the file is not a YAML mapping.
        pydantic.ValidationError: If a policy value is out of range.
    """
    global _config

    with open(path, 'r', encoding='utf-8') as f:
        data = yaml.safe_load(f)

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping, got {type(data).__name__}")

    _config = ScorerConfig.model_validate(data)
    logger.info("Loaded scorer config from %s", path)
    return _config


def reset_config() -> None:
    """Reset configuration to defaults."""
    global _config
    _config = ScorerConfig()


def config_search_paths() -> list[Path]:
    """Candidate config locations after the environment variable, in order."""
    return [Path(name) for name in LOCAL_CONFIG_NAMES] + [
        Path.home() / ".config" / "risk-scorer" / "config.yaml"
    ]


def find_config_file() -> Optional[Path]:
    """Find a scorer configuration file.

    The RISK_SCORER_CONFIG environment variable wins; a path set there that
    does not exist is reported and the search continues with
    config_search_paths().
    """
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        path = Path(env_path)
        if path.exists():
            return path
        logger.warning("%s points to a missing file: %s", CONFIG_ENV_VAR, env_path)

    for path in config_search_paths():
        if path.exists():
            return path

    return None


def save_default_config(path: Path) -> None:
    """Save the default configuration to a YAML file.

    Args:
        path: Path where to save the configuration.
    """
    data = ScorerConfig().model_dump()

    header = [
        "# Risk Scorer Configuration",
        "# =========================",
        "#",
        "# scoring_policy controls the per-answer arithmetic (baseline, critical",
        "# amplification, damping). confidence_policy controls the confidence",
        "# estimate derived from category coverage and impact variance.",
        "#",
        "# Copy this file to one of these locations:",
    ]
    header += [f"#   - {location}" for location in config_search_paths()]
    header += ["#", f"# Or set the {CONFIG_ENV_VAR} environment variable.", "", ""]

    yaml_content = "\n".join(header)
    yaml_content += yaml.dump(data, default_flow_style=False, sort_keys=False, allow_unicode=True)

    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        f.write(yaml_content)
