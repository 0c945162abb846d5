"""Configuration management for stereodepth."""

import os
import yaml
from pathlib import Path
from typing import Optional
from pydantic import BaseModel, Field, validator
from dotenv import load_dotenv

# Environment variable -> (settings section, field)
ENV_OVERRIDES = {
    "STEREODEPTH_BACKEND": ("depth", "backend"),
    "STEREODEPTH_CALIBRATION_FILE": ("depth", "calibration_file"),
    "STEREODEPTH_LOG_LEVEL": ("logging", "level"),
}


class SGBMConfig(BaseModel):
    """StereoSGBM matcher parameters."""
    num_disparities: int = Field(default=128, ge=16, le=256)
    block_size: int = Field(default=5, ge=3, le=11)
    min_disparity: int = Field(default=0, ge=0)

    @validator('num_disparities')
    def validate_num_disparities(cls, v):
        """Ensure num_disparities is divisible by 16."""
        if v % 16 != 0:
            raise ValueError("num_disparities must be divisible by 16")
        return v

    @validator('block_size')
    def validate_block_size(cls, v):
        """Ensure block_size is odd."""
        if v % 2 == 0:
            raise ValueError("block_size must be odd")
        return v


class BMConfig(BaseModel):
    """StereoBM matcher parameters."""
    num_disparities: int = Field(default=64, ge=16, le=256)
    block_size: int = Field(default=15, ge=5, le=255)

    @validator('num_disparities')
    def validate_num_disparities(cls, v):
        """Ensure num_disparities is divisible by 16."""
        if v % 16 != 0:
            raise ValueError("num_disparities must be divisible by 16")
        return v

    @validator('block_size')
    def validate_block_size(cls, v):
        """Ensure block_size is odd."""
        if v % 2 == 0:
            raise ValueError("block_size must be odd")
        return v


class PrecomputedConfig(BaseModel):
    """Precomputed map reader parameters."""
    directory: Optional[str] = Field(default=None)
    pattern: str = Field(default="{index:06d}")
    disparity_scale: float = Field(default=256.0, gt=0.0)
    start_index: int = Field(default=0, ge=0)


class DepthConfig(BaseModel):
    """Depth estimation configuration."""
    backend: str = Field(default="sgbm")
    input_is_depth: bool = Field(default=False)
    baseline_m: float = Field(default=0.537, gt=0.0)
    focal_length_px: float = Field(default=721.5377, gt=0.0)
    calibration_file: Optional[str] = Field(default=None)
    min_depth_mm: int = Field(default=500, gt=0, lt=32767)
    max_depth_mm: int = Field(default=15000, gt=0, lt=32767)
    num_workers: int = Field(default=1, ge=1, le=64)
    sgbm: SGBMConfig = Field(default_factory=SGBMConfig)
    bm: BMConfig = Field(default_factory=BMConfig)
    precomputed: PrecomputedConfig = Field(default_factory=PrecomputedConfig)

    @validator('backend')
    def validate_backend(cls, v):
        """Validate backend name."""
        allowed = ['sgbm', 'bm', 'precomputed']
        v = v.lower()
        if v not in allowed:
            raise ValueError(f"backend must be one of {allowed}")
        return v

    @validator('max_depth_mm')
    def validate_depth_range(cls, v, values):
        """Ensure the depth range is not empty."""
        min_depth = values.get('min_depth_mm')
        if min_depth is not None and v < min_depth:
            raise ValueError("max_depth_mm must be >= min_depth_mm")
        return v


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: str = Field(default="INFO")
    console_colors: bool = Field(default=True)
    format: str = Field(default="%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    @validator('level')
    def validate_level(cls, v):
        """Validate logging level."""
        allowed = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        v = v.upper()
        if v not in allowed:
            raise ValueError(f"level must be one of {allowed}")
        return v


class Settings(BaseModel):
    """Main application settings."""
    depth: DepthConfig = Field(default_factory=DepthConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "Settings":
        """
        Load settings from YAML file and environment variables.

        Args:
            config_path: Path to config.yaml file. If None, uses default location.

        Returns:
            Settings instance with loaded configuration.
        """
        load_dotenv()

        if config_path is None:
            project_root = Path(__file__).parent.parent.parent
            config_path = project_root / "config" / "config.yaml"

        config_path = Path(config_path)
        if config_path.exists():
            with open(config_path, 'r') as f:
                config_data = yaml.safe_load(f) or {}
        else:
            config_data = {}

        # Environment overrides (also read from .env)
        for env_name, (section, key) in ENV_OVERRIDES.items():
            value = os.getenv(env_name)
            if value:
                config_data.setdefault(section, {})[key] = value

        return cls(**config_data)


# Singleton instance
_settings: Optional[Settings] = None


def get_settings(config_path: Optional[Path] = None, reload: bool = False) -> Settings:
    """
    Get application settings (singleton pattern).

    Args:
        config_path: Path to config.yaml file. Only used on first call or when reload=True.
        reload: Force reload of settings.

    Returns:
        Settings instance.
    """
    global _settings

    if _settings is None or reload:
        _settings = Settings.load(config_path)

    return _settings
