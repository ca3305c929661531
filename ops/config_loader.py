"""
Configuration Loader for the Aerial Survey Pipeline

This module provides a centralized way to load and access configuration
settings from the config.yaml file. The pipeline core never reads the
configuration itself; the CLI turns it into explicit arguments.

Usage:
    from ops.config_loader import Config

    config = Config()
    survey_csv = config.get_input_path('survey_csv')
    joined_shp = config.get_output_path('joined')
    settings = config.pipeline_settings()
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml  # type: ignore[import-untyped]
from loguru import logger

from aerial_survey.pipeline import PipelineSettings


class Config:
    """Configuration manager for the aerial survey pipeline."""

    # Default values that can be overridden in config
    DEFAULTS: Dict[str, Any] = {
        "columns": {
            "longitude": "Longitude",
            "latitude": "Latitude",
            "survey_count": "Surveycount",
            "quality": "Quality",
            "device_time": "DeviceTime",
            "sampler_name": "SamplerName",
            "stock": "STOCK",
            "species": "Species",
            "sect_code": "Sect_Code",
        },
        "system": {
            "target_crs": "EPSG:4326",
            "field_name_width": 10,
            "keep_coordinates": False,
            "device_time_format": None,
            "placeholder_column": "NA",
        },
    }

    OUTPUT_KEYS = ("unjoined", "joined", "summary_txt", "summary_xlsx")

    def __init__(
        self,
        config_file: Optional[Union[str, Path]] = None,
        project_root_override: Optional[Union[str, Path]] = None,
    ):
        """
        Initialize configuration manager.

        Args:
            config_file: Path to config file. If None, looks for:
                        1. Environment variable SURVEY_CONFIG_PATH
                        2. config.yaml in current directory
                        3. ops/config.yaml (if running from the project root)
            project_root_override: Base directory for relative paths in the config
        """
        if config_file is None:
            env_config = os.environ.get("SURVEY_CONFIG_PATH")
            if env_config and Path(env_config).exists():
                config_file = env_config
                logger.debug(f"Using config from environment: {config_file}")
            elif Path("config.yaml").exists():
                config_file = "config.yaml"
            elif Path("ops/config.yaml").exists():
                config_file = "ops/config.yaml"
                logger.debug("Using ops/config.yaml from project root")
            else:
                raise FileNotFoundError(
                    "No config.yaml found. Check current directory or set SURVEY_CONFIG_PATH"
                )

        self.config_path = Path(config_file).resolve()

        if project_root_override:
            self.project_root = Path(project_root_override).resolve()
            logger.debug(f"Using project root override: {self.project_root}")
        else:
            self.project_root = self._find_project_root()

        logger.debug(f"Loading config from: {self.config_path}")
        logger.debug(f"Project root: {self.project_root}")

        with open(self.config_path, "r") as f:
            self.data = yaml.safe_load(f) or {}

    def _find_project_root(self) -> Path:
        """Simple project root detection."""
        # If config is in ops/, project root is parent
        if self.config_path.parent.name == "ops":
            return self.config_path.parent.parent
        return self.config_path.parent

    def _resolve(self, path_str: Union[str, Path]) -> Path:
        path = Path(path_str).expanduser()
        return path if path.is_absolute() else self.project_root / path

    def get(self, key_path: str, default: Any = None) -> Any:
        """
        Get configuration value using dot notation, falling back to DEFAULTS.

        Args:
            key_path: Dot-separated path to the configuration value
            default: Default value if key not found

        Returns:
            Configuration value
        """
        for source in (self.data, self.DEFAULTS):
            value: Any = source
            for key in key_path.split("."):
                if isinstance(value, dict) and key in value:
                    value = value[key]
                else:
                    value = None
                    break
            if value is not None:
                return value

        return default

    def get_input_path(self, filename_key: str) -> Path:
        """Get full path to an input file."""
        relative_path = self.data.get("input_files", {}).get(filename_key)
        if not relative_path:
            raise ValueError(f"Input file '{filename_key}' not found in config: input_files")
        return self._resolve(relative_path)

    def get_output_path(self, filename_key: str) -> Optional[Path]:
        """Get full path to an output file, or None when the output is not configured."""
        if filename_key not in self.OUTPUT_KEYS:
            raise ValueError(f"Unknown output file key: {filename_key}")
        relative_path = self.data.get("output_files", {}).get(filename_key)
        return self._resolve(relative_path) if relative_path else None

    def get_output_paths(self) -> Dict[str, Optional[Path]]:
        return {key: self.get_output_path(key) for key in self.OUTPUT_KEYS}

    def get_column_name(self, column_key: str) -> str:
        """Get column name with defaults."""
        result = self.get(f"columns.{column_key}")
        if isinstance(result, str):
            return result
        raise ValueError(f"Column '{column_key}' not found in config or defaults")

    def get_system_setting(self, setting_key: str) -> Any:
        """Get system setting with defaults."""
        return self.get(f"system.{setting_key}")

    def pipeline_settings(self) -> PipelineSettings:
        """Build the explicit settings object passed to run_survey_pipeline."""
        return PipelineSettings(
            longitude=self.get_column_name("longitude"),
            latitude=self.get_column_name("latitude"),
            survey_count=self.get_column_name("survey_count"),
            quality=self.get_column_name("quality"),
            device_time=self.get_column_name("device_time"),
            group_keys=(
                self.get_column_name("stock"),
                self.get_column_name("species"),
                self.get_column_name("sect_code"),
                self.get_column_name("sampler_name"),
            ),
            polygon_attributes=(
                self.get_column_name("stock"),
                self.get_column_name("species"),
                self.get_column_name("sect_code"),
            ),
            target_crs=self.get_system_setting("target_crs"),
            field_name_width=int(self.get_system_setting("field_name_width")),
            keep_coordinates=bool(self.get_system_setting("keep_coordinates")),
            device_time_format=self.get_system_setting("device_time_format"),
            placeholder=self.get_system_setting("placeholder_column"),
        )

    def validate_input_files(self) -> Dict[str, bool]:
        """Validate that input files exist."""
        results: Dict[str, bool] = {}
        for filename_key in self.data.get("input_files", {}):
            results[filename_key] = self.get_input_path(filename_key).exists()
        return results

    def print_config_summary(self) -> None:
        """Log a summary of the current configuration."""
        logger.debug("📋 Configuration Summary")
        logger.debug("=" * 50)
        logger.debug(f"Project: {self.get('project_name', 'Unknown')}")
        logger.debug(f"Config file: {self.config_path}")

        logger.debug("📊 Input Files:")
        for file_key, exists in self.validate_input_files().items():
            status = "✅" if exists else "❌"
            logger.debug(f"  {status} {file_key}")

        logger.debug("📁 Output Files:")
        for key, path in self.get_output_paths().items():
            logger.debug(f"  {key}: {path or '(not written)'}")
