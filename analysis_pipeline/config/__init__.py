"""Configuration management for the analysis pipeline."""

from .settings import (
    PipelineConfig,
    AnalysisConfig,
    PublishConfig,
    StorageConfig,
    get_secret,
    load_config_file,
    get_pipeline_config,
)

__all__ = [
    "PipelineConfig",
    "AnalysisConfig",
    "PublishConfig",
    "StorageConfig",
    "get_secret",
    "load_config_file",
    "get_pipeline_config",
]
