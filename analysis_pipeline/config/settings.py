"""
Configuration settings for the analysis pipeline.

Values are resolved from defaults, then an optional YAML/JSON config file,
then environment variables. Credentials can be fetched from Google Secret
Manager.
"""

import os
import json
import yaml
import logging
from pathlib import Path
from dataclasses import dataclass, field
from typing import Dict, Optional, Any

logger = logging.getLogger(__name__)

# Secret Manager cache to avoid repeated API calls
_secrets_cache: Dict[str, str] = {}


def get_secret(secret_name: str, project_id: Optional[str] = None) -> Optional[str]:
    """
    Fetch a secret from Google Secret Manager.

    Args:
        secret_name: Name of the secret (e.g., 'analysis-pipeline-service-account')
        project_id: GCP project ID. If None, uses GCP_PROJECT_ID env var.

    Returns:
        Secret value as string, or None if not found.
    """
    if secret_name in _secrets_cache:
        return _secrets_cache[secret_name]

    # Allow environment variable override for local development
    env_override = os.getenv(secret_name.upper().replace('-', '_'))
    if env_override:
        _secrets_cache[secret_name] = env_override
        return env_override

    project = project_id or os.getenv('GCP_PROJECT_ID')
    if not project:
        logger.warning(f"No project configured, cannot fetch secret '{secret_name}'")
        return None

    try:
        from google.cloud import secretmanager

        client = secretmanager.SecretManagerServiceClient()
        name = f"projects/{project}/secrets/{secret_name}/versions/latest"

        response = client.access_secret_version(request={"name": name})
        secret_value = response.payload.data.decode("UTF-8")

        _secrets_cache[secret_name] = secret_value
        logger.info(f"Loaded secret '{secret_name}' from Secret Manager")
        return secret_value

    except Exception as e:
        logger.warning(f"Could not fetch secret '{secret_name}' from Secret Manager: {e}")
        return None


@dataclass
class AnalysisConfig:
    """Natural Language / Vision / Translation call settings."""
    timeout_seconds: float = 60.0
    # How long a finished ingest waits for the safe-search side check to log
    safe_search_grace_seconds: float = 5.0
    translate_location: str = "global"


@dataclass
class PublishConfig:
    """Pub/Sub topics, one per pipeline."""
    text_result_topic: str = "text-analysis-results"
    image_result_topic: str = "image-analysis-results"
    timeout_seconds: float = 30.0


@dataclass
class StorageConfig:
    """Cloud Storage buckets."""
    results_bucket: str = ""
    # Bucket text documents are read from; defaults to the triggering bucket
    text_bucket: Optional[str] = None


@dataclass
class PipelineConfig:
    """Main pipeline configuration."""
    gcp_project_id: str
    service_account_json: Optional[str] = None
    log_level: str = "INFO"
    analysis: AnalysisConfig = field(default_factory=AnalysisConfig)
    publish: PublishConfig = field(default_factory=PublishConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)


def load_config_file(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load flat configuration values from a YAML (or JSON) file.

    Args:
        config_path: Path to the config file. If None, uses PIPELINE_CONFIG_FILE
            or ``config.yaml`` next to this module.

    Returns:
        Dictionary of setting name to value, empty if the file is missing.
    """
    if config_path is None:
        config_path = os.getenv('PIPELINE_CONFIG_FILE') or Path(__file__).parent / "config.yaml"
    config_path = Path(config_path)

    if not config_path.exists():
        logger.debug(f"Pipeline config file not found: {config_path}")
        return {}

    with open(config_path, 'r') as f:
        values = yaml.safe_load(f) or {}

    if not isinstance(values, dict):
        raise ValueError(f"Pipeline config file must contain a mapping: {config_path}")

    logger.info(f"Loaded {len(values)} settings from {config_path}")
    return values


def _setting(name: str, file_values: Dict[str, Any], default: Any = None) -> Any:
    value = os.getenv(name)
    if value is not None and value != "":
        return value
    if file_values.get(name) not in (None, ""):
        return file_values[name]
    return default


def get_pipeline_config(config_path: Optional[str] = None) -> PipelineConfig:
    """
    Create pipeline configuration from the config file, environment variables
    and Secret Manager.

    Environment variables (override the config file):
        GCP_PROJECT_ID: Google Cloud project ID
        TEXT_BUCKET: Bucket text documents are analyzed from
        RESULT_BUCKET: Bucket processed results are written to
        TEXT_RESULT_TOPIC: Pub/Sub topic for text analysis results
        IMAGE_RESULT_TOPIC: Pub/Sub topic for image analysis results (legacy: RESULT_TOPIC)
        ANALYSIS_TIMEOUT_SECONDS: Per-call timeout for analysis backends
        SAFE_SEARCH_GRACE_SECONDS: Time allowed for safe-search logging after publish
        PUBLISH_TIMEOUT_SECONDS: Timeout waiting for a publish to be acknowledged
        TRANSLATE_LOCATION: Translation API location (default: global)
        LOG_LEVEL: Logging level (default: INFO)

    Secrets:
        PIPELINE_SERVICE_ACCOUNT_SECRET: Secret name for service account JSON
        PIPELINE_SERVICE_ACCOUNT_JSON: Direct override (bypasses Secret Manager)
    """
    file_values = load_config_file(config_path)

    project_id = _setting('GCP_PROJECT_ID', file_values, '')

    service_account_json = os.getenv('PIPELINE_SERVICE_ACCOUNT_JSON')
    secret_name = _setting('PIPELINE_SERVICE_ACCOUNT_SECRET', file_values)
    if not service_account_json and secret_name:
        service_account_json = get_secret(secret_name, project_id)

    analysis_config = AnalysisConfig(
        timeout_seconds=float(_setting('ANALYSIS_TIMEOUT_SECONDS', file_values, 60.0)),
        safe_search_grace_seconds=float(_setting('SAFE_SEARCH_GRACE_SECONDS', file_values, 5.0)),
        translate_location=_setting('TRANSLATE_LOCATION', file_values, 'global')
    )

    publish_config = PublishConfig(
        text_result_topic=_setting('TEXT_RESULT_TOPIC', file_values, 'text-analysis-results'),
        image_result_topic=(
            _setting('IMAGE_RESULT_TOPIC', file_values) or
            _setting('RESULT_TOPIC', file_values, 'image-analysis-results')
        ),
        timeout_seconds=float(_setting('PUBLISH_TIMEOUT_SECONDS', file_values, 30.0))
    )

    storage_config = StorageConfig(
        results_bucket=_setting('RESULT_BUCKET', file_values, ''),
        text_bucket=_setting('TEXT_BUCKET', file_values)
    )

    if not storage_config.results_bucket:
        logger.warning("RESULT_BUCKET is not configured; result handlers will fail to save")

    return PipelineConfig(
        gcp_project_id=project_id,
        service_account_json=service_account_json,
        log_level=str(_setting('LOG_LEVEL', file_values, 'INFO')).upper(),
        analysis=analysis_config,
        publish=publish_config,
        storage=storage_config
    )


def load_credentials(config: PipelineConfig):
    """
    Build service account credentials from the configured JSON.

    Returns:
        google.oauth2 service account credentials, or None to use
        Application Default Credentials.
    """
    if not config.service_account_json:
        return None

    from google.oauth2 import service_account

    info = json.loads(config.service_account_json)
    logger.info(f"Using service account credentials for {info.get('client_email', 'unknown')}")
    return service_account.Credentials.from_service_account_info(info)
