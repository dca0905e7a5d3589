"""Migration configuration and per-request options."""

import json
import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class Platform(str, Enum):
    """Catalog platforms a target instance can run on."""
    MAGENTO = "magento"
    SHOPIFY = "shopify"


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _split_list(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


@dataclass
class SourceConfig:
    """Connection settings for the source catalog."""
    base_url: str = ""
    token: Optional[str] = None
    media_base_url: Optional[str] = None  # Defaults to {base_url}/media/catalog/product

    @property
    def media_url(self) -> str:
        if self.media_base_url:
            return self.media_base_url.rstrip("/")
        return f"{self.base_url.rstrip('/')}/media/catalog/product"

    def to_dict(self) -> Dict[str, Any]:
        return {"base_url": self.base_url, "media_base_url": self.media_base_url}


@dataclass
class TargetInstanceConfig:
    """One independently addressed target catalog deployment."""
    name: str
    platform: Platform = Platform.MAGENTO
    base_url: str = ""
    token: Optional[str] = None
    store_codes: List[str] = field(default_factory=list)  # Display scopes, in write order
    api_version: str = "2025-01"  # Shopify Admin API version
    default_attribute_set_id: int = 4

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "platform": self.platform.value,
            "base_url": self.base_url,
            "store_codes": self.store_codes,
            "api_version": self.api_version,
            "default_attribute_set_id": self.default_attribute_set_id,
        }

    @classmethod
    def from_dict(cls, name: str, data: Dict[str, Any]) -> "TargetInstanceConfig":
        store_codes = data.get("store_codes", [])
        if isinstance(store_codes, str):
            store_codes = _split_list(store_codes)
        return cls(
            name=name,
            platform=Platform(data.get("platform", "magento")),
            base_url=data.get("base_url", ""),
            token=data.get("token"),
            store_codes=list(store_codes),
            api_version=data.get("api_version", "2025-01"),
            default_attribute_set_id=int(data.get("default_attribute_set_id", 4)),
        )


@dataclass
class MigrationConfig:
    """Configuration shared by every migration run by one orchestrator."""
    source: SourceConfig = field(default_factory=SourceConfig)
    targets: Dict[str, TargetInstanceConfig] = field(default_factory=dict)

    # Execution options
    continue_on_error: bool = True
    max_concurrency: int = 5  # Simultaneous source reads during extraction

    # Transport
    timeout: float = 30.0
    max_retries: int = 3
    backoff_factor: float = 1.0

    # Request defaults
    include_images: bool = False
    product_enabled: bool = True

    # Media
    max_image_size_mb: float = 10.0

    # Collaborators
    category_mapping_file: Optional[str] = None
    notification_webhook_url: Optional[str] = None
    notification_timeout: float = 5.0

    log_level: str = "INFO"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation (tokens are omitted)."""
        return {
            "source": self.source.to_dict(),
            "targets": {name: target.to_dict() for name, target in self.targets.items()},
            "continue_on_error": self.continue_on_error,
            "max_concurrency": self.max_concurrency,
            "timeout": self.timeout,
            "max_retries": self.max_retries,
            "backoff_factor": self.backoff_factor,
            "include_images": self.include_images,
            "product_enabled": self.product_enabled,
            "max_image_size_mb": self.max_image_size_mb,
            "category_mapping_file": self.category_mapping_file,
            "notification_webhook_url": self.notification_webhook_url,
            "notification_timeout": self.notification_timeout,
            "log_level": self.log_level,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MigrationConfig":
        """Create from dictionary representation."""
        source_data = data.get("source", {})
        source = SourceConfig(
            base_url=source_data.get("base_url", ""),
            token=source_data.get("token"),
            media_base_url=source_data.get("media_base_url"),
        )

        targets = {
            name: TargetInstanceConfig.from_dict(name, target_data)
            for name, target_data in data.get("targets", {}).items()
        }

        return cls(
            source=source,
            targets=targets,
            continue_on_error=data.get("continue_on_error", True),
            max_concurrency=data.get("max_concurrency", 5),
            timeout=data.get("timeout", 30.0),
            max_retries=data.get("max_retries", 3),
            backoff_factor=data.get("backoff_factor", 1.0),
            include_images=data.get("include_images", False),
            product_enabled=data.get("product_enabled", True),
            max_image_size_mb=data.get("max_image_size_mb", 10.0),
            category_mapping_file=data.get("category_mapping_file"),
            notification_webhook_url=data.get("notification_webhook_url"),
            notification_timeout=data.get("notification_timeout", 5.0),
            log_level=data.get("log_level", "INFO"),
        )

    @classmethod
    def from_json_file(cls, path: str) -> "MigrationConfig":
        """Load configuration from a JSON file."""
        with open(path) as f:
            return cls.from_dict(json.load(f))

    @classmethod
    def from_env(cls) -> "MigrationConfig":
        """
        Load configuration from environment variables.

        Target instances are discovered from TARGET_<NAME>_URL variables;
        the instance name is the lower-cased <NAME> with underscores
        replaced by dashes (TARGET_STORE_A_URL -> "store-a").
        """
        source = SourceConfig(
            base_url=os.environ.get("SOURCE_BASE_URL", ""),
            token=os.environ.get("SOURCE_TOKEN"),
            media_base_url=os.environ.get("SOURCE_MEDIA_BASE_URL"),
        )

        targets: Dict[str, TargetInstanceConfig] = {}
        for key, value in sorted(os.environ.items()):
            if not (key.startswith("TARGET_") and key.endswith("_URL")):
                continue
            prefix = key[:-len("_URL")]
            raw_name = prefix[len("TARGET_"):]
            if not raw_name:
                continue
            name = raw_name.lower().replace("_", "-")
            targets[name] = TargetInstanceConfig(
                name=name,
                platform=Platform(os.environ.get(f"{prefix}_PLATFORM", "magento").lower()),
                base_url=value,
                token=os.environ.get(f"{prefix}_TOKEN"),
                store_codes=_split_list(os.environ.get(f"{prefix}_STORE_CODES")),
                api_version=os.environ.get(f"{prefix}_API_VERSION", "2025-01"),
                default_attribute_set_id=int(os.environ.get(f"{prefix}_DEFAULT_ATTRIBUTE_SET_ID", "4")),
            )

        return cls(
            source=source,
            targets=targets,
            continue_on_error=_env_bool("CONTINUE_ON_ERROR", True),
            max_concurrency=int(os.environ.get("MAX_CONCURRENT_REQUESTS", "5")),
            timeout=float(os.environ.get("API_TIMEOUT", "30")),
            max_retries=int(os.environ.get("MAX_RETRIES", "3")),
            backoff_factor=float(os.environ.get("RETRY_BACKOFF", "1.0")),
            include_images=_env_bool("DEFAULT_INCLUDE_IMAGES", False),
            product_enabled=_env_bool("DEFAULT_PRODUCT_ENABLED", True),
            max_image_size_mb=float(os.environ.get("MAX_IMAGE_SIZE_MB", "10")),
            category_mapping_file=os.environ.get("CATEGORY_MAPPING_FILE"),
            notification_webhook_url=os.environ.get("NOTIFICATION_WEBHOOK_URL"),
            notification_timeout=float(os.environ.get("NOTIFICATION_TIMEOUT", "5")),
            log_level=os.environ.get("LOG_LEVEL", "INFO"),
        )

    def validate(self) -> List[str]:
        """
        Check the configuration for obvious problems.

        Returns:
            List of problems found (empty when valid)
        """
        problems = []
        if not self.source.base_url:
            problems.append("Source base URL is not configured")
        if not self.targets:
            problems.append("No target instances are configured")
        for name, target in self.targets.items():
            if not target.base_url:
                problems.append(f"Target instance '{name}' has no base URL")
            if not target.token:
                problems.append(f"Target instance '{name}' has no access token")
        if self.max_concurrency < 1:
            problems.append("max_concurrency must be at least 1")
        return problems


@dataclass
class MigrationOptions:
    """Options for one migration request."""
    target_instances: List[str] = field(default_factory=list)
    include_images: bool = False
    product_enabled: bool = True
    continue_on_error: Optional[bool] = None  # None = use the configured default

    @classmethod
    def from_config(cls, config: MigrationConfig, **overrides) -> "MigrationOptions":
        """Build options from configured defaults, applying explicit overrides."""
        options = cls(
            target_instances=list(config.targets.keys()),
            include_images=config.include_images,
            product_enabled=config.product_enabled,
        )
        for key, value in overrides.items():
            if value is not None:
                setattr(options, key, value)
        return options

    def to_dict(self) -> Dict[str, Any]:
        return {
            "target_instances": self.target_instances,
            "include_images": self.include_images,
            "product_enabled": self.product_enabled,
            "continue_on_error": self.continue_on_error,
        }
