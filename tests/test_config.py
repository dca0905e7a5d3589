"""Tests for models.migration configuration loading."""

import json
import os

import pytest

from catalog_migration.models.migration import (
    MigrationConfig,
    MigrationOptions,
    Platform,
    SourceConfig,
    TargetInstanceConfig,
)

ENV_KEYS = (
    "SOURCE_BASE_URL",
    "SOURCE_TOKEN",
    "SOURCE_MEDIA_BASE_URL",
    "CONTINUE_ON_ERROR",
    "MAX_CONCURRENT_REQUESTS",
    "API_TIMEOUT",
    "DEFAULT_INCLUDE_IMAGES",
)


@pytest.fixture()
def clean_env(monkeypatch):
    for key in list(os.environ):
        if key.startswith("TARGET_") or key in ENV_KEYS:
            monkeypatch.delenv(key, raising=False)
    return monkeypatch


class TestFromEnv:
    def test_targets_discovered_from_url_variables(self, clean_env):
        clean_env.setenv("SOURCE_BASE_URL", "https://source.test")
        clean_env.setenv("TARGET_STORE_A_URL", "https://a.test")
        clean_env.setenv("TARGET_STORE_A_TOKEN", "a-token")
        clean_env.setenv("TARGET_STORE_A_STORE_CODES", "default, fr ,")
        clean_env.setenv("TARGET_OUTLET_URL", "outlet.myshopify.com")
        clean_env.setenv("TARGET_OUTLET_PLATFORM", "SHOPIFY")

        config = MigrationConfig.from_env()

        assert set(config.targets) == {"store-a", "outlet"}
        store_a = config.targets["store-a"]
        assert store_a.platform == Platform.MAGENTO
        assert store_a.token == "a-token"
        assert store_a.store_codes == ["default", "fr"]
        assert config.targets["outlet"].platform == Platform.SHOPIFY

    def test_execution_settings(self, clean_env):
        clean_env.setenv("CONTINUE_ON_ERROR", "false")
        clean_env.setenv("MAX_CONCURRENT_REQUESTS", "8")
        clean_env.setenv("API_TIMEOUT", "12.5")
        clean_env.setenv("DEFAULT_INCLUDE_IMAGES", "yes")

        config = MigrationConfig.from_env()

        assert config.continue_on_error is False
        assert config.max_concurrency == 8
        assert config.timeout == 12.5
        assert config.include_images is True

    def test_defaults(self, clean_env):
        config = MigrationConfig.from_env()
        assert config.continue_on_error is True
        assert config.max_concurrency == 5
        assert config.targets == {}


class TestFromFile:
    def test_json_file(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({
            "source": {"base_url": "https://source.test", "token": "s"},
            "targets": {
                "store-a": {"base_url": "https://a.test", "token": "a", "store_codes": "default,fr"},
            },
            "continue_on_error": False,
        }))

        config = MigrationConfig.from_json_file(str(path))

        assert config.source.media_url == "https://source.test/media/catalog/product"
        assert config.targets["store-a"].store_codes == ["default", "fr"]
        assert config.continue_on_error is False
        assert config.validate() == []

    def test_to_dict_omits_tokens(self):
        config = MigrationConfig(
            source=SourceConfig(base_url="https://source.test", token="s"),
            targets={"a": TargetInstanceConfig(name="a", base_url="https://a.test", token="secret")},
        )
        assert "secret" not in json.dumps(config.to_dict())


class TestValidate:
    def test_problems_reported(self):
        config = MigrationConfig(
            targets={"a": TargetInstanceConfig(name="a")},
            max_concurrency=0,
        )
        problems = config.validate()
        assert "Source base URL is not configured" in problems
        assert "Target instance 'a' has no base URL" in problems
        assert "Target instance 'a' has no access token" in problems
        assert "max_concurrency must be at least 1" in problems


class TestOptions:
    def test_defaults_from_config(self):
        config = MigrationConfig(
            targets={"a": TargetInstanceConfig(name="a"), "b": TargetInstanceConfig(name="b")},
            include_images=True,
        )
        options = MigrationOptions.from_config(config)
        assert options.target_instances == ["a", "b"]
        assert options.include_images is True
        assert options.continue_on_error is None

    def test_none_overrides_are_ignored(self):
        config = MigrationConfig(targets={"a": TargetInstanceConfig(name="a")})
        options = MigrationOptions.from_config(config, target_instances=None, product_enabled=False)
        assert options.target_instances == ["a"]
        assert options.product_enabled is False

    def test_media_url_override(self):
        source = SourceConfig(base_url="https://source.test", media_base_url="https://cdn.test/media/")
        assert source.media_url == "https://cdn.test/media"
