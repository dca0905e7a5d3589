"""Tests for category mapping, notifications and media transcoding."""

import io
import json
from unittest.mock import MagicMock

import pytest
import requests
from PIL import Image

from catalog_migration.errors import RemoteAPIError
from catalog_migration.models.product import MediaEntry
from catalog_migration.models.result import InstanceMode, InstanceResult, InstanceState, MigrationResult
from catalog_migration.services.category_mapping import CategoryNameMapping
from catalog_migration.services.media import HttpMediaTranscoder, MediaMigrator
from catalog_migration.services.notifications import WebhookNotifier

from conftest import FakeTranscoder


# ---------------------------------------------------------------------------
# Category mapping
# ---------------------------------------------------------------------------


class TestCategoryNameMapping:
    @pytest.fixture()
    def mapping(self):
        return CategoryNameMapping([
            {"source": "Shoes", "target": "Footwear", "shopify": "Footwear & Shoes"},
            {"source": "Sneakers", "target": "footwear"},
            {"target": "ignored"},
        ])

    def test_maps_case_insensitively(self, mapping):
        assert mapping.map_name("SHOES") == "Footwear"
        assert len(mapping) == 2

    def test_platform_override(self, mapping):
        assert mapping.map_name("Shoes", "shopify") == "Footwear & Shoes"
        assert mapping.map_name("Shoes", "magento") == "Footwear"

    def test_unmapped_passes_through(self, mapping):
        assert mapping.map_name("Hats") == "Hats"

    def test_map_names_deduplicates(self, mapping):
        assert mapping.map_names(["Shoes", "Sneakers", "Hats"]) == ["Footwear", "Hats"]

    def test_from_file(self, tmp_path):
        path = tmp_path / "categories.json"
        path.write_text(json.dumps({"mappings": [{"source": "Shoes", "target": "Footwear"}]}))
        assert CategoryNameMapping.from_file(str(path)).map_name("shoes") == "Footwear"

    def test_missing_file_is_empty(self, tmp_path):
        assert len(CategoryNameMapping.from_file(str(tmp_path / "missing.json"))) == 0

    def test_unreadable_file_is_empty(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json")
        assert len(CategoryNameMapping.from_file(str(path))) == 0


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------


def finished_result(success=True):
    result = MigrationResult(source_code="P-100")
    instance = InstanceResult(instance="store-a", mode=InstanceMode.FULL_CREATION, state=InstanceState.COMPLETED)
    if not success:
        instance.state = InstanceState.FAILED
        instance.add_error({"error": "Parent P-100 could not be created"})
    result.instance_results["store-a"] = instance
    result.completed_at = result.started_at
    return result


class TestWebhookNotifier:
    def test_start_card(self):
        session = MagicMock(spec=requests.Session)
        notifier = WebhookNotifier("https://chat.test/hook", session=session)

        notifier.notify_start("P-100", ["P-100-RED"], ["store-a"])

        card = session.post.call_args[1]["json"]["cardsV2"][0]
        assert card["cardId"] == "migration-start"
        texts = [w["decoratedText"]["text"] for w in card["card"]["sections"][0]["widgets"]]
        assert "<b>Child SKUs (1):</b> P-100-RED" in texts

    def test_end_card_reports_last_error(self):
        session = MagicMock(spec=requests.Session)
        notifier = WebhookNotifier("https://chat.test/hook", session=session)

        notifier.notify_end(finished_result(success=False))

        card = session.post.call_args[1]["json"]["cardsV2"][0]
        assert card["card"]["sections"][0]["header"] == "Migration Failed"
        texts = [w["decoratedText"]["text"] for w in card["card"]["sections"][0]["widgets"]]
        assert "<b>Error:</b> Parent P-100 could not be created" in texts

    def test_delivery_failure_is_swallowed(self):
        session = MagicMock(spec=requests.Session)
        session.post.side_effect = requests.exceptions.ConnectionError("refused")
        notifier = WebhookNotifier("https://chat.test/hook", session=session)

        notifier.notify_end(finished_result())


# ---------------------------------------------------------------------------
# Media
# ---------------------------------------------------------------------------


def png_bytes(size=(64, 32)):
    output = io.BytesIO()
    Image.new("RGBA", size, (255, 0, 0, 128)).save(output, format="PNG")
    return output.getvalue()


class TestHttpMediaTranscoder:
    def test_reencodes_to_jpeg(self):
        transcoder = HttpMediaTranscoder(session=MagicMock())
        content = transcoder.reencode(png_bytes())

        image = Image.open(io.BytesIO(content))
        assert image.format == "JPEG"
        assert image.mode == "RGB"
        assert image.size == (64, 32)

    def test_oversized_image_is_downscaled(self):
        transcoder = HttpMediaTranscoder(max_image_size_mb=0.0001, session=MagicMock())
        content = transcoder.reencode(png_bytes((3000, 1500)))

        assert Image.open(io.BytesIO(content)).size == (2048, 1024)

    def test_fetch_failure_raises(self):
        session = MagicMock(spec=requests.Session)
        session.get.side_effect = requests.exceptions.Timeout("slow")
        transcoder = HttpMediaTranscoder(session=session)

        with pytest.raises(RemoteAPIError):
            transcoder.fetch("https://source.test/a.jpg")


class TestMediaMigrator:
    def test_upload_with_content(self):
        transcoder = FakeTranscoder()
        migrator = MediaMigrator(transcoder, "https://source.test/media/catalog/product/")
        entry = MediaEntry(file="/a/b/shirt.png", label="Front", position=1, types=("image",))

        upload = migrator.build_upload(entry, with_content=True)

        assert upload.url == "https://source.test/media/catalog/product/a/b/shirt.png"
        assert upload.file_name == "shirt.jpg"
        assert upload.content == b"jpeg:raw-image"
        assert upload.types == ["image"]

    def test_upload_without_content(self):
        transcoder = FakeTranscoder()
        upload = MediaMigrator(transcoder, "https://cdn.test").build_upload(MediaEntry(file="x.jpg"), False)
        assert upload.content is None
        assert transcoder.fetched == []
