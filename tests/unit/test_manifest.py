"""Tests for manifest generation and targeted key updates."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from cf_provisioner.core.manifest import (
    DATABASE_ID_PLACEHOLDER,
    ConfigWriter,
    render_manifest,
    upsert_key,
    write_manifest,
)
from cf_provisioner.engine.errors import ManifestError

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    from cf_provisioner.config.schema import Config

_MANIFEST = """\
# Hand-edited comment stays put
name = "demo"
compatibility_date = "2024-01-01"

[[d1_databases]]
binding = "DB"
database_name = "demo"
database_id = "PLACEHOLDER_DATABASE_ID"
preview_database_id = "keep-me"

[[r2_buckets]]
binding = "R2"
bucket_name   =   "old-bucket"
preview_bucket_name = "old-bucket"
"""


@pytest.fixture
def manifest(tmp_path: Path) -> Path:
    path = tmp_path / "wrangler.toml"
    path.write_text(_MANIFEST)
    return path


class TestUpsertKey:
    def test_replaces_only_the_key(self, manifest: Path) -> None:
        changed = upsert_key(manifest, "database_id", "f0e1d2c3-0000-4000-8000-000000000001")

        text = manifest.read_text()
        assert changed is True
        assert 'database_id = "f0e1d2c3-0000-4000-8000-000000000001"' in text
        assert 'preview_database_id = "keep-me"' in text
        assert "# Hand-edited comment stays put" in text

    def test_idempotent(self, manifest: Path) -> None:
        upsert_key(manifest, "bucket_name", "demo-uploads")
        first = manifest.read_bytes()

        changed = upsert_key(manifest, "bucket_name", "demo-uploads")

        assert changed is False
        assert manifest.read_bytes() == first

    def test_preserves_unrelated_bytes(self, manifest: Path) -> None:
        upsert_key(manifest, "bucket_name", "demo-uploads")

        expected = _MANIFEST.replace('bucket_name   =   "old-bucket"', 'bucket_name = "demo-uploads"')
        assert manifest.read_text() == expected

    def test_missing_key_is_not_an_error(self, manifest: Path) -> None:
        before = manifest.read_bytes()

        assert upsert_key(manifest, "account_id", "acc-1") is False
        assert manifest.read_bytes() == before

    def test_missing_manifest(self, tmp_path: Path) -> None:
        with pytest.raises(ManifestError):
            upsert_key(tmp_path / "absent.toml", "database_id", "x")

    def test_rejects_quote(self, manifest: Path) -> None:
        with pytest.raises(ManifestError):
            upsert_key(manifest, "bucket_name", 'evil"value')

    def test_read_key(self, manifest: Path) -> None:
        writer = ConfigWriter(manifest)

        assert writer.read_key("database_id") == DATABASE_ID_PLACEHOLDER
        assert writer.read_key("nope") is None


_CONFIG_YAML = """\
provider:
  email: ops@example.com
project:
  name: shop
  output_dir: public
features:
  database: true
  storage: true
vars:
  ENVIRONMENT: production
"""


class TestRenderManifest:
    def test_sections(self, make_config: Callable[..., Config]) -> None:
        cfg = make_config(_CONFIG_YAML)

        text = render_manifest(cfg, today="2025-01-15")

        assert text.startswith('name = "shop"\ncompatibility_date = "2025-01-15"\n')
        assert 'pages_build_output_dir = "public"' in text
        assert "[[d1_databases]]" in text
        assert f'database_id = "{DATABASE_ID_PLACEHOLDER}"' in text
        assert 'bucket_name = "shop-uploads"' in text
        assert 'preview_bucket_name = "shop-uploads"' in text
        assert '[vars]\nENVIRONMENT = "production"' in text

    def test_disabled_features_omitted(self, make_config: Callable[..., Config]) -> None:
        cfg = make_config("provider: {}\nproject:\n  name: shop\n")

        text = render_manifest(cfg)

        assert "[[d1_databases]]" not in text
        assert "[[r2_buckets]]" not in text
        assert "[vars]" not in text

    def test_write_does_not_overwrite(
        self, make_config: Callable[..., Config], tmp_path: Path
    ) -> None:
        cfg = make_config(_CONFIG_YAML)
        (tmp_path / "wrangler.toml").write_text("# mine\n")

        with pytest.raises(ManifestError, match="--force"):
            write_manifest(cfg)
        assert (tmp_path / "wrangler.toml").read_text() == "# mine\n"

        write_manifest(cfg, force=True)
        assert 'name = "shop"' in (tmp_path / "wrangler.toml").read_text()
