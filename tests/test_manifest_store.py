"""Tests for manifest publishing, loading, and sharing.

Covers:
- publish() filters records without a remote URL and is order independent
- Duplicate identities resolve to the most recently updated record
- load() validation and retention of the previous manifest on rejection
- Persistence round trip via read()
- share() / fetch() through a blob transport
"""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone

import pytest

from cutsheet_sync.errors import InvalidManifestError
from cutsheet_sync.sync.manifest import ManifestStore, build_manifest
from cutsheet_sync.sync.models import EPOCH, LocalRecord

T0 = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _record(
    manufacturer: str = "ABB",
    part_number: str = "ACH550-01",
    remote_url: str | None = "https://x/1",
    content_hash: str = "h1",
    local_path: str = "/cache/abb.pdf",
    minutes: int = 0,
) -> LocalRecord:
    return LocalRecord(
        manufacturer=manufacturer,
        part_number=part_number,
        local_path=local_path,
        remote_url=remote_url,
        content_hash=content_hash,
        byte_size=10,
        last_updated=T0 + timedelta(minutes=minutes),
        file_name=local_path.rsplit("/", 1)[-1],
    )


def _document(**files: dict) -> dict:
    return {
        "metadata": {"generated_at": "2026-03-01T12:00:00+00:00", "version": "1.0"},
        "files": files,
    }


# ---------------------------------------------------------------------------
# publish
# ---------------------------------------------------------------------------


class TestPublish:
    def test_skips_records_without_url(self, manifests):
        manifest = manifests.publish(
            [
                _record(),
                _record(
                    manufacturer="Siemens",
                    part_number="3RT2015",
                    remote_url=None,
                    local_path="/cache/siemens.pdf",
                ),
            ]
        )

        assert list(manifest.files) == ["abb-ach550-01"]
        entry = manifest.files["abb-ach550-01"]
        assert entry.remote_url == "https://x/1"
        assert entry.content_hash == "h1"

    def test_order_independent(self):
        records = [
            _record(minutes=1),
            _record(
                manufacturer="Siemens",
                part_number="3RT2015",
                remote_url="https://x/2",
                content_hash="h2",
                local_path="/cache/siemens.pdf",
                minutes=5,
            ),
            _record(
                manufacturer="Eaton",
                part_number="DILM9",
                remote_url="https://x/3",
                content_hash="h3",
                local_path="/cache/eaton.pdf",
                minutes=3,
            ),
        ]

        forward = build_manifest(records)
        backward = build_manifest(list(reversed(records)))

        assert forward == backward
        assert forward.to_document() == backward.to_document()

    def test_latest_duplicate_wins_regardless_of_order(self):
        older = _record(content_hash="old", local_path="/cache/a.pdf", minutes=1)
        newer = _record(
            part_number="ach550 01",
            content_hash="new",
            remote_url="https://x/new",
            local_path="/cache/b.pdf",
            minutes=2,
        )

        for records in ([older, newer], [newer, older]):
            manifest = build_manifest(records)
            assert len(manifest) == 1
            assert manifest.files["abb-ach550-01"].content_hash == "new"

    def test_generated_at_is_newest_entry(self):
        manifest = build_manifest(
            [_record(minutes=1), _record(local_path="/cache/b.pdf", minutes=7)]
        )
        assert manifest.generated_at == T0 + timedelta(minutes=7)

    def test_empty_publish(self, manifests):
        manifest = manifests.publish([])
        assert len(manifest) == 0
        assert manifest.generated_at == EPOCH
        assert manifests.path.exists()

    def test_persists_document(self, manifests):
        manifests.publish([_record()])

        data = json.loads(manifests.path.read_text(encoding="utf-8"))

        assert manifests.path.name == "manifest-test.json"
        assert data["metadata"]["version"] == "1.0"
        entry = data["files"]["abb-ach550-01"]
        assert entry["version_hash"] == "h1"
        assert entry["file_size"] == 10
        assert entry["remote_url"] == "https://x/1"
        assert entry["manufacturer"] == "ABB"
        assert entry["part_number"] == "ACH550-01"

    def test_replaces_wholesale(self, manifests):
        manifests.publish([_record()])
        manifest = manifests.publish(
            [
                _record(
                    manufacturer="Siemens",
                    part_number="3RT2015",
                    local_path="/cache/siemens.pdf",
                )
            ]
        )
        assert list(manifest.files) == ["siemens-3rt2015"]


# ---------------------------------------------------------------------------
# load / read
# ---------------------------------------------------------------------------


class TestLoad:
    def test_accepts_valid_document(self, manifests):
        doc = _document(
            **{
                "abb-ach550-01": {
                    "manufacturer": "ABB",
                    "part_number": "ACH550-01",
                    "remote_url": "https://x/1",
                    "version_hash": "h1",
                    "file_size": 10,
                    "last_updated": "2026-03-01T12:00:00Z",
                }
            }
        )

        manifest = manifests.load(doc)

        assert manifests.current == manifest
        assert manifest.files["abb-ach550-01"].last_updated == T0

    def test_accepts_json_text_and_legacy_fields(self, manifests):
        doc = _document(
            **{
                "abb-ach550-01": {
                    "manufacturer": "ABB",
                    "remote_url": "https://x/1",
                    "content_hash": "h1",
                }
            }
        )

        manifest = manifests.load(json.dumps(doc))

        entry = manifest.files["abb-ach550-01"]
        assert entry.part_number == "ach550-01"
        assert entry.content_hash == "h1"
        assert entry.last_updated == EPOCH

    def test_rejects_missing_remote_url_and_keeps_previous(self, manifests):
        previous = manifests.publish([_record()])
        doc = _document(
            **{"siemens-3rt2015": {"manufacturer": "Siemens", "version_hash": "h2"}}
        )

        with pytest.raises(InvalidManifestError, match="remote_url"):
            manifests.load(doc)

        assert manifests.current == previous

    def test_rejects_missing_hash(self, manifests):
        doc = _document(
            **{"abb-ach550-01": {"manufacturer": "ABB", "remote_url": "https://x/1"}}
        )
        with pytest.raises(InvalidManifestError, match="hash"):
            manifests.load(doc)
        assert len(manifests.current) == 0

    @pytest.mark.parametrize(
        "source",
        [
            "{not json",
            b"[]",
            json.dumps({"metadata": {}}),
            json.dumps({"metadata": "x", "files": {}}),
            json.dumps({"files": {"k": "not an object"}}),
        ],
    )
    def test_rejects_malformed(self, manifests, source):
        with pytest.raises(InvalidManifestError):
            manifests.load(source)

    def test_read_round_trip(self, manifests, tmp_path):
        published = manifests.publish([_record()])

        reopened = ManifestStore(manifests.path.parent, project_id="test")

        assert reopened.read() == published

    def test_read_missing_file_is_empty(self, manifests):
        assert len(manifests.read()) == 0

    def test_read_ignores_invalid_file(self, manifests):
        manifests.path.parent.mkdir(parents=True)
        manifests.path.write_text("{}", encoding="utf-8")

        assert len(manifests.read()) == 0


# ---------------------------------------------------------------------------
# share / fetch
# ---------------------------------------------------------------------------


class TestShare:
    def test_share_empty_manifest_rejected(self, manifests, transport):
        with pytest.raises(InvalidManifestError):
            manifests.share(transport)
        assert transport.uploads == []

    def test_share_then_fetch(self, manifests, transport, tmp_path):
        published = manifests.publish([_record()])

        url = manifests.share(transport)

        assert transport.uploads == [("manifest-test.json", "application/json")]
        other = ManifestStore(tmp_path / "elsewhere", project_id="other")
        fetched = other.fetch(url, transport)
        assert fetched == published
