"""Tests for the JSON cache codec."""

from __future__ import annotations

import os

import orjson
import pytest

from cachevault.core.expiration import NEVER_EXPIRE, ExpirationRecord
from cachevault.services.codec import JsonCacheCodec, PersistedRecord
from cachevault.shared.errors import DomainError, ErrorCode, InfrastructureError


@pytest.fixture
def codec():
    return JsonCacheCodec()


@pytest.fixture
def cache_file(temp_dir):
    return temp_dir / "cache.json"


class TestPersistedRecord:
    """Test the on-disk record model."""

    def test_serializes_with_wire_names(self):
        record = PersistedRecord(key="k", value=1, inserted_at=10, ttl=5)

        assert record.to_json_dict() == {"key": "k", "value": 1, "insertAt": 10, "exp": 5}

    def test_validates_wire_names(self):
        record = PersistedRecord.model_validate(
            {"key": "k", "value": [1, 2], "insertAt": 10, "exp": -1},
        )

        assert record.inserted_at == 10
        assert record.ttl == NEVER_EXPIRE
        assert record.value == [1, 2]

    def test_accepts_legacy_insert_field(self):
        record = PersistedRecord.model_validate({"key": "k", "value": "v", "insert": 99, "exp": 5})

        assert record.inserted_at == 99

    def test_rejects_empty_key(self):
        with pytest.raises(ValueError):
            PersistedRecord(key="", value=1, inserted_at=0)

    def test_rejects_invalid_ttl(self):
        with pytest.raises(ValueError):
            PersistedRecord(key="k", value=1, inserted_at=0, ttl=-7)

    def test_from_entry_and_expiration(self):
        expiration = ExpirationRecord(inserted_at=123, ttl=456)

        record = PersistedRecord.from_entry("k", {"a": 1}, expiration)

        assert record.expiration == expiration
        assert record.value == {"a": 1}


class TestJsonCacheCodecRead:
    """Test reading cache files."""

    def test_missing_file_reads_empty(self, codec, cache_file):
        assert codec.read(cache_file) == []

    def test_empty_file_reads_empty(self, codec, cache_file):
        cache_file.write_bytes(b"")

        assert codec.read(cache_file) == []

    def test_reads_records_in_order(self, codec, cache_file):
        cache_file.write_bytes(
            orjson.dumps(
                [
                    {"key": "b", "value": True, "insertAt": 1, "exp": -1},
                    {"key": "a", "value": {"n": 1.5}, "insertAt": 2, "exp": 100},
                ],
            ),
        )

        records = codec.read(cache_file)

        assert [r.key for r in records] == ["b", "a"]
        assert records[1].value == {"n": 1.5}

    def test_malformed_json_is_corrupted(self, codec, cache_file, temp_dir):
        cache_file.write_bytes(b"[{not json")

        with pytest.raises(DomainError) as exc_info:
            codec.read(cache_file)

        assert exc_info.value.code == ErrorCode.CACHE_CORRUPTED
        assert not cache_file.exists()
        backups = list(temp_dir.glob("cache.corrupted.*.json"))
        assert len(backups) == 1
        assert backups[0].read_bytes() == b"[{not json"

    def test_non_array_is_corrupted(self, codec, cache_file):
        cache_file.write_bytes(b'{"key": "k"}')

        with pytest.raises(DomainError, match="corrupted"):
            codec.read(cache_file)

    def test_invalid_record_is_corrupted(self, codec, cache_file):
        cache_file.write_bytes(orjson.dumps([{"key": "k", "value": 1}]))

        with pytest.raises(DomainError) as exc_info:
            codec.read(cache_file)

        assert exc_info.value.code == ErrorCode.CACHE_CORRUPTED

    def test_unreadable_file_raises_infrastructure_error(self, codec, cache_file, mocker):
        cache_file.write_bytes(b"[]")
        mocker.patch.object(type(cache_file), "read_bytes", side_effect=PermissionError("denied"))

        with pytest.raises(InfrastructureError) as exc_info:
            codec.read(cache_file)

        assert exc_info.value.code == ErrorCode.CACHE_READ_FAILED


class TestJsonCacheCodecWrite:
    """Test writing cache files."""

    def test_write_then_read(self, codec, cache_file):
        records = [
            PersistedRecord(key="n", value=42, inserted_at=1, ttl=NEVER_EXPIRE),
            PersistedRecord(key="s", value="text", inserted_at=2, ttl=0),
            PersistedRecord(key="o", value={"nested": [1, "x", None]}, inserted_at=3, ttl=9),
        ]

        assert codec.write(cache_file, records) == 3

        assert codec.read(cache_file) == records

    def test_write_replaces_contents(self, codec, cache_file):
        codec.write(cache_file, [PersistedRecord(key="old", value=1, inserted_at=1)])
        codec.write(cache_file, [PersistedRecord(key="new", value=2, inserted_at=2)])

        assert [r.key for r in codec.read(cache_file)] == ["new"]

    def test_file_format(self, codec, cache_file):
        codec.write(cache_file, [PersistedRecord(key="k", value="v", inserted_at=5, ttl=-1)])

        assert orjson.loads(cache_file.read_bytes()) == [
            {"key": "k", "value": "v", "insertAt": 5, "exp": -1},
        ]

    def test_atomic_write_leaves_no_temp_files(self, codec, cache_file, temp_dir):
        codec.write(cache_file, [PersistedRecord(key="k", value=1, inserted_at=1)])

        assert [p.name for p in temp_dir.iterdir()] == ["cache.json"]

    def test_non_atomic_write(self, cache_file):
        codec = JsonCacheCodec(atomic_writes=False, pretty=True)

        codec.write(cache_file, [PersistedRecord(key="k", value=1, inserted_at=1)])

        assert b"\n" in cache_file.read_bytes()
        assert codec.read(cache_file)[0].key == "k"

    def test_unserializable_value(self, codec, cache_file):
        with pytest.raises(DomainError) as exc_info:
            codec.write(cache_file, [PersistedRecord(key="k", value={1, 2}, inserted_at=1)])

        assert exc_info.value.code == ErrorCode.CACHE_SERIALIZATION_ERROR
        assert not cache_file.exists()

    @pytest.mark.parametrize(
        "value",
        [float("nan"), float("inf"), {"nested": [1.0, float("-inf")]}],
    )
    def test_non_finite_float_rejected(self, codec, cache_file, value):
        with pytest.raises(DomainError) as exc_info:
            codec.write(cache_file, [PersistedRecord(key="f", value=value, inserted_at=1)])

        assert exc_info.value.code == ErrorCode.CACHE_SERIALIZATION_ERROR
        assert exc_info.value.context.additional_data == {"key": "f"}
        assert not cache_file.exists()

    def test_failed_atomic_write_keeps_old_file(self, codec, cache_file, temp_dir, mocker):
        codec.write(cache_file, [PersistedRecord(key="old", value=1, inserted_at=1)])
        mocker.patch("cachevault.services.codec.os.replace", side_effect=OSError("disk full"))

        with pytest.raises(InfrastructureError) as exc_info:
            codec.write(cache_file, [PersistedRecord(key="new", value=2, inserted_at=2)])

        assert exc_info.value.code == ErrorCode.CACHE_WRITE_FAILED
        assert [r.key for r in codec.read(cache_file)] == ["old"]
        assert [p.name for p in temp_dir.iterdir()] == ["cache.json"]


class TestEnsureExists:
    """Test cache file creation."""

    def test_creates_empty_array(self, codec, cache_file):
        assert codec.ensure_exists(cache_file) is True
        assert cache_file.read_bytes() == b"[]"
        assert codec.read(cache_file) == []

    def test_existing_file_untouched(self, codec, cache_file):
        cache_file.write_bytes(b'[{"key": "k", "value": 1, "insertAt": 1, "exp": -1}]')

        assert codec.ensure_exists(cache_file) is False
        assert len(codec.read(cache_file)) == 1


@pytest.mark.skipif(os.name == "nt", reason="POSIX permission bits")
class TestFilePermissions:
    """Test the mode of written cache files."""

    def test_atomic_write_matches_plain_write(self, temp_dir):
        atomic_file = temp_dir / "atomic.json"
        plain_file = temp_dir / "plain.json"
        record = PersistedRecord(key="k", value=1, inserted_at=1)

        JsonCacheCodec(atomic_writes=True).write(atomic_file, [record])
        JsonCacheCodec(atomic_writes=False).write(plain_file, [record])

        assert atomic_file.stat().st_mode & 0o777 == plain_file.stat().st_mode & 0o777

    def test_atomic_write_keeps_existing_mode(self, codec, cache_file):
        codec.write(cache_file, [PersistedRecord(key="old", value=1, inserted_at=1)])
        os.chmod(cache_file, 0o640)

        codec.write(cache_file, [PersistedRecord(key="new", value=2, inserted_at=2)])

        assert cache_file.stat().st_mode & 0o777 == 0o640
