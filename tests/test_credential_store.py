import json
import os
import stat
import sys

import pytest

from drive_oauth.credential_store import CredentialRecord, CredentialStore
from drive_oauth.error_handler import StorageError


class TestLoad:
    def test_missing_file_is_created_empty(self, credential_path):
        store = CredentialStore(credential_path)

        record = store.load()

        assert record == CredentialRecord()
        assert credential_path.exists()
        assert credential_path.read_bytes() == b""

    @pytest.mark.parametrize(
        "content",
        [
            b"",
            b"   \n",
            b"{not json",
            b"\xff\xfe\x00garbage",
            b"[1, 2, 3]",
            b'{"access_token": 42}',
            b'{"expires_at": "tomorrow"}',
            b'{"granted_scopes": "drive"}',
            b'{"access_token": "stale", "refresh_token": "r", "expires_at": NaN}',
            b'{"access_token": "stale", "refresh_token": "r", "expires_at": Infinity}',
            b'{"access_token": "stale", "refresh_token": "r", "expires_at": -Infinity}',
        ],
    )
    def test_unusable_file_yields_empty_record(self, credential_path, content):
        credential_path.parent.mkdir(parents=True)
        credential_path.write_bytes(content)

        assert CredentialStore(credential_path).load() == CredentialRecord()

    def test_missing_fields_take_empty_values(self, credential_path):
        credential_path.parent.mkdir(parents=True)
        credential_path.write_text(json.dumps({"refresh_token": "rt", "access_token": None}))

        record = CredentialStore(credential_path).load()

        assert record.refresh_token == "rt"
        assert record.access_token == ""
        assert record.expires_at == 0.0
        assert record.granted_scopes == []

    def test_unreadable_location_raises_storage_error(self, tmp_path):
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("")

        with pytest.raises(StorageError) as excinfo:
            CredentialStore(blocker / "credentials.json").load()

        assert excinfo.value.path == str(blocker / "credentials.json")


class TestSave:
    def test_round_trip(self, credential_path):
        store = CredentialStore(credential_path)
        record = CredentialRecord(
            access_token="at",
            expires_at=1_700_000_123.5,
            authorization_code="",
            refresh_token="rt",
            granted_scopes=["https://www.googleapis.com/auth/drive"],
        )

        store.save(record)

        assert store.load() == record
        assert json.loads(credential_path.read_text()) == record.to_dict()

    def test_save_overwrites_whole_record(self, credential_path):
        store = CredentialStore(credential_path)
        store.save(CredentialRecord(access_token="old", refresh_token="rt"))
        store.save(CredentialRecord(authorization_code="code"))

        assert store.load() == CredentialRecord(authorization_code="code")

    def test_no_temp_files_left_behind(self, credential_path):
        store = CredentialStore(credential_path)
        store.save(CredentialRecord(access_token="at"))
        store.save(CredentialRecord(access_token="at2"))

        assert [p.name for p in credential_path.parent.iterdir()] == ["credentials.json"]

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX permissions")
    def test_file_is_private(self, credential_path):
        CredentialStore(credential_path).save(CredentialRecord(refresh_token="rt"))

        mode = stat.S_IMODE(os.stat(credential_path).st_mode)
        assert mode == 0o600

    @pytest.mark.parametrize("expires_at", [float("nan"), float("inf")])
    def test_non_finite_expiry_is_never_written(self, credential_path, expires_at):
        store = CredentialStore(credential_path)
        store.save(CredentialRecord(access_token="at", expires_at=100.0))

        with pytest.raises(StorageError):
            store.save(CredentialRecord(access_token="at", expires_at=expires_at))

        assert store.load() == CredentialRecord(access_token="at", expires_at=100.0)

    def test_write_failure_raises_storage_error(self, tmp_path):
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("")

        with pytest.raises(StorageError):
            CredentialStore(blocker / "credentials.json").save(CredentialRecord())


class TestRecord:
    def test_expiry_boundary(self):
        record = CredentialRecord(access_token="at", expires_at=100.0)

        assert record.is_expired(now=100.0)
        assert not record.is_expired(now=99.0)
        assert record.is_expired(now=90.0, buffer_seconds=10)

    def test_empty_token_is_never_valid(self):
        assert not CredentialRecord(expires_at=10_000.0).is_valid(now=0.0)
        assert CredentialRecord(access_token="at", expires_at=10_000.0).is_valid(now=0.0)
