"""Tests for temporary setup credentials."""

import json
from datetime import timedelta
from pathlib import Path

import pytest

from src.survey.services.configuration import FileKeyValueStore, StoreStatus, TemporaryCredentialStore

URL = "https://project.supabase.co"
KEY = "anon-key"
NOW = 1_700_000_000_000


@pytest.fixture
def temp_store(tmp_path: Path) -> TemporaryCredentialStore:
    return TemporaryCredentialStore(FileKeyValueStore(tmp_path), clock=lambda: NOW)


def test_save_defaults_to_fifteen_minutes(tmp_path: Path, temp_store: TemporaryCredentialStore) -> None:
    assert temp_store.save(URL, KEY)

    data = json.loads((tmp_path / ".temp-supabase-config.json").read_text())

    assert data["supabaseUrl"] == URL
    assert data["supabaseKey"] == KEY
    assert data["timestamp"] == NOW
    assert data["expiresAt"] == NOW + 15 * 60 * 1000


def test_read_before_expiry(temp_store: TemporaryCredentialStore) -> None:
    temp_store.save(URL, KEY, expires_at=NOW + 1)

    record = temp_store.read()

    assert record is not None
    assert record.url == URL
    assert record.expires_at == NOW + 1


def test_expired_record_is_deleted(tmp_path: Path, temp_store: TemporaryCredentialStore) -> None:
    temp_store.save(URL, KEY, expires_at=NOW - 1)

    assert temp_store.load().status is StoreStatus.EXPIRED
    assert not (tmp_path / ".temp-supabase-config.json").exists()
    assert temp_store.read() is None


def test_expiry_from_now(temp_store: TemporaryCredentialStore) -> None:
    assert temp_store.expiry_from_now(timedelta(seconds=30)) == NOW + 30_000
    assert temp_store.expiry_from_now() == NOW + 900_000


def test_kept_apart_from_bootstrap_file(tmp_path: Path, temp_store: TemporaryCredentialStore) -> None:
    temp_store.save(URL, KEY)

    assert not (tmp_path / ".supabase-config.json").exists()


def test_remove_is_idempotent(temp_store: TemporaryCredentialStore) -> None:
    temp_store.save(URL, KEY)

    assert temp_store.remove()
    assert temp_store.remove()
    assert temp_store.read() is None
