"""Tests for StoreConfig and the backend factories."""

from pathlib import Path

import pytest

from blobdoc_storage.blobs.github import GitHubBlobStore
from blobdoc_storage.blobs.http import HttpBlobStore
from blobdoc_storage.blobs.local import LocalBlobStore
from blobdoc_storage.config import StoreConfig, create_blob_store, create_orchestrator
from blobdoc_storage.exceptions import AuthenticationError, ValidationError

ENV_VARS = [
    "BLOBDOC_BACKEND",
    "BLOBDOC_TOKEN",
    "BLOBDOC_ENDPOINT",
    "BLOBDOC_GITHUB_OWNER",
    "BLOBDOC_GITHUB_REPO",
    "BLOBDOC_GITHUB_BRANCH",
    "BLOBDOC_LOCAL_ROOT",
    "BLOBDOC_TOMBSTONE_NAMESPACE",
    "BLOBDOC_SINGLETON_PATH",
    "BLOBDOC_PENDING_DELETIONS_PATH",
    "BLOBDOC_REQUEST_TIMEOUT",
    "BLOBDOC_LOCK_TIMEOUT",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestFromEnv:
    """Environment-driven configuration."""

    def test_github_from_env(self, monkeypatch):
        """GitHub settings are read from BLOBDOC_* variables."""
        monkeypatch.setenv("BLOBDOC_TOKEN", "ghp_test")
        monkeypatch.setenv("BLOBDOC_GITHUB_OWNER", "clinic")
        monkeypatch.setenv("BLOBDOC_GITHUB_REPO", "records")
        monkeypatch.setenv("BLOBDOC_GITHUB_BRANCH", "data")
        monkeypatch.setenv("BLOBDOC_REQUEST_TIMEOUT", "5")

        config = StoreConfig.from_env()

        assert config.backend == "github"
        assert config.token == "ghp_test"
        assert (config.owner, config.repo, config.branch) == ("clinic", "records", "data")
        assert config.request_timeout == 5.0
        assert config.tombstone_namespace == "deleted_log"
        assert config.singleton_path == "config/app.json"

    def test_local_needs_no_token(self, monkeypatch, tmp_path):
        """The local backend works without credentials."""
        monkeypatch.setenv("BLOBDOC_BACKEND", "LOCAL")
        monkeypatch.setenv("BLOBDOC_LOCAL_ROOT", str(tmp_path / "data"))
        monkeypatch.setenv("BLOBDOC_LOCK_TIMEOUT", "2.5")
        monkeypatch.setenv("BLOBDOC_TOMBSTONE_NAMESPACE", "trash")

        config = StoreConfig.from_env()

        assert config.backend == "local"
        assert config.local_root == tmp_path / "data"
        assert config.lock_timeout == 2.5
        assert config.tombstone_namespace == "trash"

    def test_missing_token(self, monkeypatch):
        """A remote backend without a token is a credentials problem."""
        monkeypatch.setenv("BLOBDOC_GITHUB_OWNER", "clinic")
        monkeypatch.setenv("BLOBDOC_GITHUB_REPO", "records")

        with pytest.raises(AuthenticationError, match="BLOBDOC_TOKEN"):
            StoreConfig.from_env()

    def test_github_needs_repository(self, monkeypatch):
        """Owner and repo are required for github."""
        monkeypatch.setenv("BLOBDOC_TOKEN", "ghp_test")

        with pytest.raises(AuthenticationError, match="BLOBDOC_GITHUB_REPO"):
            StoreConfig.from_env()

    def test_http_needs_endpoint(self, monkeypatch):
        """The http backend requires an endpoint."""
        monkeypatch.setenv("BLOBDOC_BACKEND", "http")
        monkeypatch.setenv("BLOBDOC_TOKEN", "secret")

        with pytest.raises(AuthenticationError, match="BLOBDOC_ENDPOINT"):
            StoreConfig.from_env()

    def test_unknown_backend(self, monkeypatch):
        """Unknown backends are rejected."""
        monkeypatch.setenv("BLOBDOC_BACKEND", "s3")

        with pytest.raises(ValidationError) as exc_info:
            StoreConfig.from_env()
        assert exc_info.value.details["field"] == "backend"


class TestFactories:
    """Building stores from configuration."""

    def test_local_store(self, tmp_path):
        config = StoreConfig(backend="local", local_root=tmp_path, lock_timeout=1.0)

        store = create_blob_store(config)

        assert isinstance(store, LocalBlobStore)
        assert store.root == tmp_path
        assert store.gate.timeout == 1.0

    def test_http_store(self):
        config = StoreConfig(backend="http", token="t", endpoint="https://blobs.example.com/v1/")

        store = create_blob_store(config)

        assert type(store) is HttpBlobStore
        assert store.endpoint == "https://blobs.example.com/v1"

    def test_github_store(self):
        config = StoreConfig(token="t", owner="clinic", repo="records", branch="data")

        store = create_blob_store(config)

        assert isinstance(store, GitHubBlobStore)
        assert store.endpoint == "https://api.github.com/repos/clinic/records"
        assert store.branch == "data"

    def test_orchestrator_wiring(self, tmp_path):
        """One blob store backs documents and tombstones."""
        config = StoreConfig(
            backend="local",
            local_root=tmp_path,
            tombstone_namespace="trash",
            singleton_path="settings/schema.json",
        )

        sync = create_orchestrator(config)

        assert sync.documents.blobs is sync.ledger.blobs
        assert sync.ledger.namespace == "trash"
        assert sync.documents.singleton_path == "settings/schema.json"

    def test_invalid_config_is_rejected(self):
        with pytest.raises(AuthenticationError):
            create_blob_store(StoreConfig(backend="github"))

    def test_default_paths_are_absolute(self):
        config = StoreConfig()
        assert Path(config.local_root).is_absolute()
        assert Path(config.pending_deletions_path).is_absolute()
