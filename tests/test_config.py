"""Test configuration loading and gateway credentials"""

import pytest

from top_albums.core.config import (
    DEFAULT_GATEWAY_URL,
    DEFAULT_PLAYLIST_NAME,
    GatewayCredentials,
    load_config,
)
from top_albums.core.exceptions import ConfigError


def write_config(temp_dir, content):
    path = temp_dir / "config.yaml"
    path.write_text(content, encoding="utf-8")
    return path


class TestLoadConfig:
    """Test config.yaml parsing and validation"""

    def test_minimal_config_uses_defaults(self, temp_dir):
        path = write_config(temp_dir, 'spotify:\n  client_id: "abc123"\n')

        config = load_config(path)

        assert config.spotify.client_id == "abc123"
        assert config.spotify.market == "US"
        assert config.gateway.url == DEFAULT_GATEWAY_URL
        assert config.gateway.timeout == 10.0
        assert config.playlist.name == DEFAULT_PLAYLIST_NAME
        assert config.playlist.embed_metadata is False
        assert config.storage.directory.is_absolute()
        assert config.storage.database_path.name == "top50.db"

    def test_full_config(self, temp_dir):
        path = write_config(temp_dir, f"""
spotify:
  client_id: "abc123"
  redirect_uri: "http://localhost:9999/cb"
  market: "IT"
gateway:
  url: "https://gateway.example.com/"
  timeout: 3
storage:
  directory: "{temp_dir / 'store'}"
playlist:
  name: "My Top 50"
  description: "Best albums"
  embed_metadata: true
""")

        config = load_config(path)

        assert config.spotify.redirect_uri == "http://localhost:9999/cb"
        assert config.gateway.url == "https://gateway.example.com"
        assert config.gateway.timeout == 3.0
        assert config.storage.directory == (temp_dir / "store").resolve()
        assert config.playlist.name == "My Top 50"
        assert config.playlist.embed_metadata is True

    def test_looks_in_current_directory(self, temp_dir, monkeypatch):
        write_config(temp_dir, 'spotify:\n  client_id: "from-cwd"\n')
        monkeypatch.chdir(temp_dir)

        assert load_config().spotify.client_id == "from-cwd"

    def test_file_not_found(self, temp_dir):
        with pytest.raises(ConfigError) as exc_info:
            load_config(temp_dir / "missing.yaml")

        assert "not found" in exc_info.value.message

    @pytest.mark.parametrize("content,field", [
        ("gateway:\n  url: x\n", "spotify"),
        ("spotify:\n  client_id: ''\n", "spotify.client_id"),
        ("spotify:\n  client_id: abc\ngateway:\n  timeout: -1\n", "gateway.timeout"),
        ("spotify:\n  client_id: abc\ngateway:\n  timeout: true\n", "gateway.timeout"),
        ("spotify:\n  client_id: abc\nplaylist:\n  embed_metadata: 'yes'\n", "playlist.embed_metadata"),
        ("spotify: [1, 2]\n", "spotify"),
    ])
    def test_invalid_values(self, temp_dir, content, field):
        path = write_config(temp_dir, content)

        with pytest.raises(ConfigError) as exc_info:
            load_config(path)

        assert field in exc_info.value.message

    def test_invalid_yaml(self, temp_dir):
        path = write_config(temp_dir, "spotify: [unclosed\n")

        with pytest.raises(ConfigError) as exc_info:
            load_config(path)

        assert "Invalid YAML" in exc_info.value.message

    def test_not_a_mapping(self, temp_dir):
        path = write_config(temp_dir, "- just\n- a list\n")

        with pytest.raises(ConfigError):
            load_config(path)


class TestGatewayCredentials:
    """Test reading server credentials from the environment"""

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("SPOTIFY_CLIENT_ID", "id")
        monkeypatch.setenv("SPOTIFY_CLIENT_SECRET", "secret")
        monkeypatch.setenv("SPOTIFY_REDIRECT_URI", "  ")

        credentials = GatewayCredentials.from_env(load_env_file=False)

        assert credentials.client_id == "id"
        assert credentials.client_secret == "secret"
        assert credentials.redirect_uri is None
        assert credentials.missing("client_id", "redirect_uri") == ["redirect_uri"]

    def test_nothing_set(self, monkeypatch):
        for name in ("SPOTIFY_CLIENT_ID", "SPOTIFY_CLIENT_SECRET", "SPOTIFY_REDIRECT_URI"):
            monkeypatch.delenv(name, raising=False)

        credentials = GatewayCredentials.from_env(load_env_file=False)

        assert credentials.missing("client_id", "client_secret") == ["client_id", "client_secret"]
