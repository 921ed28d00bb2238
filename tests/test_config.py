"""
Tests for Configuration Module

Tests for doccanvas/config.py and the reader/writer lock in doccanvas/utils.py.
"""

import json
import os
import threading

import pytest
import yaml

from doccanvas.config import (
    AppConfig,
    ConfigService,
    GoogleConfig,
    ImageGenConfig,
    OpenAIConfig,
    OpenRouterConfig,
    XAIConfig,
)
from doccanvas.errors import ConfigError
from doccanvas.utils import ReadWriteLock


class TestImageGenConfig:
    """Tests for the provider tagged union."""

    def test_active_variant_returned(self):
        cfg = ImageGenConfig(provider="google", google=GoogleConfig(model="m", api_key="k"))
        assert cfg.provider_config() is cfg.google

    def test_missing_variant(self):
        cfg = ImageGenConfig(provider="xai", openai=OpenAIConfig())
        with pytest.raises(ConfigError, match="xai config is not set"):
            cfg.provider_config()

    def test_unknown_provider(self):
        cfg = ImageGenConfig(provider="midjourney")
        with pytest.raises(ConfigError, match="unknown provider: midjourney"):
            cfg.provider_config()

    def test_from_canvas_json_layout(self):
        """camelCase keys written by the canvas front end are accepted."""
        raw = {
            "provider": "openai",
            "downloadPath": "/data/images",
            "openai": {"baseURL": "http://localhost:8080/v1", "model": "gpt-image-1", "apiKey": ""},
            "xai": {"model": "grok-imagine-image", "apiKey": "xk"},
        }
        cfg = ImageGenConfig.from_dict(raw)

        assert cfg.download_path == "/data/images"
        assert cfg.openai.base_url == "http://localhost:8080/v1"
        assert cfg.openai.api_key == ""
        assert cfg.xai.api_key == "xk"
        assert cfg.openrouter is None
        assert cfg.google is None

    def test_legacy_flat_fields_migrated(self):
        raw = {
            "provider": "openrouter",
            "baseURL": "https://openrouter.ai/api/v1",
            "model": "some/model",
            "apiKey": "or-key",
        }
        cfg = ImageGenConfig.from_dict(raw)

        assert cfg.provider_config() == OpenRouterConfig(
            base_url="https://openrouter.ai/api/v1", model="some/model", api_key="or-key"
        )
        assert "base_url" not in cfg.to_dict()

    def test_legacy_google_ignores_foreign_base_url(self):
        """A leftover OpenRouter baseURL must not redirect Gemini requests."""
        raw = {
            "provider": "google",
            "baseURL": "https://openrouter.ai/api/v1",
            "model": "gemini-2.0-flash-exp",
            "apiKey": "g-key",
        }
        cfg = ImageGenConfig.from_dict(raw)

        assert cfg.google.base_url == "https://generativelanguage.googleapis.com/v1beta"
        assert cfg.google.model == "gemini-2.0-flash-exp"
        assert cfg.google.api_key == "g-key"

    def test_legacy_xai_ignores_foreign_base_url(self):
        cfg = ImageGenConfig.from_dict(
            {"provider": "xai", "baseURL": "https://openrouter.ai/api/v1", "model": "grok-2-image"}
        )
        assert cfg.xai.base_url == "https://api.x.ai/v1"
        assert cfg.xai.model == "grok-2-image"

    @pytest.mark.parametrize("section", [[1, 2], "openai", 42])
    def test_non_mapping_section(self, section):
        with pytest.raises(ConfigError, match="image_gen must be a mapping"):
            AppConfig.from_dict({"image_gen": section})

    def test_non_mapping_provider_section(self):
        with pytest.raises(ConfigError, match="openai must be a mapping"):
            ImageGenConfig.from_dict({"provider": "openai", "openai": ["gpt-image-1"]})

    def test_unknown_sub_config_keys_ignored(self):
        cfg = ImageGenConfig.from_dict({"provider": "xai", "xai": {"model": "m", "env_vars": ["X"], "extra": 1}})
        assert cfg.xai == XAIConfig(model="m")


class TestEffectiveAPIKey:
    """Tests for the request-time environment key fallback."""

    def test_explicit_key_wins(self, monkeypatch):
        monkeypatch.setenv("XAI_API_KEY", "from-env")
        assert XAIConfig(api_key="explicit").effective_api_key() == "explicit"

    def test_env_used_for_default_host(self, monkeypatch):
        monkeypatch.setenv("XAI_API_KEY", "from-env")
        cfg = XAIConfig()
        assert cfg.effective_api_key() == "from-env"
        assert cfg.api_key == ""

    def test_google_env_names(self, monkeypatch):
        monkeypatch.setenv("GOOGLE_API_KEY", "g-env")
        assert GoogleConfig().effective_api_key() == "g-env"
        monkeypatch.setenv("GEMINI_API_KEY", "gemini-env")
        assert GoogleConfig().effective_api_key() == "gemini-env"

    def test_env_not_used_for_other_hosts(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-real-secret")
        cfg = OpenAIConfig(base_url="http://localhost:8080/v1", api_key="")
        assert cfg.effective_api_key() == ""

    def test_env_key_never_saved(self, tmp_path, app_dir, monkeypatch):
        monkeypatch.setenv("OPENROUTER_API_KEY", "sk-or-secret")
        monkeypatch.setenv("OPENAI_API_KEY", "sk-real-secret")
        path = tmp_path / "config.yaml"

        service = ConfigService(path=str(path), exec_dir=str(app_dir))
        service.save(service.get_config())

        text = path.read_text(encoding="utf-8")
        assert "sk-or-secret" not in text
        assert "sk-real-secret" not in text
        assert "from env" in service.get_config().summary()


class TestAppConfig:
    """Tests for AppConfig serialization."""

    def test_default_has_all_variants(self):
        cfg = AppConfig.default()
        assert cfg.image_gen.provider == "openrouter"
        assert cfg.image_gen.download_path == "Image/"
        assert cfg.image_gen.openai.model == "gpt-image-1.5"
        assert cfg.image_gen.google.model == "gemini-2.5-flash-image"
        assert cfg.image_gen.xai.model == "grok-imagine-image"

    def test_yaml_round_trip_keeps_other_sections(self, tmp_path):
        cfg = AppConfig.default()
        cfg.extra["llm"] = {"model": "gpt-4o-mini"}
        cfg.image_gen.provider = "google"
        path = str(tmp_path / "c.yaml")

        cfg.to_yaml(path)
        loaded = AppConfig.from_yaml(path)

        assert loaded.image_gen == cfg.image_gen
        assert loaded.extra == {"llm": {"model": "gpt-4o-mini"}}

    def test_loads_json_file(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(
            json.dumps({"imageGen": {"provider": "xai", "xai": {"model": "grok-2-image"}}}),
            encoding="utf-8",
        )
        cfg = AppConfig.from_yaml(str(path))
        assert cfg.image_gen.provider_config().model == "grok-2-image"

    def test_summary_masks_keys(self):
        cfg = AppConfig.default()
        cfg.image_gen.openai.api_key = "sk-secret"
        summary = cfg.summary()
        assert "sk-secret" not in summary
        assert "key set" in summary


class TestConfigService:
    """Tests for loading, saving and snapshot isolation."""

    def test_creates_default_file(self, tmp_path, app_dir):
        path = tmp_path / "cfg" / "config.yaml"
        ConfigService(path=str(path), exec_dir=str(app_dir))

        assert path.exists()
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
        assert raw["image_gen"]["provider"] == "openrouter"

    def test_get_config_returns_copy(self, config_service):
        cfg = config_service.get_config()
        cfg.image_gen.provider = "xai"
        assert config_service.get_config().image_gen.provider == "openrouter"

    def test_save_persists_and_swaps(self, config_service):
        cfg = config_service.get_config()
        cfg.image_gen.provider = "google"
        config_service.save(cfg)

        assert config_service.get_config().image_gen.provider == "google"
        reopened = ConfigService(path=config_service.path, exec_dir=config_service.exec_dir)
        assert reopened.get_config().image_gen.provider == "google"

    def test_unreadable_file_keeps_defaults(self, tmp_path, app_dir, capsys):
        path = tmp_path / "config.yaml"
        path.write_text("image_gen: [unclosed", encoding="utf-8")

        service = ConfigService(path=str(path), exec_dir=str(app_dir))

        assert service.get_config().image_gen.provider == "openrouter"
        assert "failed to load config" in capsys.readouterr().out

    def test_non_mapping_section_keeps_defaults(self, tmp_path, app_dir, capsys):
        path = tmp_path / "config.yaml"
        path.write_text("image_gen: [1, 2]\n", encoding="utf-8")

        service = ConfigService(path=str(path), exec_dir=str(app_dir))

        assert service.get_config() == AppConfig.default()
        assert "image_gen must be a mapping" in capsys.readouterr().out

    def test_relative_download_root(self, config_service, app_dir):
        assert config_service.resolve_download_root() == os.path.join(str(app_dir), "Image/")

    def test_absolute_download_root(self, config_service, tmp_path):
        cfg = config_service.get_config()
        cfg.image_gen.download_path = str(tmp_path / "assets")
        config_service.save(cfg)
        assert config_service.resolve_download_root() == str(tmp_path / "assets")

    def test_env_config_path(self, tmp_path, app_dir, monkeypatch):
        path = tmp_path / "env.yaml"
        monkeypatch.setenv("DOCCANVAS_CONFIG", str(path))
        service = ConfigService(exec_dir=str(app_dir))
        assert service.path == str(path)
        assert path.exists()


class TestReadWriteLock:
    """Tests for the reader/writer lock guarding the config snapshot."""

    def test_readers_share(self):
        lock = ReadWriteLock()
        lock.acquire_read()
        entered = threading.Event()

        def reader():
            with lock.read_locked():
                entered.set()

        t = threading.Thread(target=reader)
        t.start()
        assert entered.wait(2)
        t.join()
        lock.release_read()

    def test_writer_waits_for_readers(self):
        lock = ReadWriteLock()
        lock.acquire_read()
        acquired = threading.Event()

        def writer():
            with lock.write_locked():
                acquired.set()

        t = threading.Thread(target=writer)
        t.start()
        assert not acquired.wait(0.1)
        lock.release_read()
        assert acquired.wait(2)
        t.join()

    def test_reader_waits_for_writer(self):
        lock = ReadWriteLock()
        lock.acquire_write()
        entered = threading.Event()

        def reader():
            with lock.read_locked():
                entered.set()

        t = threading.Thread(target=reader)
        t.start()
        assert not entered.wait(0.1)
        lock.release_write()
        assert entered.wait(2)
        t.join()
