"""
Image-generation configuration for doccanvas.

Defines the provider configuration as a tagged union: the
:class:`ImageGenConfig` ``provider`` discriminant selects exactly one of
the four provider sub-configs. The union is validated when a provider is
dispatched (:meth:`ImageGenConfig.provider_config`), not when the file is
loaded, so a config with a missing variant can still be edited and saved.

:class:`ConfigService` owns the shared, mutable in-memory snapshot and
guards it with a reader/writer lock:
    - many concurrent :meth:`ConfigService.get_config` readers
    - exclusive :meth:`ConfigService.save`, which writes the file first
      and swaps the snapshot only once it is persisted
"""

from __future__ import annotations

import copy
import os
from dataclasses import dataclass, field, fields
from typing import Any, ClassVar, Dict, Optional, Tuple, Union
from urllib.parse import urlparse

import yaml

from doccanvas.errors import ConfigError
from doccanvas.utils import ReadWriteLock, ensure_dir, executable_dir

PROVIDERS = ("openrouter", "openai", "google", "xai")

DEFAULT_CONFIG_PATH = os.path.join("~", ".config", "fm-doc-canvas", "config.yaml")

# camelCase spellings written by the canvas front end
_KEY_ALIASES = {
    "baseURL": "base_url",
    "baseUrl": "base_url",
    "apiKey": "api_key",
    "downloadPath": "download_path",
    "imageGen": "image_gen",
    "useEditsEndpoint": "use_edits_endpoint",
}


def _normalize_keys(raw: Optional[Dict[str, Any]], section: str = "config") -> Dict[str, Any]:
    if not raw:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError(f"{section} must be a mapping, got {type(raw).__name__}")
    return {_KEY_ALIASES.get(k, k): v for k, v in raw.items()}


def _env_key(*names: str) -> str:
    for name in names:
        value = os.environ.get(name)
        if value:
            return value
    return ""


# ── Provider variants ────────────────────────────────────────────────────────


class _EnvKeyFallback:
    """Request-time API key lookup for the provider sub-configs.

    An empty ``api_key`` falls back to the provider's environment
    variables only while ``base_url`` points at the provider's own host.
    The fallback is never written back to the dataclass, so it is never
    saved to the config file or sent to a self-hosted endpoint.
    """

    env_vars: ClassVar[Tuple[str, ...]] = ()
    default_base_url: ClassVar[str] = ""

    def effective_api_key(self) -> str:
        if self.api_key:
            return self.api_key
        if urlparse(self.base_url).netloc.lower() != urlparse(self.default_base_url).netloc:
            return ""
        return _env_key(*self.env_vars)


@dataclass
class OpenRouterConfig(_EnvKeyFallback):
    env_vars: ClassVar[Tuple[str, ...]] = ("OPENROUTER_API_KEY",)
    default_base_url: ClassVar[str] = "https://openrouter.ai/api/v1"

    base_url: str = "https://openrouter.ai/api/v1"
    model: str = "sourceful/riverflow-v2-standard-preview"
    api_key: str = ""


@dataclass
class OpenAIConfig(_EnvKeyFallback):
    """OpenAI settings.

    Attributes:
        base_url: API root; other OpenAI-compatible hosts are allowed.
        model: Image model (``gpt-image-1``) or controller/chat model
            (``gpt-4.1``) used with reference images.
        api_key: Bearer token; empty for local hosts.
        use_edits_endpoint: Send reference images to the multipart
            ``/images/edits`` endpoint instead of the Responses API.
    """

    env_vars: ClassVar[Tuple[str, ...]] = ("OPENAI_API_KEY",)
    default_base_url: ClassVar[str] = "https://api.openai.com/v1"

    base_url: str = "https://api.openai.com/v1"
    model: str = "gpt-image-1.5"
    api_key: str = ""
    use_edits_endpoint: bool = False


@dataclass
class GoogleConfig(_EnvKeyFallback):
    env_vars: ClassVar[Tuple[str, ...]] = ("GEMINI_API_KEY", "GOOGLE_API_KEY")
    default_base_url: ClassVar[str] = "https://generativelanguage.googleapis.com/v1beta"

    model: str = "gemini-2.5-flash-image"
    api_key: str = ""
    base_url: str = "https://generativelanguage.googleapis.com/v1beta"


@dataclass
class XAIConfig(_EnvKeyFallback):
    env_vars: ClassVar[Tuple[str, ...]] = ("XAI_API_KEY",)
    default_base_url: ClassVar[str] = "https://api.x.ai/v1"

    model: str = "grok-imagine-image"
    api_key: str = ""
    base_url: str = "https://api.x.ai/v1"


ProviderConfig = Union[OpenRouterConfig, OpenAIConfig, GoogleConfig, XAIConfig]

# Flat fields carried over from the single-provider config layout
_LEGACY_FIELDS = {
    "openrouter": ("base_url", "model", "api_key"),
    "openai": ("base_url", "model", "api_key"),
    "google": ("model", "api_key"),
    "xai": ("model", "api_key"),
}

_VARIANT_TYPES = {
    "openrouter": OpenRouterConfig,
    "openai": OpenAIConfig,
    "google": GoogleConfig,
    "xai": XAIConfig,
}


def _build_variant(name: str, raw: Dict[str, Any]) -> ProviderConfig:
    variant_cls = _VARIANT_TYPES[name]
    allowed = {f.name for f in fields(variant_cls)}
    return variant_cls(**{k: v for k, v in raw.items() if k in allowed})


# ── Image generation config ──────────────────────────────────────────────────


@dataclass
class ImageGenConfig:
    """Tagged union over the four providers plus the download root.

    Attributes:
        provider: Discriminant (``openrouter`` | ``openai`` | ``google`` | ``xai``).
        download_path: Download root; absolute, or relative to the
            executable's directory.
        openrouter / openai / google / xai: Provider sub-configs. Only the
            one named by ``provider`` has to be present.
    """

    provider: str = "openrouter"
    download_path: str = "Image/"
    openrouter: Optional[OpenRouterConfig] = None
    openai: Optional[OpenAIConfig] = None
    google: Optional[GoogleConfig] = None
    xai: Optional[XAIConfig] = None

    def provider_config(self) -> ProviderConfig:
        """Return the active variant.

        Raises:
            ConfigError: If the discriminant is unknown or its sub-config
                is not set.
        """
        name = (self.provider or "").lower()
        if name not in PROVIDERS:
            raise ConfigError(f"unknown provider: {self.provider}")
        variant = getattr(self, name)
        if variant is None:
            raise ConfigError(f"{name} config is not set")
        return variant

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ImageGenConfig":
        """Create from a plain dictionary.

        The flat single-provider layout (``baseURL`` / ``model`` /
        ``apiKey`` next to ``provider``) is migrated into the sub-config
        named by ``provider``. Google and xAI take only ``model`` and
        ``apiKey``; a leftover ``baseURL`` belonged to another provider.
        """
        raw = _normalize_keys(d, "image_gen")
        cfg = cls(
            provider=str(raw.get("provider", "openrouter")).lower(),
            download_path=raw.get("download_path") or "Image/",
        )
        for name in PROVIDERS:
            if raw.get(name) is not None:
                setattr(cfg, name, _build_variant(name, _normalize_keys(raw[name], name)))

        legacy = {k: raw[k] for k in _LEGACY_FIELDS.get(cfg.provider, ()) if raw.get(k)}
        if legacy and cfg.provider in PROVIDERS:
            setattr(cfg, cfg.provider, _build_variant(cfg.provider, legacy))
        return cfg

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "provider": self.provider,
            "download_path": self.download_path,
        }
        for name in PROVIDERS:
            variant = getattr(self, name)
            if variant is not None:
                d[name] = dict(variant.__dict__)
        return d


@dataclass
class AppConfig:
    """Application settings as persisted on disk.

    Attributes:
        image_gen: Provider selection and download root.
        extra: Sections owned by other parts of the canvas application
            (chat LLM settings, summary length...), carried through
            load/save unchanged.
    """

    image_gen: ImageGenConfig = field(default_factory=ImageGenConfig)
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def default(cls) -> "AppConfig":
        return cls(
            image_gen=ImageGenConfig(
                provider="openrouter",
                download_path="Image/",
                openrouter=OpenRouterConfig(),
                openai=OpenAIConfig(),
                google=GoogleConfig(),
                xai=XAIConfig(),
            )
        )

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "AppConfig":
        """Create configuration from a plain dictionary."""
        raw = _normalize_keys(d)
        image_gen = ImageGenConfig.from_dict(raw.pop("image_gen", None) or {})
        return cls(image_gen=image_gen, extra=raw)

    @classmethod
    def from_yaml(cls, path: str) -> "AppConfig":
        """Load configuration from a YAML (or JSON) file.

        Parameters:
            path: Path to the configuration file.

        Returns:
            A fully initialized :class:`AppConfig`.
        """
        with open(path, "r", encoding="utf-8") as fh:
            raw = yaml.safe_load(fh) or {}
        if not isinstance(raw, dict):
            raise ConfigError(f"config file {path} does not contain a mapping")
        return cls.from_dict(raw)

    def to_dict(self) -> Dict[str, Any]:
        d = dict(self.extra)
        d["image_gen"] = self.image_gen.to_dict()
        return d

    def to_yaml(self, path: str) -> None:
        """Serialize the config to a YAML file."""
        with open(path, "w", encoding="utf-8") as fh:
            yaml.dump(self.to_dict(), fh, default_flow_style=False, sort_keys=False)

    def summary(self) -> str:
        """Human-readable summary with API keys masked."""
        ig = self.image_gen
        lines = [
            f"Provider   : {ig.provider}",
            f"Download   : {ig.download_path}",
        ]
        for name in PROVIDERS:
            variant = getattr(ig, name)
            if variant is None:
                lines.append(f"{name:<11}: (not set)")
                continue
            if variant.api_key:
                key_state = "set"
            elif variant.effective_api_key():
                key_state = "from env"
            else:
                key_state = "empty"
            base = getattr(variant, "base_url", "")
            lines.append(f"{name:<11}: {variant.model} @ {base} (key {key_state})")
        return "\n".join(lines)


# ── Service ──────────────────────────────────────────────────────────────────


class ConfigService:
    """Loads, saves and hands out the shared configuration snapshot.

    Parameters:
        path: Config file location. Defaults to ``$DOCCANVAS_CONFIG`` or
            ``~/.config/fm-doc-canvas/config.yaml``.
        exec_dir: Directory relative download roots are anchored to
            (defaults to the running executable's directory).
    """

    def __init__(self, path: Optional[str] = None, exec_dir: Optional[str] = None):
        self.path = os.path.expanduser(
            path or os.environ.get("DOCCANVAS_CONFIG") or DEFAULT_CONFIG_PATH
        )
        self.exec_dir = exec_dir or executable_dir()
        self._lock = ReadWriteLock()
        self._config = AppConfig.default()

        if os.path.exists(self.path):
            try:
                self.load()
            except (OSError, yaml.YAMLError, ConfigError, TypeError) as e:
                print(f"[ConfigService] Warning: failed to load config: {e}")
        else:
            try:
                self.save(self._config)
            except OSError as e:
                print(f"[ConfigService] Warning: failed to save default config: {e}")

    def get_config(self) -> AppConfig:
        """Return a copy of the current configuration."""
        with self._lock.read_locked():
            return copy.deepcopy(self._config)

    def save(self, config: AppConfig) -> None:
        """Persist ``config`` and make it the active snapshot."""
        snapshot = copy.deepcopy(config)
        with self._lock.write_locked():
            ensure_dir(os.path.dirname(os.path.abspath(self.path)))
            snapshot.to_yaml(self.path)
            self._config = snapshot

    def load(self) -> None:
        """Re-read the configuration from disk."""
        with self._lock.write_locked():
            self._config = AppConfig.from_yaml(self.path)

    def resolve_download_root(self) -> str:
        """Absolute download root for the current configuration."""
        with self._lock.read_locked():
            download_path = self._config.image_gen.download_path
        if os.path.isabs(download_path):
            return download_path
        return os.path.join(self.exec_dir, download_path)
