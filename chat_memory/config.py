"""Configuration loading, validation, and defaults."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml

from .types import (
    ChatMemoryConfig,
    MemoryConfig,
    ProviderConfig,
    ReplyConfig,
    ServerConfig,
    StorageConfig,
    SummarizationConfig,
    TranslationConfig,
)

CONFIG_FILENAMES = [
    "chat-memory.yaml",
    "chat-memory.yml",
    "chat-memory.json",
    "chatmemory.yaml",
    "chatmemory.yml",
    "chatmemory.json",
]

STORAGE_BACKENDS = ("sqlite", "filesystem")
PROVIDER_TYPES = ("openai",)


def _discover_config() -> Path | None:
    """Search CWD then parent dirs up to home for a config file."""
    cwd = Path.cwd()
    home = Path.home()
    search = cwd
    while True:
        for name in CONFIG_FILENAMES:
            candidate = search / name
            if candidate.is_file():
                return candidate
        if search == home or search == search.parent:
            break
        search = search.parent
    return None


def _build_config(raw: dict[str, Any]) -> ChatMemoryConfig:
    """Build a ChatMemoryConfig from a raw dict."""
    memory_raw = raw.get("memory", {})
    memory = MemoryConfig(
        compaction_threshold=memory_raw.get("compaction_threshold", 8000),
        serialize_turns=memory_raw.get("serialize_turns", True),
    )

    reply_raw = raw.get("reply", {})
    reply = ReplyConfig(
        model=reply_raw.get("model", "gpt-4.1-mini"),
        temperature=reply_raw.get("temperature", 0.8),
        max_tokens=reply_raw.get("max_tokens", 100),
        presence_penalty=reply_raw.get("presence_penalty", 0.6),
        frequency_penalty=reply_raw.get("frequency_penalty", 0.3),
        fallback_reply=reply_raw.get(
            "fallback_reply", "Sorry, I could not generate a response."
        ),
    )

    # Summarization
    summ_raw = raw.get("summarization", {})
    summarization = SummarizationConfig(
        model=summ_raw.get("model", reply.model),
        temperature=summ_raw.get("temperature", 0.0),
        max_tokens=summ_raw.get("max_tokens", 2000),
        target_chars=summ_raw.get("target_chars", 4000),
    )

    trans_raw = raw.get("translation", {})
    translation = TranslationConfig(
        model=trans_raw.get("model", "gpt-4.1-nano"),
        temperature=trans_raw.get("temperature", 0.3),
        max_tokens=trans_raw.get("max_tokens", 200),
    )

    provider_raw = raw.get("provider", {})
    provider = ProviderConfig(
        type=provider_raw.get("type", "openai"),
        base_url=provider_raw.get("base_url", "https://api.openai.com/v1"),
        api_key_env=provider_raw.get("api_key_env", "OPENAI_API_KEY"),
        api_key=provider_raw.get("api_key"),
        timeout=provider_raw.get("timeout", 60.0),
        max_retries=provider_raw.get("max_retries", 3),
    )

    # Storage
    storage_raw = raw.get("storage", {})
    storage_root = raw.get("storage_root", ".chatmemory")
    storage = StorageConfig(
        backend=storage_raw.get("backend", "sqlite"),
        root=storage_raw.get("root", storage_root + "/threads"),
        sqlite_path=storage_raw.get("sqlite_path", storage_root + "/threads.db"),
    )

    server_raw = raw.get("server", {})
    server = ServerConfig(
        host=server_raw.get("host", "127.0.0.1"),
        port=server_raw.get("port", 8787),
        cors_origins=server_raw.get("cors_origins", ["*"]),
    )

    return ChatMemoryConfig(
        version=str(raw.get("version", "1.0")),
        memory=memory,
        reply=reply,
        summarization=summarization,
        translation=translation,
        provider=provider,
        storage=storage,
        server=server,
    )


def validate_config(config: ChatMemoryConfig) -> list[str]:
    """Validate a config. Returns list of error strings (empty = valid)."""
    errors: list[str] = []

    if config.memory.compaction_threshold < 1:
        errors.append("memory.compaction_threshold must be >= 1")

    if config.summarization.target_chars >= config.memory.compaction_threshold:
        errors.append(
            f"summarization.target_chars ({config.summarization.target_chars}) must be < "
            f"memory.compaction_threshold ({config.memory.compaction_threshold})"
        )

    if config.storage.backend not in STORAGE_BACKENDS:
        errors.append(
            f"Unknown storage backend '{config.storage.backend}' "
            f"(expected one of: {', '.join(STORAGE_BACKENDS)})"
        )

    if config.provider.type not in PROVIDER_TYPES:
        errors.append(f"Unknown provider type '{config.provider.type}'")

    if config.provider.max_retries < 1:
        errors.append("provider.max_retries must be >= 1")

    if config.provider.timeout <= 0:
        errors.append("provider.timeout must be > 0")

    for section in ("reply", "summarization", "translation"):
        if getattr(config, section).max_tokens < 1:
            errors.append(f"{section}.max_tokens must be >= 1")

    return errors


def load_config(
    config_path: str | Path | None = None,
    config_dict: dict | None = None,
) -> ChatMemoryConfig:
    """Load config from dict, explicit path, or auto-discover."""
    if config_dict is not None:
        return _build_config(config_dict)

    if config_path is not None:
        path = Path(config_path)
    else:
        path = _discover_config()

    if path is None:
        # Return defaults
        return _build_config({})

    if not path.is_file():
        raise FileNotFoundError(f"Config file not found: {path}")

    text = path.read_text()
    if path.suffix == ".json":
        raw = json.loads(text)
    else:
        raw = yaml.safe_load(text) or {}

    return _build_config(raw)


DEFAULT_CONFIG_YAML = """\
# chat-memory configuration
version: "1.0"

memory:
  compaction_threshold: 8000   # characters of summary + recent before compaction
  serialize_turns: true        # one turn at a time per thread id

reply:
  model: gpt-4.1-mini
  temperature: 0.8
  max_tokens: 100
  presence_penalty: 0.6
  frequency_penalty: 0.3

summarization:
  model: gpt-4.1-mini
  temperature: 0
  max_tokens: 2000
  target_chars: 4000

translation:
  model: gpt-4.1-nano
  temperature: 0.3
  max_tokens: 200

provider:
  type: openai
  base_url: https://api.openai.com/v1
  api_key_env: OPENAI_API_KEY
  timeout: 60
  max_retries: 3

storage:
  backend: sqlite
  sqlite_path: .chatmemory/threads.db

server:
  host: 127.0.0.1
  port: 8787
  cors_origins: ["*"]
"""
