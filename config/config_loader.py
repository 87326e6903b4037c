"""Load settings.yaml into typed dataclasses, apply env overrides, validate."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"


@dataclass
class ServerConfig:
    host: str = "127.0.0.1"
    port: int = 5000
    cors_origins: list[str] = field(default_factory=lambda: ["*"])
    streaming_enabled: bool = True
    api_token_env: str | None = None


@dataclass
class CircuitBreakerConfig:
    failure_threshold: int = 3
    recovery_timeout_sec: float = 30.0
    monitoring_period_sec: float = 60.0


@dataclass
class StreamingConfig:
    session_ttl_sec: float = 300.0
    heartbeat_interval_sec: float = 15.0


@dataclass
class ProviderConfig:
    name: str
    sdk: str
    api_key_env: str
    timeout_sec: int
    base_url: str | None = None


@dataclass
class IntensityDescriptor:
    level: int
    label: str
    guidance: str
    summary: str = ""

    @property
    def heading(self) -> str:
        return f"Level {self.level} - {self.label}"


@dataclass
class DebatePrompts:
    developer: str
    base_template: str
    opening: str
    rebuttal: str
    opponent_quote: str


@dataclass
class DebateConfig:
    prompts: DebatePrompts
    intensities: dict[int, IntensityDescriptor] = field(default_factory=dict)
    temperature: float = 0.7
    max_tokens: int = 16384
    reasoning_effort: str = "medium"
    reasoning_summary: str = "detailed"
    text_verbosity: str = "high"
    max_rounds: int = 10


@dataclass
class AppConfig:
    server: ServerConfig
    circuit_breaker: CircuitBreakerConfig
    streaming: StreamingConfig
    providers: dict[str, ProviderConfig]
    debate: DebateConfig
    available_providers: set[str] = field(default_factory=set)


def _env_flag(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() not in ("false", "0")


def _env_number(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring non-numeric %s=%r", name, raw)
        return default


def load_config(settings_path: Path = _SETTINGS_PATH) -> AppConfig:
    """Load and validate configuration from settings.yaml.

    Raises FileNotFoundError if settings file missing, ValueError if the
    merged settings are out of range. Missing API keys are only logged;
    those providers stay listed and fail at call time.
    """
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with settings_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    server_raw = raw.get("server", {})
    server = ServerConfig(
        host=str(server_raw.get("host", "127.0.0.1")),
        port=int(_env_number("PORT", server_raw.get("port", 5000))),
        cors_origins=list(server_raw.get("cors_origins", ["*"])),
        streaming_enabled=_env_flag("STREAMING_ENABLED", bool(server_raw.get("streaming_enabled", True))),
        api_token_env=server_raw.get("api_token_env"),
    )

    breaker_raw = raw.get("circuit_breaker", {})
    circuit_breaker = CircuitBreakerConfig(
        failure_threshold=int(
            _env_number("CIRCUIT_BREAKER_FAILURE_THRESHOLD", breaker_raw.get("failure_threshold", 3))
        ),
        recovery_timeout_sec=_env_number(
            "CIRCUIT_BREAKER_RECOVERY_TIMEOUT", breaker_raw.get("recovery_timeout_sec", 30.0)
        ),
        monitoring_period_sec=_env_number(
            "CIRCUIT_BREAKER_MONITORING_PERIOD", breaker_raw.get("monitoring_period_sec", 60.0)
        ),
    )

    streaming_raw = raw.get("streaming", {})
    streaming = StreamingConfig(
        session_ttl_sec=float(streaming_raw.get("session_ttl_sec", 300.0)),
        heartbeat_interval_sec=float(streaming_raw.get("heartbeat_interval_sec", 15.0)),
    )

    providers: dict[str, ProviderConfig] = {}
    available_providers: set[str] = set()

    for provider_name, provider_raw in raw.get("providers", {}).items():
        providers[provider_name] = ProviderConfig(
            name=provider_name,
            sdk=provider_raw["sdk"],
            api_key_env=provider_raw["api_key_env"],
            timeout_sec=int(provider_raw.get("timeout_sec", 600)),
            base_url=provider_raw.get("base_url"),
        )

        api_key = os.environ.get(provider_raw["api_key_env"], "").strip()
        if api_key:
            available_providers.add(provider_name)
            logger.info("Provider available: %s", provider_name)
        else:
            logger.info(
                "Provider unavailable (no API key): %s (set %s in .env)",
                provider_name,
                provider_raw["api_key_env"],
            )

    debate_raw = raw["debate"]
    prompts_raw = debate_raw["prompts"]
    prompts = DebatePrompts(
        developer=prompts_raw["developer"],
        base_template=prompts_raw["base_template"],
        opening=prompts_raw["opening"],
        rebuttal=prompts_raw["rebuttal"],
        opponent_quote=prompts_raw["opponent_quote"],
    )
    intensities = {
        int(level): IntensityDescriptor(
            level=int(level),
            label=str(item["label"]),
            guidance=str(item.get("guidance", "")).strip(),
            summary=str(item.get("summary", "")),
        )
        for level, item in debate_raw.get("intensities", {}).items()
    }
    debate = DebateConfig(
        prompts=prompts,
        intensities=intensities,
        temperature=float(debate_raw.get("temperature", 0.7)),
        max_tokens=int(debate_raw.get("max_tokens", 16384)),
        reasoning_effort=str(debate_raw.get("reasoning_effort", "medium")),
        reasoning_summary=str(debate_raw.get("reasoning_summary", "detailed")),
        text_verbosity=str(debate_raw.get("text_verbosity", "high")),
        max_rounds=int(debate_raw.get("max_rounds", 10)),
    )

    config = AppConfig(
        server=server,
        circuit_breaker=circuit_breaker,
        streaming=streaming,
        providers=providers,
        debate=debate,
        available_providers=available_providers,
    )
    validate_config(config)
    return config


def validate_config(config: AppConfig) -> None:
    """Raise ValueError listing every out-of-range setting."""
    errors: list[str] = []

    if not 1 <= config.server.port <= 65535:
        errors.append(f"Invalid port: {config.server.port}. Must be between 1 and 65535.")

    threshold = config.circuit_breaker.failure_threshold
    if not 1 <= threshold <= 20:
        errors.append(f"Invalid failure threshold: {threshold}. Must be between 1 and 20.")

    recovery = config.circuit_breaker.recovery_timeout_sec
    if not 1 <= recovery <= 300:
        errors.append(f"Invalid recovery timeout: {recovery}s. Must be between 1s and 300s.")

    if config.circuit_breaker.monitoring_period_sec <= 0:
        errors.append("Monitoring period must be positive.")

    if config.streaming.session_ttl_sec <= 0:
        errors.append("Stream session TTL must be positive.")

    if errors:
        raise ValueError("Configuration validation failed:\n" + "\n".join(errors))
