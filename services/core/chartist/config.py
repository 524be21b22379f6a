from pathlib import Path
from pydantic_settings import BaseSettings, SettingsConfigDict

from .providers.relay import Intermediary


# Get the directory where this config.py file is located
_config_dir = Path(__file__).parent
_env_file = _config_dir.parent / ".env"  # services/core/.env


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(_env_file),
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Server
    host: str = "0.0.0.0"
    port: int = 8080
    log_level: str = "INFO"

    # Primary source (Yahoo Finance chart API, reached through CORS relays)
    yahoo_chart_url: str = "https://query1.finance.yahoo.com/v8/finance/chart"
    # comma-separated, in priority order; append "|encode" to percent-encode the target URL
    relay_proxies: str = (
        "https://corsproxy.io/?,"
        "https://cors.eu.org/,"
        "https://thingproxy.freeboard.io/fetch/,"
        "https://api.allorigins.win/raw?url=|encode"
    )
    relay_timeout_seconds: float = 30.0

    # Fallback source (Finnhub). No key -> fallback unavailable, never a crash.
    finnhub_api_key: str | None = None
    finnhub_base_url: str = "https://finnhub.io/api/v1"
    finnhub_timeout_seconds: float = 30.0
    finnhub_unsupported_suffixes: str = ".NS"

    # Live price polling
    live_poll_seconds: float = 5.0
    live_max_failures: int = 5

    def get_relay_intermediaries(self) -> list[Intermediary]:
        """Parse relay_proxies into Intermediary entries (order preserved)."""
        intermediaries = []
        for entry in self.relay_proxies.split(","):
            entry = entry.strip()
            if not entry:
                continue
            prefix, _, flag = entry.partition("|")
            intermediaries.append(Intermediary(prefix.strip(), encode=flag.strip().lower() == "encode"))
        return intermediaries

    def get_unsupported_suffixes(self) -> list[str]:
        return [s.strip() for s in self.finnhub_unsupported_suffixes.split(",") if s.strip()]


def get_settings() -> Settings:
    return Settings()
