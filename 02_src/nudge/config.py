"""Project-level configuration and path helpers."""

import os
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Union

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
DATA_DIR = PROJECT_ROOT / "03_data"
LOGS_DIR = PROJECT_ROOT / "04_logs"
DEFAULT_DB_PATH = DATA_DIR / "office_nudge.db"
DEFAULT_LOG_PATH = LOGS_DIR / "app.log"

DATA_DIR.mkdir(parents=True, exist_ok=True)
LOGS_DIR.mkdir(parents=True, exist_ok=True)


PathLike = Union[str, Path]


def resolve_db_path(env_value: PathLike | None = None) -> PathLike:
    """Resolve DATABASE_URL to an absolute path."""
    if not env_value:
        return DEFAULT_DB_PATH

    if str(env_value) == ":memory:":
        return ":memory:"

    candidate = Path(env_value)
    return candidate if candidate.is_absolute() else PROJECT_ROOT / candidate


@dataclass
class AzureADAuthConfig:
    """App registration used for Microsoft Graph (client credentials)."""

    tenant_id: str = ""
    client_id: str = ""
    client_secret: str = ""
    authority: str = "https://login.microsoftonline.com"

    @property
    def configured(self) -> bool:
        return bool(self.tenant_id and self.client_id and self.client_secret)


@dataclass
class AIConfig:
    """Anthropic settings for follow-up chat and smart groups."""

    api_key: str
    model: str = "claude-3-5-sonnet-20241022"
    max_tokens: int = 2000
    temperature: str | None = None

    def get_temperature(self) -> float:
        """Temperature clamped to 0..1, 0.7 when unset or unparseable."""
        try:
            value = float(self.temperature) if self.temperature else 0.7
        except ValueError:
            return 0.7
        return min(max(value, 0.0), 1.0)


@dataclass
class UserCacheConfig:
    cache_expiration: timedelta = timedelta(hours=1)
    copilot_stats_refresh_interval: timedelta = timedelta(hours=24)
    full_sync_interval: timedelta = timedelta(days=7)
    copilot_stats_period: str = "D30"


@dataclass
class BotConfig:
    """Everything the bot host needs at startup."""

    bot_app_id: str = ""
    bot_app_secret: str = ""
    app_catalog_team_app_id: str = ""
    bot_name: str = "Bot"
    test_upn: str | None = None
    teams_service_url: str = "https://smba.trafficmanager.net/teams/"
    graph: AzureADAuthConfig = field(default_factory=AzureADAuthConfig)
    ai: AIConfig | None = None
    user_cache: UserCacheConfig = field(default_factory=UserCacheConfig)
    batch_poll_interval: float = 5.0

    @property
    def is_ai_enabled(self) -> bool:
        return self.ai is not None


def _hours(name: str, default: timedelta) -> timedelta:
    value = os.getenv(name)
    return timedelta(hours=float(value)) if value else default


def load_config() -> BotConfig:
    """Build BotConfig from environment variables."""
    api_key = os.getenv("ANTHROPIC_API_KEY")
    ai = None
    if api_key:
        ai = AIConfig(
            api_key=api_key,
            model=os.getenv("ANTHROPIC_MODEL", "claude-3-5-sonnet-20241022"),
            max_tokens=int(os.getenv("AI_MAX_TOKENS", "2000")),
            temperature=os.getenv("AI_TEMPERATURE"),
        )

    return BotConfig(
        bot_app_id=os.getenv("MicrosoftAppId", ""),
        bot_app_secret=os.getenv("MicrosoftAppPassword", ""),
        app_catalog_team_app_id=os.getenv("APP_CATALOG_TEAM_APP_ID", ""),
        bot_name=os.getenv("BOT_NAME", "Bot"),
        test_upn=os.getenv("TEST_UPN") or None,
        teams_service_url=os.getenv(
            "TEAMS_SERVICE_URL", "https://smba.trafficmanager.net/teams/"
        ),
        graph=AzureADAuthConfig(
            tenant_id=os.getenv("GRAPH_TENANT_ID", ""),
            client_id=os.getenv("GRAPH_CLIENT_ID", ""),
            client_secret=os.getenv("GRAPH_CLIENT_SECRET", ""),
        ),
        ai=ai,
        user_cache=UserCacheConfig(
            cache_expiration=_hours("USER_CACHE_EXPIRATION_HOURS", timedelta(hours=1)),
            copilot_stats_refresh_interval=_hours(
                "COPILOT_STATS_REFRESH_HOURS", timedelta(hours=24)
            ),
            full_sync_interval=_hours("USER_FULL_SYNC_HOURS", timedelta(days=7)),
            copilot_stats_period=os.getenv("COPILOT_STATS_PERIOD", "D30"),
        ),
        batch_poll_interval=float(os.getenv("BATCH_POLL_INTERVAL", "5")),
    )
