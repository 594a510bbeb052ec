"""Configuration system using pydantic-settings with environment variable loading."""

from decimal import Decimal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ExchangeSettings(BaseSettings):
    """Bybit public market-data connection settings."""

    model_config = SettingsConfigDict(env_prefix="BYBIT_")

    testnet: bool = False
    category: str = "linear"
    request_timeout_ms: int = 10_000


class MonitorSettings(BaseSettings):
    """RSI monitoring and alert trigger parameters.

    Timeframes use ccxt notation ("1m", "15m", "1h", "4h"). The fast timeframe
    is the short leg of every composite (multi-timeframe) alert; the composite
    priority list is scanned longest-first for the second leg.
    All fields configurable via MONITOR_ environment variable prefix.
    """

    model_config = SettingsConfigDict(env_prefix="MONITOR_")

    rsi_threshold: Decimal = Decimal("85")  # Alert when RSI >= threshold
    reset_margin: Decimal = Decimal("5")  # Re-arm once RSI falls below threshold - margin
    near_threshold_margin: Decimal = Decimal("10")  # Debug diagnostics band below threshold
    rsi_period: int = 14
    window_buffer: int = 10  # Extra candles kept beyond rsi_period

    timeframes: list[str] = Field(default_factory=lambda: ["4h", "1h", "15m", "1m"])
    fast_timeframe: str = "1m"
    composite_priority: list[str] = Field(default_factory=lambda: ["4h", "1h", "15m"])
    blacklist: list[str] = Field(default_factory=lambda: ["ELXUSDT"])

    check_interval: int = 30  # seconds between periodic re-poll sweeps
    poll_intervals: dict[str, int] = Field(
        default_factory=lambda: {"1m": 10, "15m": 15, "1h": 20, "4h": 30}
    )
    default_poll_interval: int = 30
    max_concurrency: int = 10  # simultaneous REST requests during init / re-poll
    request_delay: float = 0.1  # seconds between REST requests within a batch
    progress_log_every: int = 50

    @property
    def reset_threshold(self) -> Decimal:
        """RSI value below which a suppressed alert re-arms."""
        return self.rsi_threshold - self.reset_margin

    @property
    def window_size(self) -> int:
        """Number of candles retained per (symbol, timeframe) window."""
        return self.rsi_period + self.window_buffer

    def poll_interval_for(self, timeframe: str) -> int:
        """Re-poll interval in seconds for a timeframe."""
        return self.poll_intervals.get(timeframe, self.default_poll_interval)


class LiquiditySettings(BaseSettings):
    """Liquidity floors applied before an alert is delivered."""

    model_config = SettingsConfigDict(env_prefix="LIQUIDITY_")

    min_volume_24h: Decimal = Decimal("5000000")  # $5M 24h turnover
    min_open_interest: Decimal = Decimal("2000000")  # $2M open interest value


class RetrySettings(BaseSettings):
    """Retry policy for candle REST requests."""

    model_config = SettingsConfigDict(env_prefix="RETRY_")

    max_attempts: int = 3
    network_backoff: float = 2.0  # seconds, multiplied by attempt number
    rate_limit_backoff: float = 5.0  # seconds, multiplied by attempt number


class TrackerSettings(BaseSettings):
    """Alert outcome tracking configuration."""

    model_config = SettingsConfigDict(env_prefix="TRACKER_")

    target_percent: Decimal = Decimal("-1")  # -1% = 1% favorable move for a short bias
    expiry_hours: float = 24.0
    store_path: str = "data/alerts_history.json"
    observe_interval: int = 60  # seconds between price observations of pending alerts


class DiscordSettings(BaseSettings):
    """Discord webhook notification configuration."""

    model_config = SettingsConfigDict(env_prefix="DISCORD_")

    webhook_url: str = ""
    username: str = "DYNASTY FUTURES BOT"
    title: str = "🎯 DYNASTY OVEREXHAUSTION ALERT"
    footer_brand: str = "DYNASTY"
    timeout: float = 10.0
    timezone: str = "Europe/Bucharest"
    bias: str = "SHORT"


class StreamSettings(BaseSettings):
    """Bybit public websocket stream configuration."""

    model_config = SettingsConfigDict(env_prefix="STREAM_")

    url: str = "wss://stream.bybit.com/v5/public/linear"
    testnet_url: str = "wss://stream-testnet.bybit.com/v5/public/linear"
    subscribe_batch_size: int = 10
    ping_interval: float = 20.0
    min_reconnect_delay: float = 1.0
    max_reconnect_delay: float = 60.0


class DashboardSettings(BaseSettings):
    """Read-only status API configuration."""

    model_config = SettingsConfigDict(env_prefix="DASHBOARD_")

    enabled: bool = False
    host: str = "0.0.0.0"
    port: int = 8080


class AppSettings(BaseSettings):
    """Root application settings, composing all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    log_level: str = "INFO"
    exchange: ExchangeSettings = ExchangeSettings()
    monitor: MonitorSettings = MonitorSettings()
    liquidity: LiquiditySettings = LiquiditySettings()
    retry: RetrySettings = RetrySettings()
    tracker: TrackerSettings = TrackerSettings()
    discord: DiscordSettings = DiscordSettings()
    stream: StreamSettings = StreamSettings()
    dashboard: DashboardSettings = DashboardSettings()
