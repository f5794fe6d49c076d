from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # Database (SQLite via aiosqlite by default)
    database_url: str = "sqlite+aiosqlite:///./data/deployer_scan.db"
    redis_url: str = "redis://localhost:6379/0"
    redis_socket_timeout_sec: float = 2.0

    # Result cache backend: "memory" (per-process TTL) or "redis" (shared)
    result_cache_backend: str = "memory"
    scan_cache_max_entries: int = 5000

    # Helius (Solana RPC + Enhanced API): primary chain data provider
    helius_api_key: str = ""
    helius_rpc_url: str = ""
    helius_max_rps: float = 10.0

    # DexScreener
    dexscreener_max_rps: float = 4.0

    # Jupiter (free tier: 1 RPS)
    jupiter_api_key: str = ""
    jupiter_max_rps: float = 1.0

    # Rugcheck.xyz
    rugcheck_max_rps: float = 2.0

    # Feature flags for best-effort enrichment
    enable_rugcheck: bool = True
    enable_jupiter: bool = True
    enable_risk_signals: bool = True
    enable_death_classification: bool = True

    # Timeouts (seconds). Core path failures surface as 503, enrichment degrades.
    upstream_timeout_sec: float = 60.0
    enrichment_timeout_sec: float = 20.0

    # Scan tuning
    scan_cache_ttl_sec: int = 1800  # 30 min for primary scans
    legacy_scan_cache_ttl_sec: int = 300  # 5 min for wallet scans
    token_stale_hours: float = 6.0  # alive tokens older than this get re-checked
    discovery_max_tokens: int = 5000
    metadata_batch_size: int = 5
    status_max_concurrency: int = 5
    death_classify_max_tokens: int = 20
    cluster_max_funded_wallets: int = 10

    # Scoring calibration
    scoring_prior_weight: float = 0.5

    # Usage quota (per caller, resets daily)
    guest_daily_limit: int = 3
    wallet_daily_limit: int = 10
    admin_wallets: str = ""  # Comma-separated caller ids with unlimited scans

    # API server
    api_host: str = "0.0.0.0"
    api_port: int = 3001
    api_trust_proxy: bool = False  # take client IP from X-Forwarded-For
    api_debug: bool = False
    api_rate_limit: str = "30/minute"

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    @property
    def admin_wallet_set(self) -> set[str]:
        return {w.strip() for w in self.admin_wallets.split(",") if w.strip()}


settings = Settings()
