from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    database_url: str = "sqlite+aiosqlite:///./dicebox.db"
    log_level: str = "INFO"

    # Lenient parsing falls back to count 1 and d20 for malformed dice tokens.
    # Strict mode rejects them.
    strict_parsing: bool = False

    # Roll limits.
    explode_cap: int = 100
    max_dice_per_roll: int = 200

    # History capacities: long-lived session history and the lightweight widget feed.
    history_capacity: int = 1000
    widget_history_capacity: int = 20
    # Sessions kept in memory; the least recently used one is evicted past this.
    max_sessions: int = 1000

    # Trailing window used for the session summary.
    session_window_hours: int = 6


settings = Settings()
