from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    ENV: str = "dev"
    HOST: str = "0.0.0.0"
    PORT: int = 3000
    LOG_LEVEL: str = "INFO"

    STORAGE_DIR: str = "downloads"        # root of every downloaded bundle
    CONTENT_SOURCE: Literal["torrent", "local"] = "torrent"

    CHUNK_SIZE: int = 1024 * 1024
    STREAM_IO_THREADS: int = 256            # worker threads shared by all stream reads
    METADATA_TIMEOUT_SECONDS: float = 300.0   # 0 waits forever

    REAP_INTERVAL_SECONDS: float = 3 * 3600
    REAPER_RESPECT_ACTIVE_SESSIONS: bool = True

    TORRENT_LISTEN_INTERFACES: str = "0.0.0.0:6881"
    TORRENT_POLL_INTERVAL_SECONDS: float = 0.5
    TORRENT_READAHEAD_PIECES: int = 8


settings = Settings()
