from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional, List


class Settings(BaseSettings):
    # Room rules
    room_capacity: int = 8
    min_players: int = 3
    room_code_length: int = 4
    max_name_length: int = 20
    max_hint_length: int = 50
    # False selects the short graph: hint → voting, caught chameleon loses outright
    accusation_phase: bool = True
    # Seed for category / coordinate / chameleon selection (reproducible rounds)
    random_seed: Optional[int] = None

    # Seconds between liveness probes; an unanswered probe drops the connection
    liveness_interval_sec: float = 30.0

    # CORS origins; set ALLOWED_ORIGINS env var for production (JSON list)
    allowed_origins: List[str] = [
        "http://localhost:5173",
        "http://localhost:3000",
        "http://127.0.0.1:5173",
    ]
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
    )


settings = Settings()
