"""Runtime configuration for the MC AI bridge."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-driven runtime settings."""

    model_config = SettingsConfigDict(env_prefix="MC_AI_BRIDGE_", env_file=".env", extra="ignore")

    app_name: str = "mc-ai-bridge"
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = Field(default=8080, description="Port Minecraft connects to via /wsserver <host>:<port>.")
    wake_word: str | None = Field(default=None, description="Chat must contain this text to reach the agent.")
    player_regex: str | None = Field(default=None, description="Only senders matching this pattern are served.")
    cooldown_seconds: float = 5.0
    request_timeout_seconds: float = 60.0
    max_payload_bytes: int = Field(default=661, description="Largest outbound frame the game accepts.")
    protocol_version: int = 17104896
    echo_commands: bool = True
    fail_pending_on_disconnect: bool = False
    agent_factory: str | None = Field(
        default=None,
        description="Import path 'package.module:factory' returning the agent; falls back to the echo agent.",
    )


settings = Settings()
