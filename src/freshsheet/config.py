from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, SecretStr


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    OPENAI_API_KEY: SecretStr | None = Field(None, description="OpenAI API Key")
    OPENAI_MODEL_AGENT: str = Field("gpt-5", description="Model driving the procurement assistant")
    OPENAI_MAX_OUTPUT_TOKENS: int = Field(4096, description="Completion token cap per generation call")
    GENERATION_TIMEOUT_SECONDS: float = Field(
        60.0,
        description="Transport timeout for one generation call; a timeout ends the turn with an error event"
    )
    MAX_TOOL_ROUNDS: int = Field(
        10,
        description="Maximum number of tool-execution rounds per user message"
    )
    HISTORY_MAX_TURNS: int = Field(
        200,
        description="Most recent stored turns submitted to the model"
    )
    DATABASE_URL: str = Field("sqlite:///data/freshsheet.db", description="SQLAlchemy database URL")
    SALES_TAX_RATE: float = Field(0.0825, description="Tax applied to draft orders")

# Singleton instance
settings = Settings()
