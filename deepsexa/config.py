from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Exa web search
    exa_api_key: str = ""
    exa_base_url: str = "https://api.exa.ai"
    search_timeout_seconds: float = 60.0
    search_text_max_characters: int = 3000
    summarize_text_max_characters: int = 10000  # external summarizer needs more raw text

    # OpenAI (date parsing + page summarization)
    openai_api_key: str = ""
    openai_base_url: str = ""
    date_parser_model: str = "gpt-4-turbo-preview"
    summarizer_model: str = "gpt-4o"

    # Reasoning chat model (OpenAI-compatible, Perplexity by default)
    chat_api_key: str = ""
    chat_base_url: str = "https://api.perplexity.ai"
    chat_model: str = "r1-1776"
    chat_max_tokens: int = 8192
    chat_max_duration_seconds: float = 300.0

    # Admission control
    rate_limit_window_seconds: float = 60.0
    rate_limit_max_requests: int = 20

    # Client-side pipeline
    api_base_url: str = "http://localhost:8000"
    retry_max_retries: int = 3
    retry_base_delay_ms: int = 1000
    retry_max_delay_ms: int = 10000
    query_history_size: int = 3
    auto_date_default: bool = True

    # App
    cors_origins: str = "http://localhost:3000"
    app_log_level: str = "INFO"
    noisy_log_level: str = "WARNING"
    log_dir: str = "logs"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",")]


settings = Settings()
