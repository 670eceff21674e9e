from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    app_name: str = "CA Assistant"
    environment: str = "development"
    host: str = "127.0.0.1"
    port: int = 8787
    log_level: str = "INFO"

    # HTTP surface
    chat_path: str = "/api/chat"
    cors_allow_origins: tuple[str, ...] = ("*",)

    # Providers: generation_provider is "workers_ai" or "openai",
    # vector_provider is "vectorize", "chroma" or "none"
    generation_provider: str = "workers_ai"
    vector_provider: str = "vectorize"

    # Cloudflare Workers AI / Vectorize
    cloudflare_account_id: str | None = None
    cloudflare_api_token: str | None = None
    cloudflare_base_url: str = "https://api.cloudflare.com/client/v4"
    vectorize_index_name: str = "ca-knowledge"
    embedding_model: str = "@cf/baai/bge-large-en-v1.5"

    # OpenAI-compatible backend
    openai_api_key: str | None = None
    openai_base_url: str | None = None

    # ChromaDB (local vector store)
    chromadb_persist_directory: str = "./data/chroma"
    chroma_collection: str = "ca_knowledge"

    # Tier -> model table
    simple_model: str = "@cf/meta/llama-4-scout-17b-16e-instruct"
    complex_model: str = "@cf/meta/llama-3.3-70b-instruct-fp8-fast"

    # Generation parameters
    max_output_tokens: int = 2200
    temperature: float = 0.15

    # Retrieval
    retrieval_top_k: int = 5
    relevance_floor: float = 0.75
    context_separator: str = "\n---\n"
    min_context_chars: int | None = None  # None disables the sufficiency policy
    insufficient_context_hard_stop: bool = False

    # Prompt assembly
    history_max_messages: int = 6

    # Streaming
    stream_responses: bool = True
    token_chunk_size: int = 1
    synthetic_delay_ms: int = 0
    frame_queue_size: int = 64
    max_pending_fragment_chars: int = 65536

    # Timeouts in seconds (None disables)
    retrieval_timeout_seconds: float | None = 10.0
    generation_timeout_seconds: float | None = 60.0
    stream_read_timeout_seconds: float | None = 30.0

    # Pattern tables (case-insensitive regular expressions)
    injection_patterns: tuple[str, ...] = (
        r"ignore\s+(?:the\s+|all\s+|previous\s+)?system",
        r"bypass",
        r"\bact\s+as\b",
    )
    complexity_patterns: tuple[str, ...] = (
        r"appeal",
        r"\bitat\b",
        r"audit",
        r"notice",
        r"litigation",
        r"computation",
        r"transfer\s+pricing",
        r"cross[-\s]border",
    )

    class Config:
        env_prefix = "CA_"
        env_file = ".env"
        extra = "ignore"  # Ignore extra environment variables that aren't in the Settings class
        frozen = True


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Process-wide settings, read once from the environment."""
    return Settings()
