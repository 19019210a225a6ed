from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    anthropic_api_key: str
    model_name: str = "claude-haiku-4-5-20251001"
    completion_max_tokens: int = 600
    chroma_path: str = "./chroma_db"
    collection_name: str = "crystallure"
    namespace: str = "ns1"
    embedding_model: str = "sentence-transformers/paraphrase-multilingual-MiniLM-L12-v2"
    brand_name: str = "Crystallure"
    search_top_k: int = 15
    session_timeout_minutes: int = 30
    session_cleanup_interval_seconds: int = 600
    log_level: str = "INFO"


settings = Settings()
