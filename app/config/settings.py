"""Application configuration and settings."""

from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Service Configuration
    service_name: str = "assessment-service"
    service_port: int = 8006
    environment: str = "development"
    cors_origins: List[str] = ["http://localhost:5173"]

    # MongoDB Configuration
    mongodb_uri: str = "mongodb://localhost:27017"
    mongodb_database: str = "health_assessments"
    mongodb_collection_assessments: str = "assessments"
    mongodb_collection_responses: str = "assessment_responses"
    mongodb_collection_health_concerns: str = "health_concerns"
    mongodb_collection_patients: str = "patients"

    # OpenAI-compatible LLM endpoint
    openai_api_key: str
    openai_base_url: Optional[str] = None
    openai_model: str = "gpt-4o"
    openai_temperature: float = 0.2
    openai_max_tokens: int = 4000
    openai_reasoning_effort: Optional[str] = None

    # Retry / timeout policy for the generation call
    llm_max_retries: int = 3
    llm_retry_base_delay: float = 1.0
    llm_retry_max_delay: float = 10.0
    llm_invoke_timeout: float = 90.0  # per attempt
    llm_request_timeout: float = 300.0  # whole LLM call, all attempts

    # JWT Configuration
    jwt_public_key_path: str = "keys/public_key.pem"
    jwt_issuer: Optional[str] = None
    jwt_algorithm: str = "RS256"
    jwt_access_cookie_name: str = "access_token"

    # Logging
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = False


# Global settings instance
settings = Settings()
