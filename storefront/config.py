"""Configuration settings for the application."""
from typing import List
from pydantic_settings import BaseSettings
from pydantic import Field
from dotenv import load_dotenv

# Ensure .env values are loaded into os.environ so downstream clients (e.g., Langfuse)
# can read them at import-time.
load_dotenv()


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    database_url: str = Field(default="sqlite:///./storefront.db", alias="DATABASE_URL")
    # Database operation timeout in seconds
    db_timeout: float = Field(default=5.0, alias="DB_TIMEOUT")

    # AI gateway (OpenAI-compatible chat completions endpoint)
    ai_gateway_api_key: str = Field(default="", alias="AI_GATEWAY_API_KEY")
    ai_gateway_base_url: str = Field(default="https://ai.gateway.lovable.dev/v1", alias="AI_GATEWAY_BASE_URL")
    chat_model: str = Field(default="google/gemini-3-flash-preview", alias="CHAT_MODEL")
    recipe_model: str = Field(default="google/gemini-3-flash-preview", alias="RECIPE_MODEL")
    image_model: str = Field(default="google/gemini-2.5-flash-image", alias="IMAGE_MODEL")
    # LLM request timeout in seconds
    llm_timeout: float = Field(default=60.0, alias="LLM_TIMEOUT")
    # Token cap for a single chat message
    max_chat_message_tokens: int = Field(default=500, alias="MAX_CHAT_MESSAGE_TOKENS")

    # Shopify
    shopify_store_domain: str = Field(default="", alias="SHOPIFY_STORE_DOMAIN")
    shopify_storefront_token: str = Field(default="", alias="SHOPIFY_STOREFRONT_TOKEN")
    shopify_api_version: str = Field(default="2024-01", alias="SHOPIFY_API_VERSION")
    shopify_admin_domain: str = Field(default="", alias="SHOPIFY_ADMIN_DOMAIN")
    shopify_admin_access_token: str = Field(default="", alias="SHOPIFY_ADMIN_ACCESS_TOKEN")
    shopify_admin_api_version: str = Field(default="2024-10", alias="SHOPIFY_ADMIN_API_VERSION")
    # Static credential cart clients send as a bearer token (not enforced when empty)
    storefront_service_key: str = Field(default="", alias="STOREFRONT_SERVICE_KEY")

    # Supabase (auth + object storage)
    supabase_url: str = Field(default="", alias="SUPABASE_URL")
    supabase_anon_key: str = Field(default="", alias="SUPABASE_ANON_KEY")
    supabase_service_role_key: str = Field(default="", alias="SUPABASE_SERVICE_ROLE_KEY")
    # Local object storage used when Supabase is not configured
    local_storage_dir: str = Field(default="data/storage", alias="LOCAL_STORAGE_DIR")
    local_storage_base_url: str = Field(default="http://localhost:8000/static", alias="LOCAL_STORAGE_BASE_URL")

    # Mailchimp
    mailchimp_api_key: str = Field(default="", alias="MAILCHIMP_API_KEY")
    mailchimp_list_id: str = Field(default="", alias="MAILCHIMP_LIST_ID")
    mailchimp_server_prefix: str = Field(default="", alias="MAILCHIMP_SERVER_PREFIX")

    # Firecrawl
    firecrawl_api_key: str = Field(default="", alias="FIRECRAWL_API_KEY")
    firecrawl_base_url: str = Field(default="https://api.firecrawl.dev/v1", alias="FIRECRAWL_BASE_URL")

    # Recipe generation
    recipe_request_delay: float = Field(default=1.0, alias="RECIPE_REQUEST_DELAY")
    # Regenerate recipes whose previous attempt failed instead of skipping them
    recipe_retry_failed: bool = Field(default=False, alias="RECIPE_RETRY_FAILED")
    cron_secret: str = Field(default="", alias="CRON_SECRET")

    # Remote image downloads
    image_download_attempts: int = Field(default=3, alias="IMAGE_DOWNLOAD_ATTEMPTS")
    image_download_backoff: float = Field(default=1.0, alias="IMAGE_DOWNLOAD_BACKOFF")
    http_timeout: float = Field(default=30.0, alias="HTTP_TIMEOUT")

    store_name: str = Field(default="Monday Morning", alias="STORE_NAME")
    project_name: str = "NA Storefront"
    api_version: str = "v1"
    cors_origins: List[str] = Field(default=["*"], alias="CORS_ORIGINS")

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_json: bool = Field(default=False, alias="LOG_JSON")

    class Config:
        env_file = ".env"
        case_sensitive = False
        populate_by_name = True


settings = Settings()
