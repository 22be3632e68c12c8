from pydantic import Field, NonNegativeInt, PositiveFloat, PositiveInt
from pydantic_settings import BaseSettings, SettingsConfigDict


class JsonRefsSettings(BaseSettings):
    """Process-level defaults, overridable through ``JSONREFS_*`` environment variables."""

    http_timeout: PositiveFloat = Field(default=30.0, description="Timeout in seconds for a single HTTP fetch.")
    max_concurrency: PositiveInt = Field(default=8, description="Maximum number of remote documents fetched at once.")
    follow_redirects: bool = Field(default=True)
    user_agent: str = Field(default="jsonrefs")
    max_parent_traversal_depth: NonNegativeInt = Field(default=3, description="Maximum leading '..' segments in file references checked against a root path.")

    model_config = SettingsConfigDict(env_prefix="JSONREFS_")
