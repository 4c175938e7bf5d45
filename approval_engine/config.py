"""
Configuration settings for the approval review engine.

Uses Pydantic Settings to load environment variables for the remote platform
connection, paging and predicate limits, workflow status values, and logging.
"""
from __future__ import annotations

from functools import lru_cache
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Remote platform
    platform_instance_url: str = Field("", alias="PLATFORM_INSTANCE_URL")
    platform_login_url: str = Field("https://login.salesforce.com", alias="PLATFORM_LOGIN_URL")
    platform_api_version: str = Field("59.0", alias="PLATFORM_API_VERSION")
    platform_access_token: Optional[str] = Field(None, alias="PLATFORM_ACCESS_TOKEN")
    platform_client_id: Optional[str] = Field(None, alias="PLATFORM_CLIENT_ID")
    platform_client_secret: Optional[str] = Field(None, alias="PLATFORM_CLIENT_SECRET")
    platform_username: Optional[str] = Field(None, alias="PLATFORM_USERNAME")
    platform_password: Optional[str] = Field(None, alias="PLATFORM_PASSWORD")
    platform_security_token: str = Field("", alias="PLATFORM_SECURITY_TOKEN")

    # Transport
    call_timeout_seconds: float = Field(120.0, alias="CALL_TIMEOUT_SECONDS")
    request_timeout_seconds: float = Field(300.0, alias="REQUEST_TIMEOUT_SECONDS")
    retry_attempts: int = Field(3, alias="RETRY_ATTEMPTS")

    # Application
    app_env: str = Field("development", alias="APP_ENV")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(False, alias="LOG_JSON")

    # Target object discovery
    candidate_objects: List[str] = Field(
        default_factory=lambda: [
            "Payment_Transactions_Needing_Approval__c",
            "Self_Reported_Time__c",
            "SelfReportedTime__c",
            "Contributor_Time_Entry__c",
            "Time_Entry__c",
            "TimeEntry__c",
            "Productivity_Entry__c",
        ],
        alias="CANDIDATE_OBJECTS",
    )
    schema_cache_ttl_seconds: float = Field(0.0, alias="SCHEMA_CACHE_TTL_SECONDS")

    # Paging
    offset_cap: int = Field(2000, alias="OFFSET_CAP")
    batch_size: int = Field(5000, alias="BATCH_SIZE")
    max_page_fetches: int = Field(10, alias="MAX_PAGE_FETCHES")

    # Predicate limits
    id_chunk_size: int = Field(500, alias="ID_CHUNK_SIZE")
    max_or_chunks: int = Field(100, alias="MAX_OR_CHUNKS")
    lookup_batch_size: int = Field(500, alias="LOOKUP_BATCH_SIZE")
    lookup_max_pages: int = Field(25, alias="LOOKUP_MAX_PAGES")

    # Workflow statuses
    pending_statuses: List[str] = Field(
        default_factory=lambda: ["PM Review", "Contributor Approved"],
        alias="PENDING_STATUSES",
    )
    approved_status: str = Field("PM Approved", alias="APPROVED_STATUS")
    rejected_status: str = Field("Rejected", alias="REJECTED_STATUS")

    # Fan-out
    summary_workers: int = Field(6, alias="SUMMARY_WORKERS")
    update_chunk_size: int = Field(200, alias="UPDATE_CHUNK_SIZE")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def api_base_path(self) -> str:
        return f"/services/data/v{self.platform_api_version}"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Retrieve a cached instance of Settings to avoid repeated env parsing.
    """
    return Settings()


__all__ = ["Settings", "get_settings"]
