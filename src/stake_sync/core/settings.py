"""Agent settings and configuration.

This module defines all configuration options for the stake sync agent.
Settings are loaded from environment variables or a ``.env`` file. The four
endpoint values have no defaults; the agent refuses to start without them.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from pydantic import AnyHttpUrl, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class SourceNoncePolicy(str, Enum):
    """When the origin-chain nonce is re-read from the subgraph."""

    STARTUP = "startup"  # resolved once before the loop starts
    EVERY_ITERATION = "every_iteration"


@dataclass(frozen=True)
class LoopTiming:
    """Immutable timing policy for the poll loop."""

    poll_interval_seconds: float = 18.0
    error_retry_seconds: float = 1.0
    min_event_age_seconds: float = 600.0


class Settings(BaseSettings):
    """Agent settings loaded from environment variables.

    Variable names are matched case-insensitively, so the lower-case names
    used by existing deployments (``ethereum_rpc_url`` and friends) keep
    working.
    """

    # Endpoints
    ethereum_rpc_url: AnyHttpUrl = Field(alias="ETHEREUM_RPC_URL")
    polygon_sub_graph_url: AnyHttpUrl = Field(alias="POLYGON_SUB_GRAPH_URL")
    heimdall_rest_url: AnyHttpUrl = Field(alias="HEIMDALL_REST_URL")
    heimdall_chain_id: str = Field(alias="HEIMDALL_CHAIN_ID")

    # Outbound request timeouts
    subgraph_timeout_seconds: float = Field(
        default=10.0, gt=0, alias="SUBGRAPH_TIMEOUT_SECONDS"
    )
    heimdall_timeout_seconds: float = Field(
        default=10.0, gt=0, alias="HEIMDALL_TIMEOUT_SECONDS"
    )
    ethereum_rpc_timeout_seconds: float = Field(
        default=10.0, gt=0, alias="ETHEREUM_RPC_TIMEOUT_SECONDS"
    )

    # Poll loop cadence
    poll_interval_seconds: float = Field(default=18.0, gt=0, alias="POLL_INTERVAL_SECONDS")
    error_retry_seconds: float = Field(default=1.0, gt=0, alias="ERROR_RETRY_SECONDS")
    min_event_age_seconds: float = Field(default=600.0, ge=0, alias="MIN_EVENT_AGE_SECONDS")
    source_nonce_policy: SourceNoncePolicy = Field(
        default=SourceNoncePolicy.EVERY_ITERATION,
        alias="SOURCE_NONCE_POLICY",
    )

    # External signer
    signer_binary: str = Field(default="heimdallcli", alias="SIGNER_BINARY")
    signer_timeout_seconds: float | None = Field(
        default=120.0, gt=0, alias="SIGNER_TIMEOUT_SECONDS"
    )
    signer_dry_run: bool = Field(default=False, alias="SIGNER_DRY_RUN")
    signer_capture_output: bool = Field(default=False, alias="SIGNER_CAPTURE_OUTPUT")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def timing(self) -> LoopTiming:
        """Return the poll loop timing policy."""
        return LoopTiming(
            poll_interval_seconds=self.poll_interval_seconds,
            error_retry_seconds=self.error_retry_seconds,
            min_event_age_seconds=self.min_event_age_seconds,
        )


def load_settings(env_file: str | None = None) -> Settings:
    """Build settings from the environment, optionally from a specific env file."""
    if env_file is not None:
        return Settings(_env_file=env_file)  # type: ignore[call-arg]
    return Settings()  # type: ignore[call-arg]
