"""Operator settings.

``Day2Settings`` collects everything the controllers need from the
environment: where the plan store lives, which service account identity the
admission gate trusts, and the fixed requeue intervals of the phase machines.

Every field can be overridden with a ``DAY2OPS_`` prefixed environment
variable or a ``.env`` file::

    DAY2OPS_STORE_URL=postgresql://day2ops@db/day2ops
    DAY2OPS_CONVERGE_REQUEUE_SECONDS=15

Tags:
    settings, configuration, pydantic, environment, day2ops
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Day2Settings(BaseSettings):
    """Settings shared by all day2ops controllers.

    Fields
    ──────
    log_level                  : Structlog log level
    log_json                   : Force JSON (True) / console (False) output; auto if unset
    namespace                  : Namespace the controller runs in (POD_NAMESPACE)
    controller_service_account : Service account name of the controller itself
    store_url                  : SQLAlchemy URL of the plan store
    plan_requeue_seconds       : Fast polling while a single plan is pending
    address_requeue_seconds    : Init machine has no internal address yet
    converge_requeue_seconds   : Multi-machine convergence and snapshot file polling
    inventory_requeue_seconds  : Background inventory sync cadence
    max_workers                : Concurrent reconciles per controller
    error_backoff_base         : First retry delay after a reconcile error
    error_backoff_max          : Cap on the reconcile error backoff
    """

    model_config = SettingsConfigDict(
        env_prefix="DAY2OPS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    log_json: bool | None = None

    # ── Identity ─────────────────────────────────────────────────
    namespace: str = Field(
        default="day2ops-system",
        validation_alias="POD_NAMESPACE",
        description="Namespace the controller runs in",
    )
    controller_service_account: str = "day2ops-manager"

    # ── Storage ──────────────────────────────────────────────────
    store_url: str = "sqlite:///day2ops.db"

    # ── Requeue policy (fixed, not exponential) ──────────────────
    plan_requeue_seconds: float = 5.0
    address_requeue_seconds: float = 10.0
    converge_requeue_seconds: float = 30.0
    inventory_requeue_seconds: float = 180.0

    # ── Runtime ──────────────────────────────────────────────────
    max_workers: int = Field(default=4, ge=1)
    error_backoff_base: float = 0.5
    error_backoff_max: float = 300.0

    @property
    def controller_identity(self) -> str:
        """Username the API server assigns to the controller's service account."""
        return f"system:serviceaccount:{self.namespace}:{self.controller_service_account}"


@lru_cache(maxsize=1)
def get_settings() -> Day2Settings:
    """Return the process-wide settings (read once from the environment)."""
    return Day2Settings()
