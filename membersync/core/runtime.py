"""Wiring: builds the clients, services and pipelines of one process from settings."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

from ..config import AppConfig
from .brivo import BrivoClient, BrivoTokenHolder, CredentialService, UserService
from .mindbody import MindbodyClient, MindbodyTokenHolder
from .orchestration import ConcurrencyGate, OutcomeLedger, Orchestrator
from .pipelines import CleanupPipeline, DeactivatePipeline, ProvisionPipeline
from .tokens import TokenRefreshError


@dataclass
class Runtime:
    """Everything a driver needs, built once per process.

    The gate and the Brivo token holder are shared by every orchestrator
    created from this runtime, so bulk runs and webhook events in the same
    process respect one rate ceiling and one refresh.
    """
    config: AppConfig
    gate: ConcurrencyGate
    brivo_tokens: BrivoTokenHolder
    brivo: BrivoClient
    users: UserService
    credentials: CredentialService
    mindbody_tokens: MindbodyTokenHolder
    mindbody: MindbodyClient
    provision: ProvisionPipeline
    deactivate: DeactivatePipeline
    cleanup: CleanupPipeline

    def orchestrator(
        self,
        ledger: Optional[OutcomeLedger] = None,
        on_fatal: Optional[Callable[[TokenRefreshError], None]] = None,
    ) -> Orchestrator:
        return Orchestrator(
            self.brivo_tokens,
            self.gate,
            ledger=ledger,
            max_workers=self.config.workers or None,
            max_requeues=self.config.max_requeues,
            on_fatal=on_fatal,
        )


def build_runtime(cfg: AppConfig) -> Runtime:
    """Construct the runtime for ``cfg``. No network call is made here."""
    gate = ConcurrencyGate(cfg.brivo_rate_limit, window=cfg.brivo_rate_window or None)

    brivo_tokens = BrivoTokenHolder(
        cfg.brivo_username,
        cfg.brivo_password,
        cfg.brivo_client_id,
        cfg.brivo_client_secret,
        cfg.brivo_api_key,
        auth_url=cfg.brivo_auth_url,
        gate=gate,
    )
    brivo = BrivoClient(brivo_tokens, cfg.brivo_api_key, base_url=cfg.brivo_api_url, gate=gate)
    users = UserService(brivo)
    credentials = CredentialService(brivo)

    mindbody_tokens = MindbodyTokenHolder(
        cfg.mindbody_username,
        cfg.mindbody_password,
        cfg.mindbody_api_key,
        cfg.mindbody_site_id,
        base_url=cfg.mindbody_api_url,
        lifetime=cfg.mindbody_token_lifetime,
    )
    mindbody = MindbodyClient(mindbody_tokens, page_size=cfg.mindbody_page_size)

    return Runtime(
        config=cfg,
        gate=gate,
        brivo_tokens=brivo_tokens,
        brivo=brivo,
        users=users,
        credentials=credentials,
        mindbody_tokens=mindbody_tokens,
        mindbody=mindbody,
        provision=ProvisionPipeline(
            users,
            credentials,
            cfg.brivo_member_group_id,
            barcode_field_id=cfg.brivo_barcode_field_id,
            user_type_field_id=cfg.brivo_user_type_field_id,
            credential_format_id=cfg.brivo_credential_format_id,
        ),
        deactivate=DeactivatePipeline(users, cfg.brivo_member_group_id),
        cleanup=CleanupPipeline(users, credentials, cfg.brivo_barcode_field_id),
    )
