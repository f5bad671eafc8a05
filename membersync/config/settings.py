"""Settings loader with environment variable and Docker secrets integration."""
from __future__ import annotations
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


def _load_secret_from_file(secret_name: str, env_var: str | None = None) -> str | None:
    """
    Load secret from /run/secrets (Docker secrets pattern).

    Priority:
    1. /run/secrets/{secret_name} (Docker secrets mount)
    2. Environment variable (fallback)

    Args:
        secret_name: Name of the secret file in /run/secrets
        env_var: Optional environment variable name to check as fallback

    Returns:
        Secret value or None if not found
    """
    secret_file = Path("/run/secrets") / secret_name

    # Priority 1: Read from /run/secrets
    if secret_file.exists() and secret_file.is_file():
        try:
            secret_value = secret_file.read_text().strip()
            if secret_value:
                print(f"[settings] ✓ Loaded {secret_name} from /run/secrets")
                return secret_value
        except OSError as e:
            print(f"[settings] ✗ Failed to read /run/secrets/{secret_name}: {e}")

    # Priority 2: Fallback to environment variable
    if env_var:
        secret_value = os.getenv(env_var)
        if secret_value:
            return secret_value

    return None


@dataclass
class AppConfig:
    """Application configuration container."""
    # Mode
    demo_mode: bool
    debug: bool = False

    # Brivo OnAir
    brivo_username: str = ""
    brivo_password: str = ""
    brivo_client_id: str = ""
    brivo_client_secret: str = ""
    brivo_api_key: str = ""
    brivo_api_url: str = "https://api.brivo.com/v1/api"
    brivo_auth_url: str = "https://auth.brivo.com/oauth/token"
    brivo_member_group_id: int = 0
    brivo_barcode_field_id: int = 0
    brivo_user_type_field_id: int = 0
    brivo_credential_format_id: int = 110
    brivo_facility_code: str = ""
    brivo_rate_limit: int = 20
    brivo_rate_window: float = 1.0
    brivo_event_secret: str = ""

    # MINDBODY
    mindbody_api_key: str = ""
    mindbody_username: str = ""
    mindbody_password: str = ""
    mindbody_site_id: str = "-99"
    mindbody_api_url: str = "https://api.mindbodyonline.com/public/v6"
    mindbody_location_id: int = 1
    mindbody_page_size: int = 200
    mindbody_token_lifetime: int = 7 * 24 * 3600
    mindbody_webhook_key: str = ""

    # Arrivals
    redis_url: str = ""
    arrival_window_minutes: int = 30

    # Orchestration
    workers: int = 0
    max_requeues: int = 3

    # Output
    report_dir: str = "."
    audit_dir: str = ".runtime/audit"
    audit_log_signing_key: str = ""

    # HTTP
    port: int = 8000

    @property
    def arrivals_enabled(self) -> bool:
        return bool(self.redis_url)


def _get_or_generate(var_name: str, demo_default: Optional[str] = None, required: bool = True, demo_mode: bool = False) -> str:
    """Get environment variable or use demo default."""
    value = os.environ.get(var_name)
    if value:
        return value

    if demo_mode and demo_default is not None:
        print(f"[demo-mode] Using default for {var_name}")
        os.environ[var_name] = demo_default
        return demo_default

    if not required:
        return ""

    raise RuntimeError(f"Environment variable {var_name} is required in production mode.")


def _get_secret(secret_name: str, env_var: str, demo_default: str, demo_mode: bool, required: bool = True) -> str:
    """Secret from /run/secrets or the environment, demo default, or error."""
    value = _load_secret_from_file(secret_name, env_var)
    if value:
        os.environ[env_var] = value
        return value
    return _get_or_generate(env_var, demo_default=demo_default, required=required, demo_mode=demo_mode)


def _get_int(var_name: str, default: int) -> int:
    raw = os.environ.get(var_name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"Environment variable {var_name} must be an integer, got {raw!r}")


def _get_bool(var_name: str, default: bool = False) -> bool:
    return os.environ.get(var_name, str(default)).strip().lower() == "true"


def load_settings() -> AppConfig:
    """Load application settings from environment and /run/secrets."""
    demo_mode = _get_bool("DEMO_MODE")
    debug = _get_bool("DEBUG")

    # ─────────────────────────────────────────────────────────────────────────
    # Secrets: /run/secrets > environment variables > demo defaults
    # ─────────────────────────────────────────────────────────────────────────
    brivo_password = _get_secret("brivo_password", "BRIVO_PASSWORD", "demo-brivo-password", demo_mode)
    brivo_client_secret = _get_secret("brivo_client_secret", "BRIVO_CLIENT_SECRET", "demo-client-secret", demo_mode)
    brivo_api_key = _get_secret("brivo_api_key", "BRIVO_API_KEY", "demo-brivo-api-key", demo_mode)
    brivo_event_secret = _get_secret(
        "brivo_event_secret", "BRIVO_EVENT_SECRET", "demo-brivo-event-secret", demo_mode, required=False
    )
    mindbody_api_key = _get_secret("mindbody_api_key", "MINDBODY_API_KEY", "demo-mindbody-api-key", demo_mode)
    mindbody_password = _get_secret("mindbody_password", "MINDBODY_PASSWORD", "demo-mindbody-password", demo_mode)
    mindbody_webhook_key = _get_secret(
        "mindbody_webhook_key", "MINDBODY_WEBHOOK_KEY", "demo-webhook-signature-key", demo_mode, required=False
    )
    audit_log_signing_key = _get_secret(
        "audit_log_signing_key",
        "AUDIT_LOG_SIGNING_KEY",
        "demo-audit-signing-key-change-in-production",
        demo_mode,
        required=False,
    )

    # Brivo
    brivo_username = _get_or_generate("BRIVO_USERNAME", demo_default="demo-admin", demo_mode=demo_mode)
    brivo_client_id = _get_or_generate("BRIVO_CLIENT_ID", demo_default="demo-client-id", demo_mode=demo_mode)
    brivo_api_url = os.environ.get("BRIVO_API_URL", "https://api.brivo.com/v1/api")
    brivo_auth_url = os.environ.get("BRIVO_AUTH_URL", "https://auth.brivo.com/oauth/token")
    brivo_member_group_id = int(_get_or_generate("BRIVO_MEMBER_GROUP_ID", demo_default="1", demo_mode=demo_mode))
    brivo_barcode_field_id = _get_int("BRIVO_BARCODE_FIELD_ID", 0)
    brivo_user_type_field_id = _get_int("BRIVO_USER_TYPE_FIELD_ID", 0)
    brivo_credential_format_id = _get_int("BRIVO_CREDENTIAL_FORMAT_ID", 110)
    brivo_facility_code = os.environ.get("BRIVO_FACILITY_CODE", "").strip()
    brivo_rate_limit = _get_int("BRIVO_RATE_LIMIT", 20)
    if brivo_rate_limit < 1:
        raise RuntimeError("BRIVO_RATE_LIMIT must be >= 1")
    brivo_rate_window = float(os.environ.get("BRIVO_RATE_WINDOW", "1.0") or 1.0)

    # MINDBODY
    mindbody_username = _get_or_generate("MINDBODY_USERNAME", demo_default="Siteowner", demo_mode=demo_mode)
    mindbody_site_id = os.environ.get("MINDBODY_SITE_ID", "-99")
    mindbody_api_url = os.environ.get("MINDBODY_API_URL", "https://api.mindbodyonline.com/public/v6")
    mindbody_location_id = _get_int("MINDBODY_LOCATION_ID", 1)
    mindbody_page_size = min(_get_int("MINDBODY_PAGE_SIZE", 200), 200)
    mindbody_token_lifetime = _get_int("MINDBODY_TOKEN_LIFETIME", 7 * 24 * 3600)

    # Arrivals
    redis_url = os.environ.get("REDIS_URL", "").strip()
    arrival_window_minutes = _get_int("ARRIVAL_WINDOW_MINUTES", 30)

    # Orchestration
    workers = _get_int("MEMBERSYNC_WORKERS", 0)
    max_requeues = _get_int("MEMBERSYNC_MAX_REQUEUES", 3)

    # Output
    report_dir = os.environ.get("MEMBERSYNC_REPORT_DIR", ".")
    audit_dir = os.environ.get("MEMBERSYNC_AUDIT_DIR", ".runtime/audit")

    port = _get_int("PORT", 8000)

    mode_label = "DEMO" if demo_mode else "PRODUCTION"
    print(
        f"[settings] Mode={mode_label}; site_id={mindbody_site_id}; "
        f"member_group={brivo_member_group_id}; rate_limit={brivo_rate_limit}/{brivo_rate_window}s"
    )
    if not mindbody_webhook_key:
        print("[settings] ⚠️ MINDBODY_WEBHOOK_KEY not set: webhook signatures cannot be verified")
    if demo_mode:
        print("[settings] WARNING: Demo credentials in use. Do not deploy with these defaults.")

    return AppConfig(
        demo_mode=demo_mode,
        debug=debug,
        brivo_username=brivo_username,
        brivo_password=brivo_password,
        brivo_client_id=brivo_client_id,
        brivo_client_secret=brivo_client_secret,
        brivo_api_key=brivo_api_key,
        brivo_api_url=brivo_api_url,
        brivo_auth_url=brivo_auth_url,
        brivo_member_group_id=brivo_member_group_id,
        brivo_barcode_field_id=brivo_barcode_field_id,
        brivo_user_type_field_id=brivo_user_type_field_id,
        brivo_credential_format_id=brivo_credential_format_id,
        brivo_facility_code=brivo_facility_code,
        brivo_rate_limit=brivo_rate_limit,
        brivo_rate_window=brivo_rate_window,
        brivo_event_secret=brivo_event_secret,
        mindbody_api_key=mindbody_api_key,
        mindbody_username=mindbody_username,
        mindbody_password=mindbody_password,
        mindbody_site_id=mindbody_site_id,
        mindbody_api_url=mindbody_api_url,
        mindbody_location_id=mindbody_location_id,
        mindbody_page_size=mindbody_page_size,
        mindbody_token_lifetime=mindbody_token_lifetime,
        mindbody_webhook_key=mindbody_webhook_key,
        redis_url=redis_url,
        arrival_window_minutes=arrival_window_minutes,
        workers=workers,
        max_requeues=max_requeues,
        report_dir=report_dir,
        audit_dir=audit_dir,
        audit_log_signing_key=audit_log_signing_key,
        port=port,
    )
