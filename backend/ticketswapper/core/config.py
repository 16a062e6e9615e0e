from pydantic_settings import BaseSettings
from pydantic import Field
from typing import List, Optional
from pathlib import Path

class Settings(BaseSettings):
    app_name: str = Field(default="TicketSwapper API", alias="APP_NAME")
    env: str = Field(default="dev", alias="ENV")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    secret_key: str = Field(default="devsecret", alias="SECRET_KEY")
    algorithm: str = Field(default="HS256", alias="ALGORITHM")
    access_token_expire_minutes: int = Field(default=60, alias="ACCESS_TOKEN_EXPIRE_MINUTES")
    email_token_expire_hours: int = Field(default=48, alias="EMAIL_TOKEN_EXPIRE_HOURS")
    database_url: str | None = Field(default=None, alias="DATABASE_URL")
    # Raw env values (strings), we parse them to lists via properties to avoid JSON decoding errors
    admin_emails_raw: Optional[str] = Field(default=None, alias="ADMIN_EMAILS")
    cors_origins_raw: Optional[str] = Field(default=None, alias="CORS_ORIGINS", description="Comma or space separated list of allowed CORS origins")
    # Seed admin (dev/demo convenience)
    seed_admin_email: Optional[str] = Field(default=None, alias="SEED_ADMIN_EMAIL")
    seed_admin_password: Optional[str] = Field(default=None, alias="SEED_ADMIN_PASSWORD")

    # Payment gateway
    razorpay_key_id: Optional[str] = Field(default=None, alias="RAZORPAY_KEY_ID")
    razorpay_key_secret: Optional[str] = Field(default=None, alias="RAZORPAY_KEY_SECRET")
    razorpay_webhook_secret: Optional[str] = Field(default=None, alias="RAZORPAY_WEBHOOK_SECRET")
    razorpay_api_base: str = Field(default="https://api.razorpay.com/v1", alias="RAZORPAY_API_BASE")
    razorpay_timeout_seconds: float = Field(default=30.0, alias="RAZORPAY_TIMEOUT_SECONDS")
    currency: str = Field(default="INR", alias="CURRENCY")
    platform_commission_rate: float = Field(default=0.05, alias="PLATFORM_COMMISSION_RATE")

    # Reservation of a ticket between order creation and payment verification
    reservation_ttl_minutes: int = Field(default=15, alias="RESERVATION_TTL_MINUTES")
    reservation_sweep_seconds: int = Field(default=60, alias="RESERVATION_SWEEP_SECONDS")

    # External PNR record store (REST table)
    pnr_api_url: str = Field(default="https://ftsboryogzngqfarbbgu.supabase.co/rest/v1/bus_tickets", alias="PNR_API_URL")
    pnr_api_key: Optional[str] = Field(default=None, alias="PNR_API_KEY")
    pnr_timeout_seconds: float = Field(default=10.0, alias="PNR_TIMEOUT_SECONDS")
    pnr_echo_available: bool = Field(default=True, alias="PNR_ECHO_AVAILABLE")

    class Config:
        # Load env from backend/.env regardless of CWD
        env_file = str(Path(__file__).resolve().parents[2] / ".env")
        case_sensitive = False
        extra = "ignore"

    def _parse_list(self, v: Optional[str]) -> List[str]:
        if v is None:
            return []
        s = v.strip()
        if not s:
            return []
        if s.startswith("[") and s.endswith("]"):
            try:
                import json
                loaded = json.loads(s)
                if isinstance(loaded, list):
                    return [str(e).strip() for e in loaded if str(e).strip()]
            except ValueError:
                pass
        return [e.strip() for e in s.replace(" ", ",").split(",") if e.strip()]

    @property
    def admin_emails(self) -> List[str]:
        return self._parse_list(self.admin_emails_raw)

    @property
    def cors_origins(self) -> List[str]:
        items = self._parse_list(self.cors_origins_raw)
        # Fallback dev defaults if none provided
        if not items:
            return ["http://localhost:5173", "http://127.0.0.1:5173"]
        # Dev convenience: ensure both localhost and 127.0.0.1 variants for same ports
        augmented = set(items)
        for origin in list(items):
            if origin.startswith("http://localhost:"):
                port = origin.rsplit(":", 1)[1]
                augmented.add(f"http://127.0.0.1:{port}")
            if origin.startswith("http://127.0.0.1:"):
                port = origin.rsplit(":", 1)[1]
                augmented.add(f"http://localhost:{port}")
        return list(augmented)

settings = Settings()  # type: ignore
