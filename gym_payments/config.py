import os
from dataclasses import dataclass
from pathlib import Path
from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"


@dataclass(frozen=True)
class Settings:
    core_api_url: str = "http://localhost:8000"
    core_api_key: str = ""
    service_jwt_secret: str = ""
    public_api_url: str = "https://api.fitstackapp.com"
    frontend_url: str = "https://fitstackapp.com"
    currency_id: str = "ARS"
    http_timeout: float = 15.0
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv(dotenv_path=ENV_PATH)

        raw_timeout = os.getenv("HTTP_TIMEOUT_SECONDS", "15")
        try:
            timeout = float(raw_timeout)
        except ValueError:
            timeout = 0
        if timeout <= 0:
            raise RuntimeError(
                f"HTTP_TIMEOUT_SECONDS must be a positive number, got {raw_timeout!r}"
            )

        return cls(
            core_api_url=os.getenv("CORE_API_URL", cls.core_api_url).rstrip("/"),
            core_api_key=os.getenv("CORE_API_KEY", ""),
            service_jwt_secret=os.getenv("SERVICE_JWT_SECRET", ""),
            public_api_url=os.getenv("PUBLIC_API_URL", cls.public_api_url).rstrip("/"),
            frontend_url=os.getenv("FRONTEND_URL", cls.frontend_url).rstrip("/"),
            currency_id=os.getenv("MP_CURRENCY_ID", cls.currency_id),
            http_timeout=timeout,
            log_level=os.getenv("LOG_LEVEL", cls.log_level).upper(),
        )
