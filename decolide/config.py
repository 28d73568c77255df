import os
from dataclasses import dataclass
from dotenv import load_dotenv

load_dotenv()  # loads .env for local dev

@dataclass(frozen=True)
class Settings:
    env: str = os.getenv("ENV", "local")
    service_name: str = os.getenv("SERVICE_NAME", "decolide-orders")

    # Shopify Admin API (order source + proof metafields)
    shopify_store_name: str = os.getenv("SHOPIFY_STORE_NAME", "")
    shopify_access_token: str = os.getenv("SHOPIFY_ADMIN_API_ACCESS_TOKEN", "")
    shopify_api_version: str = os.getenv("SHOPIFY_API_VERSION", "2024-04")
    order_fetch_limit: int = int(os.getenv("ORDER_FETCH_LIMIT", "50"))
    order_source_stub: bool = bool(os.getenv("ORDER_SOURCE_STUB"))

    # Pipeline policy
    stall_threshold_days: float = float(os.getenv("STALL_THRESHOLD_DAYS", "3"))
    delivery_grace_days: float = float(os.getenv("DELIVERY_GRACE_DAYS", "2"))
    placeholder_image_url: str = os.getenv(
        "PLACEHOLDER_IMAGE_URL", "https://placehold.co/600x400.png"
    )

    # Proof photo staging (DigitalOcean Spaces)
    spaces_region: str = os.getenv("SPACES_REGION", "")
    spaces_bucket: str = os.getenv("SPACES_BUCKET", "")
    spaces_key: str = os.getenv("SPACES_KEY", "")
    spaces_secret: str = os.getenv("SPACES_SECRET", "")

    # Stalled-orders summary
    anthropic_api_key: str = os.getenv("ANTHROPIC_API_KEY", "")
    summary_model: str = os.getenv("SUMMARY_MODEL", "claude-haiku-4-5-20251001")

settings = Settings()
