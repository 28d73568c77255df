"""
Proof photo staging in DigitalOcean Spaces (S3-compatible).

Shopify's fileCreate only accepts a fetchable source URL, so the raw
photo bytes are put here first and Shopify pulls them from the bucket.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from decolide.errors import ConfigurationError, UpstreamError


@dataclass(frozen=True)
class SpacesConfig:
    region: str
    bucket: str
    key: str
    secret: str

    @classmethod
    def from_settings(cls, settings: Any) -> "SpacesConfig":
        return cls(
            region=settings.spaces_region,
            bucket=settings.spaces_bucket,
            key=settings.spaces_key,
            secret=settings.spaces_secret,
        )

    def missing(self) -> list[str]:
        return [
            k for k, v in {
                "SPACES_REGION": self.region,
                "SPACES_BUCKET": self.bucket,
                "SPACES_KEY": self.key,
                "SPACES_SECRET": self.secret,
            }.items() if not v
        ]


class SpacesStorage:
    def __init__(self, config: SpacesConfig, s3: Optional[Any] = None):
        missing = config.missing()
        if missing:
            raise ConfigurationError(f"Missing Spaces env vars: {', '.join(missing)}")
        self.config = config
        self._s3 = s3

    def _get_s3(self):
        if self._s3 is None:
            # Region endpoint (not the bucket endpoint) so object URLs come out
            # virtual-hosted: https://{bucket}.{region}.digitaloceanspaces.com/{key}
            region_endpoint = f"https://{self.config.region}.digitaloceanspaces.com"
            session = boto3.session.Session()
            self._s3 = session.client(
                "s3",
                region_name=self.config.region,
                endpoint_url=region_endpoint,
                aws_access_key_id=self.config.key,
                aws_secret_access_key=self.config.secret,
                config=Config(s3={"addressing_style": "virtual"}),
            )
        return self._s3

    def public_url(self, key: str) -> str:
        return f"https://{self.config.bucket}.{self.config.region}.digitaloceanspaces.com/{key}"

    def put_public(self, key: str, content: bytes, content_type: str) -> str:
        """Upload bytes with a public-read ACL and return their URL."""
        s3 = self._get_s3()
        try:
            s3.put_object(
                Bucket=self.config.bucket,
                Key=key,
                Body=content,
                ContentType=content_type,
                ACL="public-read",
            )
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code")
            raise UpstreamError("Proof photo upload to Spaces failed", detail=str(code or e)) from e
        except BotoCoreError as e:
            raise UpstreamError("Proof photo upload to Spaces failed", detail=str(e)[:200]) from e
        return self.public_url(key)
