"""Object storage client.

Talks to a Supabase-compatible storage REST API:
- binary upload by path (overwriting)
- short-lived signed URLs for private reads
"""

import base64
import binascii
import re
from dataclasses import dataclass

import httpx
import structlog

from polla.config import get_settings
from polla.services.errors import StorageError, ValidationError

logger = structlog.get_logger(__name__)

DATA_URL_RE = re.compile(r"^data:(.+);base64,(.*)$", re.DOTALL)


@dataclass
class DecodedImage:
    """Binary payload extracted from a data URL."""

    mime: str
    content: bytes


def parse_data_url(data_url: str) -> DecodedImage | None:
    """
    Decode a ``data:<mime>;base64,<payload>`` URL.

    Returns:
        DecodedImage, or None if the string is not a valid base64 data URL
    """
    match = DATA_URL_RE.match(data_url or "")
    if not match:
        return None
    mime, payload = match.groups()
    try:
        content = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError):
        return None
    return DecodedImage(mime=mime, content=content)


def decode_image_or_raise(data_url: str) -> DecodedImage:
    decoded = parse_data_url(data_url)
    if decoded is None:
        raise ValidationError("Imagen inválida")
    return decoded


class StorageClient:
    """
    Async client for the object storage bucket.

    Usable as an async context manager; otherwise an HTTP client is created
    lazily and must be closed with ``aclose``.
    """

    def __init__(
        self,
        base_url: str | None = None,
        service_key: str | None = None,
        bucket: str | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        settings = get_settings()
        self.base_url = (base_url or settings.storage_url).rstrip("/")
        self.service_key = service_key or settings.storage_service_key
        self.bucket = bucket or settings.storage_bucket
        self.signed_url_expiry = settings.signed_url_expiry_seconds
        self._http_client = http_client

    async def __aenter__(self) -> "StorageClient":
        await self._get_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=30.0)
        return self._http_client

    async def aclose(self) -> None:
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.service_key}",
            "apikey": self.service_key,
        }

    async def upload(self, path: str, content: bytes, content_type: str) -> str:
        """
        Upload bytes to ``path`` in the bucket, overwriting any existing object.

        Returns:
            The storage path

        Raises:
            StorageError: If the upload fails
        """
        url = f"{self.base_url}/storage/v1/object/{self.bucket}/{path}"
        client = await self._get_client()
        try:
            response = await client.post(
                url,
                content=content,
                headers={
                    **self._headers(),
                    "Content-Type": content_type,
                    "x-upsert": "true",
                },
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error("storage_upload_failed", path=path, error=str(e))
            raise StorageError("No se pudo subir la imagen") from e

        logger.info("storage_uploaded", path=path, size=len(content))
        return path

    async def create_signed_url(self, path: str, expires_in: int | None = None) -> str:
        """
        Create a signed URL granting temporary read access to ``path``.

        Raises:
            StorageError: If the storage service refuses
        """
        url = f"{self.base_url}/storage/v1/object/sign/{self.bucket}/{path}"
        client = await self._get_client()
        try:
            response = await client.post(
                url,
                json={"expiresIn": expires_in or self.signed_url_expiry},
                headers=self._headers(),
            )
            response.raise_for_status()
            signed = response.json().get("signedURL")
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("storage_sign_failed", path=path, error=str(e))
            raise StorageError("No se pudo firmar la imagen") from e

        if not signed:
            raise StorageError("No se pudo firmar la imagen")
        return f"{self.base_url}/storage/v1{signed}"
