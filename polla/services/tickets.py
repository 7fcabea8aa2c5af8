"""Admin tickets (cartilla): the final results image that closes a window."""

import uuid

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from polla.models.domain import AdminTicket
from polla.services import windows as window_service
from polla.services.errors import AuthorizationError, ValidationError
from polla.services.identity import CurrentUser
from polla.services.storage import StorageClient, decode_image_or_raise

logger = structlog.get_logger(__name__)


async def submit_cartilla(
    session: AsyncSession,
    caller: CurrentUser,
    image_data: str | None,
    storage: StorageClient,
    window_id: str | None = None,
) -> str:
    """
    Store the cartilla image and finish the open window.

    Returns:
        Storage path of the uploaded image

    Raises:
        AuthorizationError: Caller is not an admin
        ValidationError: No image, no open window, malformed image
        StorageError: Upload failed
    """
    if not caller.is_admin:
        raise AuthorizationError("Solo admin")
    if not image_data:
        raise ValidationError("Falta imagen de cartilla")

    window = await window_service.get_open_window(session, window_id)
    if window is None:
        raise ValidationError("No hay ventana abierta")

    image = decode_image_or_raise(image_data)
    path = await storage.upload(
        f"admin_tickets/{window.id}/{uuid.uuid4()}", image.content, image.mime
    )

    session.add(AdminTicket(window_id=window.id, image_url=path))
    await session.flush()

    await window_service.finish_window(session, window)

    logger.info("cartilla_submitted", window_id=window.id, path=path)
    return path
