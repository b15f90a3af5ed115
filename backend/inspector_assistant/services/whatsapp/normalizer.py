"""
Inbound message normalization.

Turns the raw webhook message into the content stored on the session:
text verbatim, media downloaded and stored with a placeholder tag,
anything else as a placeholder naming its type.
"""

import time
import logging
from dataclasses import dataclass
from typing import Optional

from ...models import WebhookMessage

logger = logging.getLogger(__name__)

MEDIA_TYPES = ("image", "video")


@dataclass
class NormalizedMessage:
    content: str
    media_id: Optional[int] = None


async def normalize_message(message: WebhookMessage, inspector_id: int, store, client) -> NormalizedMessage:
    """
    Normalize one inbound message.

    Args:
        message: Parsed webhook message
        inspector_id: Owner of any stored media
        store: Domain store gateway (store_media)
        client: Messaging gateway (fetch_bytes)
    """
    message_type = message.type or "unknown"

    if message_type == "text":
        return NormalizedMessage(content=message.text_content)

    if message_type in MEDIA_TYPES:
        media_url = message.media_url
        if not media_url:
            logger.warning(f"Inbound {message_type} from inspector {inspector_id} has no URL")
            return NormalizedMessage(content=f"[Received {message_type} but URL is missing]")

        media = message.media
        filename = (media.filename if media else None) or f"{message_type}_{int(time.time() * 1000)}"
        mimetype = (media.mimetype if media else None) or f"{message_type}/*"

        data = await client.fetch_bytes(media_url)
        media_id = store.store_media(
            inspector_id=inspector_id,
            media_type=message_type,
            filename=filename,
            mimetype=mimetype,
            file_data=data,
        )
        logger.info(f"Media downloaded and stored with ID: {media_id}")
        return NormalizedMessage(content=f"[Uploaded {message_type}]", media_id=media_id)

    return NormalizedMessage(content=f"[Received {message_type} message]")
