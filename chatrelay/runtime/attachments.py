"""File attachments sent inline with a user message."""

import base64
import mimetypes
from pathlib import Path
from typing import List, Optional, Sequence

from pydantic import BaseModel, Field

from chatrelay.core.config import settings
from chatrelay.core.exceptions import AttachmentError
from chatrelay.core.logging import setup_logger
from chatrelay.models.conversation import generate_id

logger = setup_logger(__name__)

DEFAULT_MIME_TYPE = "application/octet-stream"


class Attachment(BaseModel):
    """A file attached to an outgoing message, held as a data URL."""

    id: str = Field(default_factory=generate_id)
    name: str
    size: int = Field(..., ge=0)
    mime_type: str = DEFAULT_MIME_TYPE
    content: str = Field(..., description="data:<mime>;base64,<payload>")

    @property
    def is_image(self) -> bool:
        return self.mime_type.startswith("image/")

    @classmethod
    def from_bytes(
        cls,
        name: str,
        data: bytes,
        mime_type: Optional[str] = None,
        max_size_mb: int = settings.MAX_ATTACHMENT_SIZE_MB,
    ) -> "Attachment":
        """
        Build an attachment from raw bytes.

        Raises:
            AttachmentError: If the file exceeds the per-file size limit
        """
        if len(data) > max_size_mb * 1024 * 1024:
            raise AttachmentError(
                f'The file "{name}" exceeds the maximum size of {max_size_mb}MB.',
                details={"name": name, "size": len(data)},
            )
        mime_type = mime_type or mimetypes.guess_type(name)[0] or DEFAULT_MIME_TYPE
        encoded = base64.b64encode(data).decode("ascii")
        return cls(
            name=name,
            size=len(data),
            mime_type=mime_type,
            content=f"data:{mime_type};base64,{encoded}",
        )

    @classmethod
    def from_path(
        cls, path, max_size_mb: int = settings.MAX_ATTACHMENT_SIZE_MB
    ) -> "Attachment":
        path = Path(path)
        return cls.from_bytes(path.name, path.read_bytes(), max_size_mb=max_size_mb)


def check_attachment_count(
    files: Sequence[Attachment], max_files: int = settings.MAX_ATTACHMENTS
) -> None:
    if len(files) > max_files:
        raise AttachmentError(
            f"You can attach at most {max_files} files.",
            details={"count": len(files), "max_files": max_files},
        )


def render_attachments(files: Sequence[Attachment]) -> str:
    """Render attachments as the inline tagged text blocks sent to the model."""
    blocks: List[str] = []
    for file in files:
        tag = "Attached image" if file.is_image else "Attached document"
        blocks.append(f"[{tag}: {file.name}]\n{file.content}")
    return "\n\n".join(blocks)


def compose_user_content(
    content: str, files: Optional[Sequence[Attachment]] = None
) -> str:
    """Append rendered attachments to the typed text, separated by a blank line."""
    if not files:
        return content
    check_attachment_count(files)
    logger.debug(f"Inlining {len(files)} attachment(s) into the outgoing message")
    return f"{content}\n\n{render_attachments(files)}"
