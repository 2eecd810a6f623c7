"""Medical-record uploads: size gate and base64 data-URL encoding."""
import base64
import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Union

from registration import config
from registration.models import Attachment


class AttachmentTooLargeError(ValueError):
    """Raised when the selected files exceed the total upload limit."""

    def __init__(self, total_bytes: int, limit_bytes: int = config.MAX_TOTAL_UPLOAD_BYTES):
        super().__init__(
            f"The total file size cannot exceed {limit_bytes // (1024 * 1024)} MB. "
            f"Please select smaller files."
        )
        self.total_bytes = total_bytes
        self.limit_bytes = limit_bytes


@dataclass
class SelectedFile:
    name: str
    content: bytes
    content_type: str = ""

    @property
    def size(self) -> int:
        return len(self.content)

    @classmethod
    def from_path(cls, path: Union[str, Path]) -> "SelectedFile":
        path = Path(path)
        content_type = mimetypes.guess_type(path.name)[0] or ""
        return cls(name=path.name, content=path.read_bytes(), content_type=content_type)


class FileSelection:
    """The current file picker selection."""

    def __init__(self, limit_bytes: int = config.MAX_TOTAL_UPLOAD_BYTES):
        self.limit_bytes = limit_bytes
        self.files: List[SelectedFile] = []

    def select(self, files: Iterable[SelectedFile]) -> str:
        """
        Replace the selection.

        Returns:
            Summary line for display ("" when nothing selected)

        Raises:
            AttachmentTooLargeError: Selection rejected and cleared
        """
        files = list(files)
        total = sum(f.size for f in files)
        if total > self.limit_bytes:
            self.files = []
            raise AttachmentTooLargeError(total, self.limit_bytes)
        self.files = files
        return summarize(files)

    def clear(self) -> None:
        self.files = []

    def encode(self) -> List[Attachment]:
        return encode_files(self.files)


def summarize(files: List[SelectedFile]) -> str:
    if not files:
        return ""
    total_mb = sum(f.size for f in files) / 1024 / 1024
    names = ", ".join(f.name for f in files)
    return f"Selected: {names} ({total_mb:.2f} MB)"


def encode_files(files: Iterable[SelectedFile]) -> List[Attachment]:
    """Encode each file as {name, type, data:<mime>;base64,...}."""
    attachments = []
    for f in files:
        mime = f.content_type or "application/octet-stream"
        data = f"data:{mime};base64," + base64.b64encode(f.content).decode("ascii")
        attachments.append(Attachment(name=f.name, type=f.content_type, data=data))
    return attachments
