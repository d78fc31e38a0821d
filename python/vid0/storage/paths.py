"""Storage path building for chat attachments.

Path layout: ``{user_id}/{chat_id}/{uuid}.{ext}``. Only the extension of the
client-supplied file name is kept.
"""

import re
from uuid import UUID, uuid4

_EXT_PATTERN = re.compile(r"^[a-z0-9]{1,10}$")


def file_extension(file_name: str) -> str:
    """Lower-cased extension of ``file_name``, or ``bin`` when it has none."""
    _, dot, ext = file_name.rpartition(".")
    ext = ext.lower()
    if not dot or not _EXT_PATTERN.match(ext):
        return "bin"
    return ext


def build_attachment_path(user_id: UUID, chat_id: UUID, file_name: str) -> str:
    return f"{user_id}/{chat_id}/{uuid4()}.{file_extension(file_name)}"


def path_belongs_to(path: str, user_id: UUID, chat_id: UUID) -> bool:
    """Whether a client-reported path sits under the caller's chat prefix."""
    return path.startswith(f"{user_id}/{chat_id}/") and ".." not in path
