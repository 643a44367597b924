"""Record shapes exchanged with the message store.

Message and conversation records arrive as plain dictionaries. These
``TypedDict`` definitions document the fields this package reads and writes;
any other keys are carried through untouched.
"""

from typing import TypedDict


class Thumbnail(TypedDict, total=False):
    path: str
    # True when the file is shared with the quoted message's own thumbnail
    copied: bool
    content_type: str
    width: int
    height: int
    data: bytes


class Attachment(TypedDict, total=False):
    file_name: str
    content_type: str
    path: str
    data: bytes
    digest: str
    size: int
    width: int
    height: int
    screenshot_path: str
    thumbnail: Thumbnail
    is_raw: bool


class QuotedAttachment(TypedDict, total=False):
    content_type: str
    file_name: str
    thumbnail: Thumbnail


class Quote(TypedDict, total=False):
    id: int
    author: str
    text: str
    attachments: list[QuotedAttachment]


class AvatarImage(TypedDict, total=False):
    path: str


class ContactAvatarField(TypedDict, total=False):
    avatar: AvatarImage
    is_profile: bool


class SharedContact(TypedDict, total=False):
    name: str
    avatar: ContactAvatarField


class LinkPreview(TypedDict, total=False):
    url: str
    title: str
    image: Attachment


class Message(TypedDict, total=False):
    id: str
    attachments: list[Attachment]
    quote: Quote
    contact: list[SharedContact]
    preview: list[LinkPreview]


class Conversation(TypedDict, total=False):
    id: str
    avatar: AvatarImage
    profile_avatar: AvatarImage
