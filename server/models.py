"""Records handled by the blog core and their JSON forms."""

import json
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, Optional

from errors import MalformedHeader

logger = logging.getLogger(__name__)


def toJSON(d: Dict[str, Any]) -> bytes:
    return json.dumps(d, ensure_ascii=False).encode("utf-8")


def fromJSON(raw: bytes) -> Any:
    return json.loads(raw.decode("utf-8"))


@dataclass
class FileMetadata:
    """File metadata as supplied by the file-sync service. Read-only for us."""

    path: str = ""
    modified: str = ""            # "Thu, 04 Mar 2021 10:20:30 +0000"
    rev: str = ""
    revision: int = 0
    size: str = ""
    bytes: int = 0
    isDir: bool = False
    mimeType: str = ""
    isDeleted: bool = False

    @classmethod
    def fromDict(cls, d: Dict[str, Any]) -> "FileMetadata":
        return cls(
            path=d.get("path", ""),
            modified=d.get("modified", ""),
            rev=d.get("rev", ""),
            revision=int(d.get("revision", 0) or 0),
            size=d.get("size", ""),
            bytes=int(d.get("bytes", 0) or 0),
            isDir=bool(d.get("is_dir", False)),
            mimeType=d.get("mime_type", ""),
            isDeleted=bool(d.get("is_deleted", False)),
        )

    def toDict(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "modified": self.modified,
            "rev": self.rev,
            "revision": self.revision,
            "size": self.size,
            "bytes": self.bytes,
            "is_dir": self.isDir,
            "mime_type": self.mimeType,
            "is_deleted": self.isDeleted,
        }


@dataclass
class Article:
    id: str = ""
    content: str = ""
    title: str = ""
    createdAt: str = ""           # YYYY-MM-DD
    timeStamp: str = ""           # decimal unix epoch, or "" when createdAt is unparseable
    permalink: str = ""
    summary: str = ""
    meta: FileMetadata = field(default_factory=FileMetadata)

    @property
    def path(self) -> str:
        return self.meta.path

    @property
    def modified(self) -> str:
        return self.meta.modified

    def generateID(self, email: str) -> str:
        self.id = generateID(email, self.meta.path)
        return self.id

    @classmethod
    def fromDict(cls, d: Dict[str, Any]) -> "Article":
        return cls(
            id=d.get("ID", ""),
            content=d.get("Content", ""),
            title=d.get("title", ""),
            createdAt=d.get("created-at", ""),
            timeStamp=d.get("timestamp", ""),
            permalink=d.get("permalink", ""),
            summary=d.get("summary", ""),
            meta=FileMetadata.fromDict(d),
        )

    def toDict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "ID": self.id,
            "Content": self.content,
            "title": self.title,
            "created-at": self.createdAt,
            "timestamp": self.timeStamp,
            "permalink": self.permalink,
            "summary": self.summary,
        }
        d.update(self.meta.toDict())
        return d


def generateID(email: str, path: str) -> str:
    return email + ":article:" + path


@dataclass
class ArticleHeader:
    """
    Optional overrides embedded at the top of a document:

        <!--
        {"title": "Hello", "permalink": "hello", "created-at": "2021-03-04"}
        -->

    Missing keys stay empty, unknown keys are ignored, a value of the wrong
    type rejects the whole header.
    """

    title: str = ""
    permalink: str = ""
    createdAt: str = ""
    summary: str = ""

    FIELDS = {
        "title": "title",
        "permalink": "permalink",
        "created-at": "createdAt",
        "summary": "summary",
    }

    @classmethod
    def parse(cls, data: Any) -> "ArticleHeader":
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise MalformedHeader(f"header must be a mapping, got {type(data).__name__}")
        header = cls()
        for key, value in data.items():
            # case-insensitive field names
            key = key.lower() if isinstance(key, str) else key
            attr = cls.FIELDS.get(key)
            if attr is None:
                logger.debug("ignoring unknown header field %r", key)
                continue
            setattr(header, attr, _headerValue(key, value))
        return header


def _headerValue(key: str, value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    # YAML turns an unquoted 2021-03-04 into a date
    if key == "created-at" and isinstance(value, (date, datetime)):
        return value.strftime("%Y-%m-%d")
    raise MalformedHeader(f"header field {key!r} must be a string, got {type(value).__name__}")


@dataclass
class AccountInfo:
    uid: int = 0
    email: str = ""
    displayName: str = ""
    country: str = ""
    referralLink: str = ""

    @classmethod
    def fromDict(cls, d: Dict[str, Any]) -> "AccountInfo":
        return cls(
            uid=int(d.get("uid", 0) or 0),
            email=d.get("email", ""),
            displayName=d.get("display_name", ""),
            country=d.get("country", ""),
            referralLink=d.get("referral_link", ""),
        )

    def toDict(self) -> Dict[str, Any]:
        return {
            "uid": self.uid,
            "email": self.email,
            "display_name": self.displayName,
            "country": self.country,
            "referral_link": self.referralLink,
        }


@dataclass
class AccessToken:
    key: str = ""
    secret: str = ""

    @classmethod
    def fromDict(cls, d: Dict[str, Any]) -> "AccessToken":
        return cls(key=d.get("key", ""), secret=d.get("secret", ""))

    def toDict(self) -> Dict[str, Any]:
        return {"key": self.key, "secret": self.secret}


@dataclass
class DeltaEntry:
    """One change from the file-sync delta. `meta` is None when the file is gone."""

    path: str
    meta: Optional[FileMetadata] = None
    content: bytes = b""

    @property
    def deleted(self) -> bool:
        return self.meta is None or self.meta.isDeleted
