import json
import logging
from datetime import datetime
from pathlib import PurePosixPath
from typing import Any, Dict, Iterable, Tuple

import yaml

from config import HEADER_CLOSE, HEADER_OPEN, MARKDOWN_SUFFIXES
from dbapi import ArticleAPI
from errors import MalformedHeader, NotFound
from models import Article, ArticleHeader, DeltaEntry, FileMetadata, generateID
from pipeline import renderContent
from utils import dateString, epochFromDate, parseModified, permalinkFromPath, titleFromPermalink

logger = logging.getLogger(__name__)


def _parseHeader(text: str) -> Any:
    # JSON is the documented form; plain "key: value" lines are read as YAML
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return yaml.safe_load(text)


def extractEntryData(content: bytes) -> Article:
    """New Article carrying the overrides of the embedded header, if any."""
    article = Article()
    start = content.find(HEADER_OPEN)
    if start < 0:
        return article
    end = content.find(HEADER_CLOSE, start + len(HEADER_OPEN))
    if end < 0:
        return article
    text = content[start + len(HEADER_OPEN):end].decode("utf-8", errors="replace")
    try:
        header = ArticleHeader.parse(_parseHeader(text))
    except (yaml.YAMLError, MalformedHeader) as e:
        logger.warning("ignoring malformed article header: %s", e)
        return article
    article.title = header.title
    article.permalink = header.permalink
    article.createdAt = header.createdAt
    article.summary = header.summary
    return article


def sanitizeArticleMetadata(article: Article) -> None:
    """Fill empty permalink, title and creation date from the file metadata."""
    if not article.permalink:
        article.permalink = permalinkFromPath(article.path)

    if not article.title:
        article.title = titleFromPermalink(article.permalink)

    if not article.createdAt:
        t = parseModified(article.modified)
        if t is None:
            logger.warning("unparseable modification time %r for post %s", article.modified, article.path)
            t = datetime.min
        article.createdAt = dateString(t)


def parseTimeStamp(article: Article) -> None:
    try:
        article.timeStamp = str(epochFromDate(article.createdAt))
    except ValueError as e:
        article.timeStamp = ""
        logger.warning("%s for post %s", e, article.path)


def parseEntry(meta: FileMetadata, content: bytes) -> Article:
    article = extractEntryData(content)
    html, summary = renderContent(content)
    article.content = html
    # a summary from the header wins over the first paragraph
    if not article.summary:
        article.summary = summary
    article.meta = meta
    sanitizeArticleMetadata(article)
    parseTimeStamp(article)
    return article


def importEntry(articles: ArticleAPI, email: str, meta: FileMetadata, content: bytes) -> Article:
    article = parseEntry(meta, content)
    article.generateID(email)
    articles.save(article)
    return article


def isMarkdown(meta: FileMetadata) -> bool:
    return not meta.isDir and PurePosixPath(meta.path).suffix.lower() in MARKDOWN_SUFFIXES


def importEntries(
    articles: ArticleAPI,
    email: str,
    entries: Iterable[Tuple[FileMetadata, bytes]],
    force: bool = False,
    reindex: bool = True,
) -> Dict[str, Any]:
    """
    Ingest a batch of (metadata, content) pairs for one owner.

    Directories and non-markdown files are skipped, and so are files whose
    stored article already has the same revision unless `force` is set.
    The owner's index is rebuilt once at the end if anything changed.
    """
    inserted = updated = skipped = 0
    for meta, content in entries:
        if not isMarkdown(meta):
            skipped += 1
            continue
        try:
            existing = articles.load(generateID(email, meta.path))
        except NotFound:
            existing = None
        if existing is not None and not force and meta.rev and existing.meta.rev == meta.rev:
            skipped += 1
            continue
        importEntry(articles, email, meta, content)
        if existing is None:
            inserted += 1
        else:
            updated += 1

    if reindex and (inserted or updated):
        articles.reindex(email)

    logger.info("import for %s: %d inserted, %d updated, %d skipped", email, inserted, updated, skipped)
    return {"inserted": inserted, "updated": updated, "skipped": skipped, "force": bool(force)}


def applyDelta(articles: ArticleAPI, email: str, entries: Iterable[DeltaEntry]) -> Dict[str, Any]:
    """Apply one file-sync delta: removals first, then a batch import, then one reindex."""
    deleted = 0
    changes = []
    for entry in entries:
        if entry.deleted:
            path = entry.meta.path if entry.meta is not None else entry.path
            articles.delete(Article(id=generateID(email, path)))
            articles.deleteFolder(email, path)
            deleted += 1
        else:
            changes.append((entry.meta, entry.content))

    result = importEntries(articles, email, changes, reindex=False)
    if deleted or result["inserted"] or result["updated"]:
        articles.reindex(email)
    result["deleted"] = deleted
    return result
