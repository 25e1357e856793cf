import json
import logging
from typing import Dict, List, Tuple

from config import ARTICLES_BUCKET, USERDATA_BUCKET
from db import DB
from errors import NotFound, StorageError
from models import AccessToken, AccountInfo, Article, fromJSON, generateID, toJSON

logger = logging.getLogger(__name__)


def articlePrefix(email: str) -> str:
    return email + ":article:"


def indexKey(email: str) -> str:
    return email + ":index"


def tokenKey(email: str) -> str:
    return email + ":token"


def cursorKey(email: str, path: str) -> str:
    return email + path + ":current_cursor"


def _decode(raw: bytes, key) -> object:
    try:
        return fromJSON(raw)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise StorageError(f"corrupt value under {key!r}: {e}") from e


def _record(raw: bytes, key) -> dict:
    value = _decode(raw, key)
    if not isinstance(value, dict):
        raise StorageError(f"value under {key!r} is not a record")
    return value


def sortKey(article: Article) -> Tuple[int, int, str]:
    """(dated, epoch, permalink); undated articles sort below every dated one."""
    try:
        return (1, int(article.timeStamp), article.permalink)
    except ValueError:
        return (0, 0, article.permalink)


class ArticleAPI:
    """Articles and per-owner indexes in the UserArticles bucket."""

    def __init__(self, db: DB):
        self.db = db

    def save(self, article: Article) -> None:
        if not article.id:
            raise ValueError("article has no ID, call generateID first")
        with self.db.update() as tx:
            tx.bucket(ARTICLES_BUCKET).put(article.id, toJSON(article.toDict()))

    def delete(self, article: Article) -> None:
        with self.db.update() as tx:
            tx.bucket(ARTICLES_BUCKET).delete(article.id)

    def load(self, id: str) -> Article:
        with self.db.view() as tx:
            raw = tx.bucket(ARTICLES_BUCKET).get(id)
        if raw is None:
            raise NotFound(f"article not found: {id}")
        value = _decode(raw, id)
        if not isinstance(value, dict):
            raise NotFound(f"not an article: {id}")
        article = Article.fromDict(value)
        if not article.id:
            raise NotFound(f"article not found: {id}")
        return article

    def deleteArticles(self, email: str) -> int:
        with self.db.update() as tx:
            n = tx.bucket(ARTICLES_BUCKET).deletePrefix(articlePrefix(email))
        logger.info("deleted %d articles of %s", n, email)
        return n

    def deleteFolder(self, email: str, path: str) -> int:
        """Remove every article stored under the folder `path`."""
        prefix = generateID(email, path.rstrip("/") + "/")
        with self.db.update() as tx:
            return tx.bucket(ARTICLES_BUCKET).deletePrefix(prefix)

    def loadIndex(self, email: str) -> List[Article]:
        key = indexKey(email)
        with self.db.view() as tx:
            raw = tx.bucket(ARTICLES_BUCKET).get(key)
        if raw is None:
            return []
        entries = _decode(raw, key)
        if not isinstance(entries, list):
            raise StorageError(f"index under {key!r} is not a list")
        return [Article.fromDict(d) for d in entries if isinstance(d, dict)]

    def loadByPermalink(self, email: str, permalink: str) -> Article:
        for entry in self.loadIndex(email):
            if entry.permalink == permalink:
                return self.load(entry.id)
        raise NotFound(f"no article {permalink!r} for {email}")

    def reindex(self, email: str) -> List[Article]:
        """
        Rebuild the owner's index from scratch, most recent first.

        The scan and the write are two transactions: an article saved in
        between shows up on the next reindex.
        """
        articles: Dict[Tuple[int, int, str], Article] = {}
        with self.db.view() as tx:
            rows = tx.bucket(ARTICLES_BUCKET).scan(articlePrefix(email))
        for key, raw in rows:
            a = Article.fromDict(_record(raw, key))
            # keep the index small
            a.content = ""
            articles[sortKey(a)] = a

        index = [articles[k] for k in sorted(articles, reverse=True)]

        with self.db.update() as tx:
            tx.bucket(ARTICLES_BUCKET).put(indexKey(email), toJSON([a.toDict() for a in index]))
        logger.info("reindexed %d articles of %s", len(index), email)
        return index


class UserAPI:
    """Account info, tokens, uid mapping and sync cursors in the UserData bucket."""

    def __init__(self, db: DB):
        self.db = db

    def saveUserData(self, info: AccountInfo, token: AccessToken) -> None:
        with self.db.update() as tx:
            b = tx.bucket(USERDATA_BUCKET)
            b.put(tokenKey(info.email), toJSON(token.toDict()))
            b.put(info.email, toJSON(info.toDict()))
            b.put(str(info.uid), info.email)

    def _get(self, key: str) -> bytes:
        with self.db.view() as tx:
            raw = tx.bucket(USERDATA_BUCKET).get(key)
        if not raw:
            raise NotFound(f"nothing stored under {key!r}")
        return raw

    def loadUserData(self, email: str) -> AccountInfo:
        return AccountInfo.fromDict(_record(self._get(email), email))

    def loadUserToken(self, email: str) -> AccessToken:
        key = tokenKey(email)
        return AccessToken.fromDict(_record(self._get(key), key))

    def getUserEmailByUID(self, uid: int) -> str:
        return self._get(str(uid)).decode("utf-8")

    def loadUserTokenByUID(self, uid: int) -> AccessToken:
        return self.loadUserToken(self.getUserEmailByUID(uid))

    def saveCurrentCursor(self, email: str, path: str, cursor: str) -> None:
        with self.db.update() as tx:
            tx.bucket(USERDATA_BUCKET).put(cursorKey(email, path), cursor)

    def getCurrentCursor(self, email: str, path: str) -> str:
        return self._get(cursorKey(email, path)).decode("utf-8")

    def delete(self, bucket: str, key: str) -> None:
        with self.db.update() as tx:
            tx.bucket(bucket).delete(key)

    def disconnect(self, email: str) -> int:
        """
        Forget everything stored for `email`: account info, token, uid
        mapping, cursors, articles and index. Returns the number of articles
        removed.
        """
        try:
            info = self.loadUserData(email)
        except NotFound:
            info = None

        with self.db.update() as tx:
            b = tx.bucket(USERDATA_BUCKET)
            b.delete(tokenKey(email))
            b.delete(email)
            if info is not None and info.uid:
                b.delete(str(info.uid))
            for key, _ in b.scan(email + "/"):
                if key.endswith(b":current_cursor"):
                    b.delete(key)
            articles = tx.bucket(ARTICLES_BUCKET)
            n = articles.deletePrefix(articlePrefix(email))
            articles.delete(indexKey(email))
        logger.info("disconnected %s, %d articles removed", email, n)
        return n
