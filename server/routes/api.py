from flask import Blueprint, current_app, jsonify

from dbapi import ArticleAPI

bp = Blueprint('api', __name__)


def _articles() -> ArticleAPI:
    return ArticleAPI(current_app.extensions["blogdb"])


@bp.route('/api/<email>/articles')
def listArticles(email: str):
    # no index yet is an empty listing, not an error
    items = [a.toDict() for a in _articles().loadIndex(email)]
    return jsonify({"items": items, "total": len(items)})


@bp.route('/api/<email>/articles/<path:permalink>')
def showArticle(email: str, permalink: str):
    article = _articles().loadByPermalink(email, permalink)
    return jsonify(article.toDict())
