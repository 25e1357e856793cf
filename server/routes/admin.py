import hmac

from flask import Blueprint, abort, current_app, jsonify, request

from dbapi import ArticleAPI, UserAPI

bp = Blueprint("admin", __name__)


@bp.before_request
def requireAdminToken():
    # an empty ADMIN_TOKEN leaves the routes open, for local use
    token = current_app.config.get("ADMIN_TOKEN")
    if not token:
        return
    given = request.headers.get("Authorization", "")
    if not hmac.compare_digest(given, f"Bearer {token}"):
        abort(403)


@bp.route("/admin/<email>/reindex", methods=["POST"])
def reindex(email: str):
    index = ArticleAPI(current_app.extensions["blogdb"]).reindex(email)
    return jsonify({"total": len(index)})


@bp.route("/admin/<email>/disconnect", methods=["POST"])
def disconnect(email: str):
    deleted = UserAPI(current_app.extensions["blogdb"]).disconnect(email)
    return jsonify({"deleted": deleted})
