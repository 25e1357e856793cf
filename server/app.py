from flask import Flask

from config import BUCKETS, loadConfig
from db import DB
from errors import register_error_handlers
from routes.admin import bp as admin_bp
from routes.api import bp as api_bp


def create_app(db: DB = None, settings: dict = None):
    """
    Build the app around an already opened store. Without one, the store
    named by the settings is opened here; closing it is the caller's job.
    """
    settings = settings or loadConfig()
    if db is None:
        db = DB(settings["db_file"]).connect(BUCKETS)

    app = Flask(__name__)
    app.config['JSON_SORT_KEYS'] = False
    app.json.sort_keys = False
    app.secret_key = settings["secret_key"]
    app.config["ADMIN_TOKEN"] = settings.get("admin_token", "")
    app.extensions["blogdb"] = db

    app.register_blueprint(api_bp)
    app.register_blueprint(admin_bp)

    register_error_handlers(app)
    return app
