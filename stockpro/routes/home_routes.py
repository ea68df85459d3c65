import os

from flask import Blueprint, abort, current_app, send_from_directory

from stockpro.errors import NotFoundError


home_bp = Blueprint("home", __name__)

INDEX_FILE = "index.html"


@home_bp.route("/", defaults={"path": ""})
@home_bp.route("/<path:path>")
def spa(path: str):
    if path == "api" or path.startswith("api/"):
        abort(404)

    static_dir = str(current_app.config.get("STATIC_DIR") or "")
    if not os.path.isfile(os.path.join(static_dir, INDEX_FILE)):
        raise NotFoundError(
            code="frontend_not_built",
            message_key="frontend_not_built",
            payload={"static_dir": static_dir},
        )

    # Client-side routes fall back to index.html.
    if path and os.path.isfile(os.path.join(static_dir, path)):
        return send_from_directory(static_dir, path)
    return send_from_directory(static_dir, INDEX_FILE)
