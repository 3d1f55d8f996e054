from __future__ import annotations

from flask import Blueprint, abort, current_app, jsonify, redirect, request, url_for

from app.gamenight.db import db_session
from app.gamenight.errors import ValidationError
from app.gamenight.guard import current_user_id, login_required
from app.gamenight.modules.users.service import get_user, list_users, set_picture, update_profile, user_to_dict
from app.gamenight.storage import allowed_image, build_picture_key, storage_from_config

bp = Blueprint("users", __name__)
picture_bp = Blueprint("picture", __name__)


@bp.get("")
def users_list():
    s = db_session()
    return jsonify([user_to_dict(u) for u in list_users(s)])


@bp.get("/<int:user_id>")
def user_detail(user_id: int):
    s = db_session()
    return jsonify(user_to_dict(get_user(s, user_id)))


@bp.post("/<int:user_id>")
@login_required
def user_update(user_id: int):
    if user_id != current_user_id():
        abort(403)
    s = db_session()
    user = get_user(s, user_id)
    payload = {k: request.form.get(k) for k in ("first_name", "last_name", "equipment") if k in request.form}
    update_profile(s, user, payload)
    s.commit()
    return redirect(url_for("pages.user_profile", user_id=user_id))


@picture_bp.post("")
@login_required
def picture_upload():
    user_id = current_user_id()
    f = request.files.get("picture")
    if not f or not f.filename:
        raise ValidationError(["No picture uploaded."])
    if not allowed_image(f.filename):
        raise ValidationError(["Invalid file type (images only)."])

    s = db_session()
    user = get_user(s, user_id)
    data = f.read()
    key = build_picture_key(user.id, f.filename)
    storage = storage_from_config(current_app.config)
    storage.put_bytes(key, data, content_type=f.mimetype)
    set_picture(s, user, storage.public_url(key), key)
    s.commit()
    current_app.logger.info("Stored picture for user_id=%s key=%s (%d bytes)", user.id, key, len(data))
    return redirect(url_for("pages.user_profile", user_id=user.id))
