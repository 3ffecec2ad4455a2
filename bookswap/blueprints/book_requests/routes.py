from flask import Blueprint, request, jsonify

from ...errors import ValidationError
from ...models import BookRequest
from ...services import request_lifecycle
from ..auth.decorators import login_required, current_user_id
from ..common import _json, _str_field, paginate

bp = Blueprint("book_requests", __name__, url_prefix="/requests")

Status = BookRequest.Status


def _status_filter(query):
    status = (request.args.get("status") or "").strip().lower()
    if not status:
        return query
    if status not in Status.ALL:
        raise ValidationError("invalid_field", "Invalid status", field="status", allowed=list(Status.ALL))
    return query.filter(BookRequest.status == status)


# ---------- CREATE REQUEST ----------
@bp.post("/")
@login_required
def create_request():
    data = _json()
    book_id = data.get("book_id")

    if not book_id:
        return jsonify(error="missing_fields", required=["book_id"]), 400

    try:
        book_id = int(book_id)
    except (TypeError, ValueError):
        return jsonify(error="invalid_field", field="book_id"), 400

    req = request_lifecycle.create_request(
        book_id=book_id,
        requester_id=current_user_id(),
        message=data.get("message"),
    )
    return jsonify(message="created", request=req.to_dict()), 201


# ---------- SENT / RECEIVED ----------
@bp.get("/sent")
@login_required
def sent_requests():
    q = _status_filter(BookRequest.query.filter_by(requester_id=current_user_id()))
    q = q.order_by(BookRequest.requested_at.desc(), BookRequest.id.desc())
    return jsonify(paginate(q, BookRequest.to_dict)), 200


@bp.get("/received")
@login_required
def received_requests():
    q = _status_filter(BookRequest.query.filter_by(owner_id=current_user_id()))
    q = q.order_by(BookRequest.requested_at.desc(), BookRequest.id.desc())
    return jsonify(paginate(q, BookRequest.to_dict)), 200


@bp.get("/stats")
@login_required
def request_stats():
    return jsonify(request_lifecycle.request_stats(current_user_id())), 200


@bp.get("/<int:request_id>")
@login_required
def get_request(request_id):
    req = request_lifecycle.get_visible_request(request_id, current_user_id())
    return jsonify(request=req.to_dict()), 200


# ---------- ACCEPT / DECLINE / COMPLETE (OWNER) ----------
@bp.put("/<int:request_id>")
@login_required
def update_request(request_id):
    data = _json()
    status = _str_field(data, "status").lower()

    if not status:
        return jsonify(error="missing_fields", required=["status"]), 400

    if status == Status.COMPLETED:
        req = request_lifecycle.complete_request(
            request_id=request_id,
            acting_user_id=current_user_id(),
        )
    elif status in request_lifecycle.DECISIONS:
        req = request_lifecycle.respond_to_request(
            request_id=request_id,
            acting_user_id=current_user_id(),
            decision=status,
            response_message=data.get("response_message"),
        )
    else:
        return jsonify(
            error="invalid_field",
            field="status",
            allowed=[Status.ACCEPTED, Status.DECLINED, Status.COMPLETED],
        ), 400

    return jsonify(message=status, request=req.to_dict()), 200


# ---------- CANCEL REQUEST (REQUESTER) ----------
@bp.patch("/<int:request_id>/cancel")
@bp.delete("/<int:request_id>")
@login_required
def cancel_request(request_id):
    req = request_lifecycle.cancel_request(
        request_id=request_id,
        acting_user_id=current_user_id(),
    )
    return jsonify(message="cancelled", request=req.to_dict()), 200
