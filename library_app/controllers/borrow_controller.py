from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required, get_jwt

from library_app.services.auth_service import STAFF_ROLES
from library_app.services.registry import lending_components
from library_app.utils.decorators import staff_required
from library_app.utils.params import optional_int, parse_as_of, require_int, to_int
from library_app.utils.serializers import transaction_json

borrow_bp = Blueprint("loans", __name__)


def _jwt_user():
    claims = get_jwt() or {}
    return claims.get("member_id"), claims.get("role")


def _forbidden(message="Forbidden"):
    return jsonify({"success": False, "message": message}), 403


def _own_or_staff(member_id) -> bool:
    caller_member_id, role = _jwt_user()
    return role in STAFF_ROLES or (caller_member_id is not None and caller_member_id == member_id)


@borrow_bp.post("/")
@jwt_required()
def borrow_copy():
    data = request.get_json(silent=True) or {}
    caller_member_id, role = _jwt_user()

    copy_id = require_int(data, "copy_id")
    if role in STAFF_ROLES:
        member_id = require_int(data, "member_id")
    else:
        member_id = optional_int(data, "member_id") or caller_member_id
        if member_id is None or member_id != caller_member_id:
            return _forbidden("Members can only borrow for themselves")

    c = lending_components()
    t = c.lending.borrow(
        copy_id,
        member_id,
        loan_period_days=optional_int(data, "loan_period_days"),
        notes=data.get("notes"),
    )
    return jsonify({"success": True, "data": transaction_json(t)}), 201


@borrow_bp.post("/<int:transaction_id>/return")
@jwt_required()
def return_copy(transaction_id: int):
    data = request.get_json(silent=True) or {}
    c = lending_components()

    t = c.lending.get_transaction(transaction_id)
    if not _own_or_staff(t.member_id):
        return _forbidden("This loan belongs to another member")

    t = c.lending.return_book(transaction_id, notes=data.get("notes"))
    fee = c.lending.compute_fee(t)
    return jsonify({"success": True, "data": transaction_json(t, fee=fee)})


@borrow_bp.get("/<int:transaction_id>")
@jwt_required()
def get_loan(transaction_id: int):
    c = lending_components()
    t = c.lending.get_transaction(transaction_id)
    if not _own_or_staff(t.member_id):
        return _forbidden()

    as_of = parse_as_of(request.args.get("as_of")) or c.lending.clock()
    return jsonify({"success": True, "data": transaction_json(t, as_of, c.lending.compute_fee(t, as_of))})


@borrow_bp.get("/<int:transaction_id>/fee")
@jwt_required()
def get_loan_fee(transaction_id: int):
    c = lending_components()
    t = c.lending.get_transaction(transaction_id)
    if not _own_or_staff(t.member_id):
        return _forbidden()

    fee = c.lending.compute_fee(t, parse_as_of(request.args.get("as_of")))
    return jsonify({"success": True, "data": {"transaction_id": t.id, **fee.to_dict()}})


@borrow_bp.get("/eligibility")
@jwt_required()
def eligibility():
    copy_id = to_int(request.args.get("copy_id"), "copy_id")
    caller_member_id, role = _jwt_user()
    raw_member = request.args.get("member_id")
    member_id = to_int(raw_member, "member_id") if raw_member else caller_member_id
    if member_id is None or not _own_or_staff(member_id):
        return _forbidden()

    result = lending_components().lending.check_eligibility(copy_id, member_id)
    return jsonify({"success": True, "data": result.to_dict()})


@borrow_bp.get("/my")
@jwt_required()
def my_loans():
    caller_member_id, _role = _jwt_user()
    if caller_member_id is None:
        return jsonify({"success": False, "message": "No member linked to this account"}), 400

    c = lending_components()
    now = c.lending.clock()
    loans = c.lending.get_active_loans_for_member(caller_member_id)
    return jsonify({"success": True, "data": [
        transaction_json(t, now, c.lending.compute_fee(t, now)) for t in loans
    ]})


@borrow_bp.get("/stats")
@staff_required
def stats():
    return jsonify({"success": True, "data": lending_components().lending.borrowing_stats()})
