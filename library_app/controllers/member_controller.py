from flask import Blueprint, request, jsonify

from library_app.services.registry import lending_components
from library_app.utils.decorators import staff_required
from library_app.utils.params import parse_as_of
from library_app.utils.serializers import transaction_json

member_bp = Blueprint("members", __name__)
copy_bp = Blueprint("copies", __name__)


@member_bp.get("/<int:member_id>/loans")
@staff_required
def member_loans(member_id: int):
    c = lending_components()
    now = c.lending.clock()
    loans = c.lending.get_active_loans_for_member(member_id)
    return jsonify({"success": True, "data": [
        transaction_json(t, now, c.lending.compute_fee(t, now)) for t in loans
    ]})


@member_bp.get("/<int:member_id>/summary")
@staff_required
def member_summary(member_id: int):
    as_of = parse_as_of(request.args.get("as_of"))
    return jsonify({"success": True, "data": lending_components().lending.member_summary(member_id, as_of)})


@member_bp.get("/<int:member_id>/risk")
@staff_required
def member_risk(member_id: int):
    as_of = parse_as_of(request.args.get("as_of"))
    profile = lending_components().risk.profile_for(member_id, as_of)
    return jsonify({"success": True, "data": profile.to_dict()})


@copy_bp.get("/<int:copy_id>/loan")
@staff_required
def copy_loan(copy_id: int):
    c = lending_components()
    copy = c.lending.describe_copy(copy_id)

    t = c.lending.get_active_loan_for_copy(copy_id)
    now = c.lending.clock()
    return jsonify({"success": True, "data": {
        **copy,
        "loan": transaction_json(t, now, c.lending.compute_fee(t, now)) if t else None,
    }})
