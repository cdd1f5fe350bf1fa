from flask import Blueprint, request, jsonify, current_app

from library_app.services.registry import lending_components
from library_app.services.overdue_service import OverdueFilters
from library_app.utils.decorators import role_required, staff_required
from library_app.utils.params import parse_as_of, to_int
from library_app.utils.serializers import transaction_json

overdue_bp = Blueprint("overdue", __name__)


def _int_arg(args, key):
    raw = args.get(key)
    return to_int(raw, key) if raw else None


@overdue_bp.get("/")
@staff_required
def list_overdue():
    c = lending_components()
    as_of = parse_as_of(request.args.get("as_of")) or c.lending.clock()
    rows = c.lending.list_overdue(as_of=as_of)
    return jsonify({"success": True, "data": [
        transaction_json(t, as_of, c.lending.compute_fee(t, as_of)) for t in rows
    ]})


@overdue_bp.get("/report")
@staff_required
def report():
    args = request.args
    as_of = parse_as_of(args.get("as_of"))
    filters = OverdueFilters(
        member_id=_int_arg(args, "member_id"),
        member_status=args.get("member_status") or None,
        min_days_overdue=_int_arg(args, "min_days_overdue"),
        max_days_overdue=_int_arg(args, "max_days_overdue"),
        grace_status=args.get("grace_status") or None,
    )
    r = lending_components().overdue.scan(as_of, filters=filters)
    return jsonify({"success": True, "data": {
        "summary": r.summary(),
        "items": [i.to_dict() for i in r.items],
    }})


@overdue_bp.post("/run-scan")
@role_required("admin")
def run_scan():
    from library_app.tasks.overdue_scan import run_overdue_scan

    summary = run_overdue_scan(current_app._get_current_object())
    return jsonify({"success": True, "data": summary})
