from flask import Blueprint, request, jsonify

from library_app.services.registry import lending_components
from library_app.utils.decorators import staff_required
from library_app.utils.params import parse_as_of, to_int

risk_bp = Blueprint("risk", __name__)


@risk_bp.get("/profiles")
@staff_required
def all_profiles():
    as_of = parse_as_of(request.args.get("as_of"))
    profiles = lending_components().risk.profiles_for_all(as_of)
    return jsonify({"success": True, "data": [p.to_dict() for p in profiles]})


@risk_bp.get("/repeat-offenders")
@staff_required
def repeat_offenders():
    min_score = to_int(request.args.get("min_score", 50), "min_score")
    limit = to_int(request.args.get("limit", 20), "limit")
    as_of = parse_as_of(request.args.get("as_of"))

    rows = lending_components().risk.repeat_offenders(min_score=min_score, limit=limit, as_of=as_of)
    return jsonify({"success": True, "data": [p.to_dict() for p in rows]})
