def _iso(value):
    return value.isoformat() if value else None


def transaction_json(t, as_of=None, fee=None) -> dict:
    data = {
        "id": t.id,
        "copy_id": t.copy_id,
        "member_id": t.member_id,
        "borrow_date": _iso(t.borrow_date),
        "due_date": _iso(t.due_date),
        "return_date": _iso(t.return_date),
        "status": t.effective_status(as_of) if as_of else t.status,
        "notes": t.notes,
    }
    if fee is not None:
        data["fee"] = fee.to_dict()
    return data
