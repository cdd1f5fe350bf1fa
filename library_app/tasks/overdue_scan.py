# library_app/tasks/overdue_scan.py
from library_app.errors import ServiceUnavailable
from library_app.services.registry import lending_components


def run_overdue_scan(app) -> dict:
    """
    Read-only overdue sweep.
    - overdue: open loans whose due date's calendar day has passed
    - notices: loans sitting exactly on a notification offset today
    - suspension: loans at or past AUTO_SUSPEND_DAYS whose member is still active
    Logs who needs what; delivery and suspension belong to other systems.
    The last summary is kept in app.extensions["overdue_last_scan"].
    """
    with app.app_context():
        try:
            report = lending_components().overdue.scan()
        except ServiceUnavailable as e:
            app.logger.error(f"[overdue_scan] store error: {e.message}")
            raise

        for item in report.notices_due:
            t = item.transaction
            app.logger.info(
                f"[overdue_scan] notice due: txn={t.id} member={t.member_id} "
                f"offset={item.notice_offset}d fee={item.fee.fee_amount}"
            )

        for item in report.suspension_candidates:
            t = item.transaction
            app.logger.warning(
                f"[overdue_scan] suspension threshold reached: member={t.member_id} txn={t.id} "
                f"days_overdue={item.fee.days_overdue}"
            )

        summary = report.summary()
        app.logger.info(
            f"[overdue_scan] overdue={summary['current_overdue_count']} "
            f"beyond_grace={summary['beyond_grace_count']} notices={summary['notices_due']} "
            f"suspensions={summary['suspension_candidates']} fees={summary['total_late_fees']}"
        )

        app.extensions["overdue_last_scan"] = summary
        return summary
