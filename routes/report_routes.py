import calendar
from datetime import datetime

from flask import Blueprint, Response, current_app, jsonify, request

from routes.common import display_tz, error_response, session_user
from utils import results
from utils.exports import ExportError, monthly_report_pdf, monthly_report_xlsx, rows_to_xlsx
from utils.permissions import permission_required
from utils.reports import (
    class_wise_pending,
    daily_report,
    financial_overview,
    monthly_report,
    parse_day,
    transactions_between,
)
from utils.students import StudentRoster
from utils.users import IdentityStore

XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _year_month():
    """Read ?year=&month= (month 1-12), defaulting to the current local month."""
    now = datetime.now(display_tz())
    try:
        year = int(request.args.get("year", now.year))
        month = int(request.args.get("month", now.month))
    except ValueError:
        return None
    if not 1 <= month <= 12 or year < 1:
        return None
    return year, month


def _attachment(data, mimetype, filename):
    return Response(data, mimetype=mimetype, headers={"Content-Disposition": f"attachment; filename={filename}"})


def make_report_bp(roster: StudentRoster, identity: IdentityStore) -> Blueprint:
    report_bp = Blueprint('reports', __name__, url_prefix='/reports')
    view_reports = permission_required("can_view_reports", lambda: session_user(identity))

    @report_bp.route('/dashboard')
    @permission_required("can_view_dashboard_summary", lambda: session_user(identity))
    def dashboard_summary():
        overview = financial_overview(roster.list_students())
        overview.pop("chart")
        return jsonify({"ok": True, "summary": overview, "currency": current_app.config.get("CURRENCY", "INR")})

    @report_bp.route('/summary')
    @view_reports
    def summary():
        students = roster.list_students()
        return jsonify({
            "ok": True,
            "overview": financial_overview(students),
            "classWisePending": class_wise_pending(students),
            "currency": current_app.config.get("CURRENCY", "INR"),
        })

    @report_bp.route('/monthly')
    @view_reports
    def monthly():
        ym = _year_month()
        if ym is None:
            return error_response(results.VALIDATION, "Year and month (1-12) must be numbers.")
        return jsonify({"ok": True, "report": monthly_report(roster.list_students(), *ym, tz=display_tz())})

    @report_bp.route('/monthly.xlsx')
    @view_reports
    def monthly_xlsx():
        ym = _year_month()
        if ym is None:
            return error_response(results.VALIDATION, "Year and month (1-12) must be numbers.")
        report = monthly_report(roster.list_students(), *ym, tz=display_tz())
        label = f"{calendar.month_name[ym[1]]}-{ym[0]}"
        try:
            data = monthly_report_xlsx(report, label, currency=current_app.config.get("CURRENCY", "INR"))
        except ExportError as e:
            return error_response(results.VALIDATION, str(e))
        return _attachment(data, XLSX_MIMETYPE, f"monthly_report_{label}.xlsx")

    @report_bp.route('/monthly.pdf')
    @view_reports
    def monthly_pdf():
        ym = _year_month()
        if ym is None:
            return error_response(results.VALIDATION, "Year and month (1-12) must be numbers.")
        report = monthly_report(roster.list_students(), *ym, tz=display_tz())
        label = f"{calendar.month_name[ym[1]]}-{ym[0]}"
        try:
            data = monthly_report_pdf(
                report,
                label,
                app_name=current_app.config.get("APP_NAME", ""),
                currency=current_app.config.get("CURRENCY", "INR"),
            )
        except ExportError as e:
            return error_response(results.VALIDATION, str(e))
        return _attachment(data, "application/pdf", f"monthly_report_{label}.pdf")

    @report_bp.route('/daily')
    @view_reports
    def daily():
        raw = request.args.get("date")
        day = parse_day(raw) if raw else datetime.now(display_tz()).date()
        if day is None:
            return error_response(results.VALIDATION, "Date must look like YYYY-MM-DD.")
        return jsonify({"ok": True, "report": daily_report(roster.list_students(), day, tz=display_tz())})

    @report_bp.route('/transactions.xlsx')
    @view_reports
    def transactions_xlsx():
        """Export the payments and discounts between ?start= and ?end= (inclusive)."""
        start = parse_day(request.args.get("start"))
        end = parse_day(request.args.get("end")) or start
        if start is None or end < start:
            return error_response(results.VALIDATION, "Provide start (and optional end) dates as YYYY-MM-DD.")
        rows = transactions_between(roster.list_students(), start, end, tz=display_tz())
        try:
            data = rows_to_xlsx(rows, "Transactions")
        except ExportError as e:
            return error_response(results.VALIDATION, str(e))
        return _attachment(data, XLSX_MIMETYPE, f"transactions_{start.isoformat()}_{end.isoformat()}.xlsx")

    return report_bp
