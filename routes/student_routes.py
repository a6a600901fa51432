from flask import Blueprint, Response, current_app, jsonify, request

from models import Discount, Payment, Student
from routes.common import display_tz, error_response, json_body, result_response, session_user
from utils import results
from utils.exports import ExportError, rows_to_csv, rows_to_xlsx, student_export_rows
from utils.importer import ImportFileError, import_students, read_import_file
from utils.ledger import with_fee_details
from utils.permissions import permission_required
from utils.reports import filter_students, unique_values
from utils.students import StudentRoster
from utils.users import IdentityStore

XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def make_student_bp(roster: StudentRoster, identity: IdentityStore) -> Blueprint:
    student_bp = Blueprint('students', __name__, url_prefix='/students')

    def requires(capability):
        return permission_required(capability, lambda: session_user(identity))

    @student_bp.route('', methods=['GET'])
    @requires("can_view_students")
    def list_students():
        args = request.args
        students = roster.list_students()
        rows = filter_students(
            students,
            search=args.get("search", ""),
            class_name=args.get("class", ""),
            grade=args.get("grade", ""),
            sort_key=args.get("sort", "name"),
            descending=(args.get("order", "asc").lower() == "desc"),
        )
        return jsonify({
            "ok": True,
            "students": rows,
            "classes": unique_values(students, "class_name"),
            "grades": unique_values(students, "grade"),
        })

    @student_bp.route('', methods=['POST'])
    @requires("can_add_students")
    def add_student():
        data = json_body()
        result = roster.add_student(
            name=data.get("name"),
            roll_number=data.get("rollNumber"),
            class_name=data.get("class"),
            grade=data.get("grade"),
            total_fees=data.get("totalFees"),
        )
        extra = {"student": result.data.to_dict()} if result.ok else None
        return result_response(result, ok_status=201, extra=extra)

    @student_bp.route('/<student_id>', methods=['GET'])
    @requires("can_view_students")
    def student_detail(student_id):
        student = roster.get_student(student_id)
        if student is None:
            return error_response(results.NOT_FOUND, "Student not found.")
        return jsonify({"ok": True, "student": with_fee_details(student)})

    @student_bp.route('/<student_id>', methods=['PUT'])
    @requires("can_edit_students")
    def edit_student(student_id):
        existing = roster.get_student(student_id)
        if existing is None:
            return error_response(results.NOT_FOUND, "Student not found.")
        data = json_body()
        updated = Student(
            id=existing.id,
            name=data.get("name", existing.name),
            roll_number=data.get("rollNumber", existing.roll_number),
            class_name=data.get("class", existing.class_name),
            grade=data.get("grade", existing.grade),
            total_fees=data.get("totalFees", existing.total_fees),
            payments=existing.payments,
            discounts=existing.discounts,
        )
        result = roster.update_student(updated)
        extra = {"student": result.data.to_dict()} if result.ok else None
        return result_response(result, extra=extra)

    @student_bp.route('/<student_id>', methods=['DELETE'])
    @requires("can_delete_students")
    def delete_student(student_id):
        return result_response(roster.delete_student(student_id))

    # ---------- payments ----------
    @student_bp.route('/<student_id>/payments', methods=['POST'])
    @requires("can_manage_payments")
    def add_payment(student_id):
        data = json_body()
        result = roster.add_payment(student_id, data.get("amount"), data.get("remarks") or "", data.get("date"))
        extra = {"payment": result.data.to_dict()} if result.ok else None
        return result_response(result, ok_status=201, extra=extra)

    @student_bp.route('/<student_id>/payments/<payment_id>', methods=['PUT'])
    @requires("can_manage_payments")
    def update_payment(student_id, payment_id):
        data = json_body()
        payment = Payment(id=payment_id, amount=data.get("amount"), date=data.get("date") or "",
                          remarks=data.get("remarks") or "")
        result = roster.update_payment(student_id, payment)
        extra = {"payment": result.data.to_dict()} if result.ok else None
        return result_response(result, extra=extra)

    @student_bp.route('/<student_id>/payments/<payment_id>', methods=['DELETE'])
    @requires("can_manage_payments")
    def delete_payment(student_id, payment_id):
        return result_response(roster.delete_payment(student_id, payment_id))

    # ---------- discounts ----------
    @student_bp.route('/<student_id>/discounts', methods=['POST'])
    @requires("can_manage_discounts")
    def add_discount(student_id):
        data = json_body()
        result = roster.add_discount(student_id, data.get("amount"), data.get("reason") or "", data.get("date"))
        extra = {"discount": result.data.to_dict()} if result.ok else None
        return result_response(result, ok_status=201, extra=extra)

    @student_bp.route('/<student_id>/discounts/<discount_id>', methods=['PUT'])
    @requires("can_manage_discounts")
    def update_discount(student_id, discount_id):
        data = json_body()
        discount = Discount(id=discount_id, amount=data.get("amount"), date=data.get("date") or "",
                            reason=data.get("reason") or "")
        result = roster.update_discount(student_id, discount)
        extra = {"discount": result.data.to_dict()} if result.ok else None
        return result_response(result, extra=extra)

    @student_bp.route('/<student_id>/discounts/<discount_id>', methods=['DELETE'])
    @requires("can_manage_discounts")
    def delete_discount(student_id, discount_id):
        return result_response(roster.delete_discount(student_id, discount_id))

    # ---------- import / export ----------
    @student_bp.route('/import', methods=['POST'])
    @requires("can_import_export")
    def import_file():
        """Bulk import students from an .xlsx or .csv upload.

        Expected columns (header row required):
          - Name, Roll Number (or RollNo), Class, Grade, Total Fees

        Rows missing a name, roll number or positive total fee are skipped.
        Existing roll numbers get their profile overwritten; transactions stay.
        """
        file = request.files.get("file")
        if not file or not file.filename:
            return error_response(results.VALIDATION, "Please choose a file to upload.")
        try:
            parsed = read_import_file(file.stream.read(), file.filename)
        except ImportFileError as e:
            return error_response(results.VALIDATION, str(e))
        summary = import_students(roster, parsed.rows)
        current_app.logger.info(
            "Imported %s: %s new, %s updated, %s skipped",
            file.filename, summary.new_count, summary.updated_count, parsed.skipped,
        )
        return jsonify({
            "ok": True,
            "message": f"Import complete: {summary.new_count} new, {summary.updated_count} updated.",
            **summary.to_dict(),
            "skipped": parsed.skipped,
        })

    @student_bp.route('/export.xlsx', methods=['GET'])
    @requires("can_import_export")
    def export_xlsx():
        try:
            data = rows_to_xlsx(student_export_rows(roster.list_students(), tz=display_tz()), "Students")
        except ExportError as e:
            return error_response(results.VALIDATION, str(e))
        return Response(
            data,
            mimetype=XLSX_MIMETYPE,
            headers={"Content-Disposition": "attachment; filename=student_list_with_transactions.xlsx"},
        )

    @student_bp.route('/export.csv', methods=['GET'])
    @requires("can_import_export")
    def export_csv():
        try:
            data = rows_to_csv(student_export_rows(roster.list_students(), tz=display_tz()))
        except ExportError as e:
            return error_response(results.VALIDATION, str(e))
        return Response(
            data,
            mimetype="text/csv",
            headers={"Content-Disposition": "attachment; filename=student_list_with_transactions.csv"},
        )

    return student_bp
