from __future__ import annotations

import csv
from io import BytesIO, StringIO
from typing import Any, Dict, List

from openpyxl.workbook import Workbook
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas

from models import Student
from utils.ledger import compute_ledger
from utils.timezone_helpers import format_local


class ExportError(ValueError):
    pass


def student_export_rows(students: List[Student], tz=None) -> List[Dict[str, Any]]:
    """Flatten students into one row per transaction.

    Student columns repeat on each row; a student with no transactions still
    gets one row marked 'No transactions'.
    """
    rows: List[Dict[str, Any]] = []
    for student in students:
        ledger = compute_ledger(student)
        base = {
            "Name": student.name,
            "Roll Number": student.roll_number,
            "Class": student.class_name,
            "Grade": student.grade,
            "Total Fees": student.total_fees,
            "Total Paid (Cumulative)": ledger.total_paid,
            "Total Discount (Cumulative)": ledger.total_discount,
            "Balance Due": ledger.remaining_balance,
        }
        for p in student.payments:
            rows.append({**base, "Transaction Type": "Payment", "Transaction ID": p.id, "Amount": p.amount,
                         "Date": format_local(p.date, tz=tz), "Details": p.remarks or "N/A"})
        for d in student.discounts:
            rows.append({**base, "Transaction Type": "Discount", "Transaction ID": d.id, "Amount": d.amount,
                         "Date": format_local(d.date, tz=tz), "Details": d.reason or "N/A"})
        if not student.payments and not student.discounts:
            rows.append({**base, "Transaction Type": "N/A", "Transaction ID": "N/A", "Amount": "N/A",
                         "Date": "N/A", "Details": "No transactions"})
    return rows


def rows_to_xlsx(rows: List[Dict[str, Any]], sheet_name: str = "Sheet1") -> bytes:
    if not rows:
        raise ExportError("No data to export.")
    headers = list(rows[0].keys())
    wb = Workbook()
    ws = wb.active
    ws.title = sheet_name[:31]
    ws.append(headers)
    for r in rows:
        ws.append([r.get(h) for h in headers])
    out = BytesIO()
    wb.save(out)
    return out.getvalue()


def rows_to_csv(rows: List[Dict[str, Any]]) -> str:
    if not rows:
        raise ExportError("No data to export.")
    out = StringIO()
    writer = csv.DictWriter(out, fieldnames=list(rows[0].keys()))
    writer.writeheader()
    writer.writerows(rows)
    return out.getvalue()


def _require_monthly_data(report: Dict[str, Any]) -> None:
    if not report.get("transactionCount"):
        raise ExportError("No data to export for the selected month.")


def monthly_report_xlsx(report: Dict[str, Any], label: str, currency: str = "INR") -> bytes:
    _require_monthly_data(report)
    wb = Workbook()
    ws = wb.active
    ws.title = "Monthly Report"
    ws.append([f"Monthly Financial Report - {label}"])
    ws.append([f"Total Collected ({currency})", report["totalCollected"]])
    ws.append([f"Total Discounted ({currency})", report["totalDiscounted"]])
    ws.append(["Transactions", report["transactionCount"]])
    ws.append([])
    ws.append(["Day", f"Collected ({currency})"])
    for row in report["dailyCollections"]:
        ws.append([row["day"], row["collected"]])
    out = BytesIO()
    wb.save(out)
    return out.getvalue()


def monthly_report_pdf(report: Dict[str, Any], label: str, app_name: str = "", currency: str = "INR") -> bytes:
    _require_monthly_data(report)
    buf = BytesIO()
    c = canvas.Canvas(buf, pagesize=A4)
    width, height = A4
    x_margin = 18 * mm

    brand_indigo = colors.HexColor("#4338ca")

    # Header bar
    header_h = 24 * mm
    c.setFillColor(brand_indigo)
    c.rect(0, height - header_h, width, header_h, fill=1, stroke=0)
    c.setFillColor(colors.white)
    c.setFont("Helvetica-Bold", 15)
    c.drawString(x_margin, height - 11 * mm, app_name or "Fee Report")
    c.setFont("Helvetica", 10)
    c.drawString(x_margin, height - 17 * mm, f"Monthly Financial Report - {label}")

    y = height - header_h - 12 * mm
    c.setFillColor(colors.HexColor("#0f172a"))
    c.setFont("Helvetica-Bold", 11)
    for title, value in (
        ("Total Collected", f"{currency} {report['totalCollected']:,.2f}"),
        ("Total Discounted", f"{currency} {report['totalDiscounted']:,.2f}"),
        ("Transactions", str(report["transactionCount"])),
    ):
        c.drawString(x_margin, y, title)
        c.drawRightString(width - x_margin, y, value)
        y -= 7 * mm

    y -= 4 * mm
    c.setStrokeColor(colors.lightgrey)
    c.line(x_margin, y, width - x_margin, y)
    y -= 7 * mm

    c.setFont("Helvetica-Bold", 10)
    c.drawString(x_margin, y, "Day")
    c.drawRightString(width - x_margin, y, f"Collected ({currency})")
    y -= 6 * mm
    c.setFont("Helvetica", 10)
    for row in report["dailyCollections"]:
        if not row["collected"]:
            continue
        if y < 20 * mm:
            c.showPage()
            c.setFont("Helvetica", 10)
            y = height - 20 * mm
        c.drawString(x_margin, y, str(row["day"]))
        c.drawRightString(width - x_margin, y, f"{row['collected']:,.2f}")
        y -= 6 * mm

    c.showPage()
    c.save()
    return buf.getvalue()
