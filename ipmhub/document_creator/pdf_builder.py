"""
Build printable PDFs: a single field record and the monthly inventory report.
"""
import io
from typing import Dict, List, Optional, Sequence

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from ..config import settings
from ..schemas.forms import CustomForm
from ..schemas.inventory import Product, StockLog
from ..schemas.projects import Project
from ..schemas.records import IPMRecord
from ..schemas.users import User
from ..services import ledger
from ..services.form_schema import form_name
from ..services.signature import decode_data_url
from ..services.time_rules import fmt_date, fmt_ts, month_label


FONT = "Helvetica"
FONT_BOLD = "Helvetica-Bold"
BRAND = colors.HexColor("#1e40af")
MARGIN = 40
LINE = 14


class _Page:
    """Canvas with a top-down cursor that starts a new page when it runs out of room."""

    def __init__(self, title: str):
        self.buf = io.BytesIO()
        self.width, self.height = A4
        self.c = canvas.Canvas(self.buf, pagesize=A4)
        self.c.setTitle(title)
        self.y = self.height - MARGIN

    def ensure(self, needed: float) -> None:
        if self.y - needed < MARGIN:
            self.c.showPage()
            self.y = self.height - MARGIN

    def text(self, s: str, size: int = 10, bold: bool = False, x: float = MARGIN, color=colors.black) -> None:
        self.ensure(LINE)
        self.c.setFont(FONT_BOLD if bold else FONT, size)
        self.c.setFillColor(color)
        self.c.drawString(x, self.y - size, s)
        self.y -= size + 4

    def gap(self, h: float = 8) -> None:
        self.y -= h

    def rule(self) -> None:
        self.ensure(6)
        self.c.setStrokeColor(BRAND)
        self.c.setLineWidth(1)
        self.c.line(MARGIN, self.y, self.width - MARGIN, self.y)
        self.y -= 6

    def section(self, title: str) -> None:
        self.gap(6)
        self.ensure(LINE * 3)
        self.text(title, size=11, bold=True, color=BRAND)

    def pairs(self, rows: Sequence[Sequence[str]]) -> None:
        for label, value in rows:
            self.ensure(LINE)
            self.c.setFont(FONT_BOLD, 9)
            self.c.setFillColor(colors.grey)
            self.c.drawString(MARGIN, self.y - 9, label)
            self.c.setFont(FONT, 10)
            self.c.setFillColor(colors.black)
            self.c.drawString(MARGIN + 130, self.y - 10, _clip(value, 70))
            self.y -= LINE

    def table(self, headers: Sequence[str], rows: Sequence[Sequence[str]], widths: Optional[Sequence[float]] = None) -> None:
        usable = self.width - 2 * MARGIN
        widths = widths or [usable / len(headers)] * len(headers)

        def draw_row(cells, bold=False, fill=None):
            self.ensure(LINE + 2)
            if fill is not None:
                self.c.setFillColor(fill)
                self.c.rect(MARGIN, self.y - LINE, usable, LINE, stroke=0, fill=1)
            self.c.setFont(FONT_BOLD if bold else FONT, 8)
            self.c.setFillColor(colors.white if bold else colors.black)
            x = MARGIN
            for cell, w in zip(cells, widths):
                self.c.drawString(x + 3, self.y - 10, _clip(cell, int(w / 4.5)))
                x += w
            self.y -= LINE

        draw_row(headers, bold=True, fill=BRAND)
        if not rows:
            draw_row(["No entries"] + [""] * (len(headers) - 1))
        for i, row in enumerate(rows):
            draw_row(row, fill=colors.HexColor("#f1f5f9") if i % 2 else None)

    def image(self, data_url: str, label: str, x: float, w: float = 160, h: float = 60) -> bool:
        img = decode_data_url(data_url)
        if img is None:
            return False
        buf = io.BytesIO()
        img.save(buf, format="PNG")
        buf.seek(0)
        self.c.drawImage(ImageReader(buf), x, self.y - h, width=w, height=h, preserveAspectRatio=True)
        self.c.setFont(FONT, 8)
        self.c.setFillColor(colors.grey)
        self.c.drawString(x, self.y - h - 10, label)
        return True

    def finish(self) -> bytes:
        self.c.save()
        self.buf.seek(0)
        return self.buf.read()


def _clip(value, limit: int) -> str:
    s = "-" if value is None or value == "" else str(value)
    return s if len(s) <= limit else s[: max(limit - 1, 1)] + "…"


def _as_float(value) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _company_header(page: _Page, title: str, subtitle: str = "") -> None:
    page.text(settings.company_name, size=16, bold=True, color=BRAND)
    page.text(settings.company_address, size=9, color=colors.grey)
    page.text(f"{settings.company_phone}  |  {settings.company_email}", size=9, color=colors.grey)
    page.gap(4)
    page.rule()
    page.text(title, size=13, bold=True)
    if subtitle:
        page.text(subtitle, size=9, color=colors.grey)


def _record_rows(page: _Page, record: IPMRecord, custom_form: Optional[CustomForm]) -> None:
    ft = record.form_type
    if ft == "attendance":
        loc = record.location
        if loc is None:
            where = "-"
        elif loc.skipped:
            where = "GPS not required"
        else:
            where = f"{loc.distance:.0f} m from site ({'verified' if loc.verified else 'not verified'})"
        page.pairs([
            ("Time In", record.time_in),
            ("Time Out", record.time_out),
            ("Work Done", record.work),
            ("Location", where),
        ])
    elif ft == "insecticide":
        remaining = f"{record.remaining_qty or '-'} ml"
        level = _as_float(record.remaining_qty)
        if level is not None and level < settings.remaining_qty_low_threshold:
            remaining += "  (Low Stock)"
        page.pairs([
            ("Chemical", record.chemical),
            ("Batch Number", record.batch_number),
            ("Qty Used", f"{record.qty or '-'} ml"),
            ("Water Used", f"{record.water or '-'} L"),
            ("Remaining Stock", remaining),
            ("Areas Treated", ", ".join(record.areas or []) or "-"),
        ])
    elif ft == "checklist":
        page.pairs([("Time In", record.time_in), ("Time Out", record.time_out)])
        page.gap(4)
        page.table(["Activity", "Status"], [[a.item, a.status] for a in record.activities or []])
    elif ft == "baitstation":
        page.pairs([
            ("Bait Brand", record.bait_brand),
            ("Total Stations", str(record.total_stations or 0)),
            ("Active Stations", str(record.active_stations or 0)),
            ("Bait Used", record.bait_used),
        ])
        page.gap(4)
        page.table(
            ["Sr", "Location", "Type", "Consumed", "Replaced", "Condition", "Activity"],
            [
                [str(e.sr), e.location, e.station_type, e.bait_consumed, e.bait_replaced, e.condition, e.pest_activity]
                for e in record.entries or []
            ],
        )
    elif record.custom_data is not None:
        data = record.custom_data
        table_rows: Dict[str, List[dict]] = data.get("tableRows") or {}
        fields = custom_form.fields if custom_form else []
        simple = []
        for f in fields:
            if f.type == "table" or f.type == "signature":
                continue
            value = data.get(f.id)
            if f.type == "checkbox":
                value = "Yes" if value else "No"
            simple.append((f.label, value))
        if not fields:
            simple = [(k, v) for k, v in data.items() if k != "tableRows"]
        page.pairs(simple)
        for f in fields:
            if f.type == "table":
                page.section(f.label)
                page.table(f.table_columns or ["-"], [[row.get(c, "") for c in f.table_columns] for row in table_rows.get(f.id, [])])
        for f in fields:
            if f.type == "signature" and data.get(f.id):
                page.ensure(90)
                page.image(data[f.id], f.label, MARGIN)
                page.y -= 80
    else:
        page.table(
            ["Sr", "Location", "Count", "Status"],
            [[str(e.sr), e.location, "" if e.count is None else str(e.count), e.status] for e in record.entries or []],
        )


def build_record_pdf(
    record: IPMRecord,
    project: Optional[Project],
    user: Optional[User],
    custom_form: Optional[CustomForm] = None,
) -> bytes:
    """Generate PDF bytes for one record; dangling project or user print as '-'."""
    name = custom_form.name if custom_form else form_name(record.form_type)
    page = _Page(name)
    _company_header(page, name, f"Record #{record.key[:8].upper()}  |  {fmt_date(record.date)} {record.time or ''}")

    page.section("Project")
    page.pairs([
        ("Project", project.name if project else "-"),
        ("Code", project.code if project else "-"),
        ("Client", project.client if project else "-"),
        ("Address", project.address if project else "-"),
        ("Technician", user.name if user else "-"),
    ])

    page.section("Details")
    _record_rows(page, record, custom_form)

    if record.remarks:
        page.section("Remarks")
        page.text(_clip(record.remarks, 110), size=9)

    signatures = [
        (record.tech_signature, "Technician Signature"),
        (record.client_signature, "Client Signature"),
        (record.supervisor_signature, "Supervisor Signature"),
    ]
    present = [(v, label) for v, label in signatures if v]
    if present:
        page.section("Signatures")
        page.ensure(90)
        x = MARGIN
        for value, label in present:
            if page.image(value, label, x):
                x += 180
        page.y -= 80

    page.gap(10)
    page.text(f"Generated {fmt_ts(record.created_at)}  |  {settings.app_name} v{settings.app_version}", size=7, color=colors.grey)
    return page.finish()


def build_inventory_pdf(
    products: List[Product],
    logs: List[StockLog],
    users: List[User],
    projects: List[Project],
    month: str,
) -> bytes:
    """Monthly inventory report: summary cards, current stock and the month's transactions."""
    totals = ledger.month_totals(products, logs, month)
    stocked = ledger.with_stock(products, logs)
    by_product = {p.key: p for p in products}
    by_user = {u.key: u for u in users}
    by_project = {p.key: p for p in projects}

    page = _Page(f"Inventory {month}")
    _company_header(page, "Inventory Report", month_label(month))

    page.section("Summary")
    page.pairs([
        ("Total Products", str(totals.total_products)),
        ("Low Stock", str(totals.low_stock)),
        ("Usage This Month", f"{totals.usage:g}"),
        ("Stock In This Month", f"{totals.stock_in:g}"),
    ])

    page.section("Current Stock")
    page.table(
        ["Product", "Category", "Brand", "Stock", "Min", "Status"],
        [
            [p.name, p.category, p.brand, f"{p.current_stock:g} {p.unit}", f"{p.min_stock:g}", "Low" if p.low_stock else "OK"]
            for p in stocked if p.active
        ],
        widths=[150, 80, 80, 80, 60, 65],
    )

    page.section("Transactions")
    rows = []
    for l in ledger.sorted_month_logs(logs, month):
        product = by_product.get(l.product_key)
        u = by_user.get(l.user_key)
        if u:
            by = u.name
        elif l.entry_type == "admin_adjustment":
            by = "Admin"
        else:
            by = "-"
        project = by_project.get(l.project_key)
        rows.append([
            fmt_date(l.date),
            product.name if product else "-",
            l.type,
            f"{l.qty:g} {product.unit if product else ''}",
            project.name if project else "-",
            by,
        ])
    page.table(["Date", "Product", "Type", "Qty", "Project", "By"], rows, widths=[70, 140, 50, 70, 105, 80])
    return page.finish()
