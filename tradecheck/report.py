from datetime import datetime, timezone
from html import escape
from io import BytesIO
from typing import List, Sequence

from fastapi.responses import HTMLResponse
from reportlab.lib.pagesizes import letter
from reportlab.pdfgen import canvas

from .schemas import ComplianceResult, Shipment
from .scoring import summarize

STATUS_COLORS = {
    "REJECTED": "#7f1d1d",  # dark red
    "FLAGGED": "#b91c1c",   # red
    "REVIEW": "#b45309",    # amber
    "COMPLIANT": "#15803d", # green
}

# reportlab fill colours (0-1 rgb)
PDF_STATUS_RGB = {
    "REJECTED": (0.50, 0.11, 0.11),
    "FLAGGED": (0.73, 0.11, 0.11),
    "REVIEW": (0.71, 0.33, 0.04),
    "COMPLIANT": (0.06, 0.73, 0.51),
}


def _badge_color(status: str) -> str:
    return STATUS_COLORS.get((status or "").upper(), "#334155")


def _money(x) -> str:
    return "—" if x is None else f"${x:,.2f}"


def _weight(x) -> str:
    return "—" if x is None else f"{x:g} kg"


def _shipment_line(s: Shipment) -> str:
    route = escape(s.destination_country or "—")
    if s.origin_country:
        route = f"{escape(s.origin_country)} → {route}"
    return (
        f"<b>Value:</b> {_money(s.declared_value)} &nbsp; | &nbsp;"
        f"<b>Weight:</b> {_weight(s.weight)} &nbsp; | &nbsp;"
        f"<b>Route:</b> {route} &nbsp; | &nbsp;"
        f"<b>HS:</b> {escape(s.commodity_code or '—')}"
    )


def render_results_html(results: Sequence[ComplianceResult]) -> str:
    counts = summarize(results)

    cards = ""
    if not results:
        cards = "<div class='card ok'>No shipments checked.</div>"
    for n, res in enumerate(results, start=1):
        s = res.shipment
        issues_html = ""
        for it in res.issues:
            prio = escape(it.priority or "INFO")
            reason = f"<div class='muted'>{escape(it.reason)}</div>" if it.reason else ""
            link = (
                f"<div class='muted'><a href='{escape(it.source_link)}'>Source</a></div>"
                if it.source_link else ""
            )
            issues_html += f"""
              <div class="issue">
                <div class="row"><div class="pill">{prio}</div><div class="h4">{escape(it.rule_name)}</div></div>
                <div class="muted">{escape(it.description)}</div>
                {reason}{link}
              </div>
            """

        cards += f"""
        <div class="card">
          <div class="row">
            <div class="badge" style="background:{_badge_color(res.status)}">{res.status}</div>
            <div class="h3">{n}. {escape(s.item_name)}{f" ({escape(s.item_id)})" if s.item_id else ""}</div>
          </div>
          <div class="muted">{_shipment_line(s)}</div>
          <div class="muted">{escape(res.details)}</div>
          {issues_html}
        </div>
        """

    html = f"""
<!doctype html>
<html>
<head>
  <meta charset="utf-8" />
  <meta name="viewport" content="width=device-width, initial-scale=1" />
  <title>Shipping Compliance Report</title>
  <style>
    body {{ font-family: ui-sans-serif, system-ui, -apple-system, Segoe UI, Roboto, Arial; background:#0b1220; color:#e5e7eb; margin:0; }}
    .wrap {{ max-width: 980px; margin: 0 auto; padding: 28px 18px 60px; }}
    .title {{ font-size: 22px; font-weight: 700; }}
    .sub {{ color:#9ca3af; font-size: 13px; margin-top: 6px; }}
    .grid {{ display:grid; grid-template-columns: repeat(5, 1fr); gap: 12px; margin-top: 16px; }}
    .kpi {{ background:#111a2e; border:1px solid #24304e; border-radius:16px; padding:14px; }}
    .kpi .k {{ color:#9ca3af; font-size: 12px; }}
    .kpi .v {{ font-size: 18px; font-weight: 800; margin-top: 6px; }}
    .card {{ background:#0f172a; border:1px solid #24304e; border-radius:16px; padding:14px; margin: 10px 0; }}
    .row {{ display:flex; gap:10px; align-items:center; flex-wrap:wrap; }}
    .badge {{ padding:4px 10px; border-radius: 999px; font-weight:800; font-size: 12px; letter-spacing: .6px; }}
    .pill {{ background:#1f2937; border:1px solid #334155; padding:4px 8px; border-radius:999px; font-size: 12px; font-weight: 800; }}
    .h3 {{ font-size: 14px; font-weight: 800; }}
    .h4 {{ font-size: 12px; font-weight: 900; }}
    .muted {{ color:#cbd5e1; font-size: 13px; margin-top: 8px; line-height: 1.4; }}
    .issue {{ margin-top: 10px; padding-top: 10px; border-top: 1px solid #24304e; }}
    .back {{ display: inline-block; margin-bottom: 14px; color: #93c5fd; text-decoration: none; font-weight: 700; }}
    .back:hover {{ text-decoration: underline; }}
    .footer {{ margin-top: 22px; color:#94a3b8; font-size: 12px; }}
    a {{ color:#93c5fd; }}
  </style>
</head>
<body>
  <div class="wrap">
    <a class="back" href="/">← Back to home</a>
    <div class="title">Shipping Compliance Report</div>
    <div class="sub">{counts["total"]} shipment(s) checked</div>

    <div class="grid">
      <div class="kpi"><div class="k">Compliant</div><div class="v">{counts["COMPLIANT"]}</div></div>
      <div class="kpi"><div class="k">Review</div><div class="v">{counts["REVIEW"]}</div></div>
      <div class="kpi"><div class="k">Flagged</div><div class="v">{counts["FLAGGED"]}</div></div>
      <div class="kpi"><div class="k">Rejected</div><div class="v">{counts["REJECTED"]}</div></div>
      <div class="kpi"><div class="k">Total</div><div class="v">{counts["total"]}</div></div>
    </div>

    {cards}

    <div class="footer">
      Flagged and rejected shipments must be resolved before booking.
    </div>
  </div>
</body>
</html>
"""
    return html


def html_response(results: Sequence[ComplianceResult]) -> HTMLResponse:
    return HTMLResponse(content=render_results_html(results))


# ---------------------------
# PDF
# ---------------------------

def _shipment_rows(s: Shipment) -> List[List[str]]:
    return [
        ["Item Name", s.item_name],
        ["Item ID", s.item_id or "N/A"],
        ["Declared Value", _money(s.declared_value).replace("—", "N/A")],
        ["Weight", _weight(s.weight).replace("—", "N/A")],
        ["Destination", s.destination_country or "N/A"],
        ["Origin", s.origin_country or "N/A"],
        ["Commodity Code", s.commodity_code or "N/A"],
    ]


def _wrap(text: str, width: int = 95) -> List[str]:
    words, lines, cur = (text or "").split(), [], ""
    for w in words:
        if cur and len(cur) + 1 + len(w) > width:
            lines.append(cur)
            cur = w
        else:
            cur = f"{cur} {w}" if cur else w
    if cur:
        lines.append(cur)
    return lines or [""]


def render_results_pdf(results: Sequence[ComplianceResult]) -> bytes:
    """One page per shipment: status badge, shipment table, issue list."""
    output = BytesIO()
    c = canvas.Canvas(output, pagesize=letter)
    width, height = letter
    generated = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")

    for res in results or []:
        c.setFont("Helvetica-Bold", 18)
        c.setFillColorRGB(0.15, 0.39, 0.92)
        c.drawCentredString(width / 2, height - 50, "Shipping Compliance Report")

        c.setFillColorRGB(*PDF_STATUS_RGB.get(res.status, (0.2, 0.25, 0.33)))
        c.rect(40, height - 90, 110, 22, stroke=0, fill=1)
        c.setFillColorRGB(1, 1, 1)
        c.setFont("Helvetica-Bold", 11)
        c.drawCentredString(95, height - 83, res.status)

        c.setFillColorRGB(0, 0, 0)
        y = height - 120
        for label, value in _shipment_rows(res.shipment):
            c.setFont("Helvetica-Bold", 10)
            c.drawString(40, y, label)
            c.setFont("Helvetica", 10)
            c.drawString(170, y, str(value)[:80])
            y -= 16

        y -= 8
        c.setFont("Helvetica", 10)
        for line in _wrap(res.details):
            c.drawString(40, y, line)
            y -= 14

        for n, issue in enumerate(res.issues, start=1):
            y -= 6
            if y < 80:
                c.showPage()
                y = height - 50
            c.setFont("Helvetica-Bold", 10)
            c.drawString(40, y, f"{n}. [{issue.priority or 'INFO'}] {issue.rule_name}"[:100])
            y -= 14
            c.setFont("Helvetica", 9)
            for line in _wrap(issue.description):
                if y < 60:
                    c.showPage()
                    y = height - 50
                    c.setFont("Helvetica", 9)
                c.drawString(52, y, line)
                y -= 12

        c.setFont("Helvetica", 8)
        c.setFillColorRGB(0.4, 0.4, 0.4)
        c.drawString(40, 30, f"This compliance report was generated on {generated} and is valid for 24 hours.")
        c.showPage()

    if not results:
        c.setFont("Helvetica", 12)
        c.drawString(40, height - 50, "No shipments to report.")
        c.showPage()
    c.save()
    return output.getvalue()


def report_filename(results: Sequence[ComplianceResult]) -> str:
    if len(results) == 1:
        slug = "".join(ch if ch.isalnum() else "-" for ch in results[0].shipment.item_name.lower())
        return f"compliance-report-{slug}.pdf"
    return "compliance-report.pdf"
