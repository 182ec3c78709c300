import html
import io
import os
from datetime import datetime

from PIL import Image, ImageDraw, ImageFont

from lms.config import CERTIFICATE_FONT_DIR, CERTIFICATE_ISSUER


def _fmt_date(value) -> str:
    if isinstance(value, datetime):
        return value.strftime("%B %d, %Y")
    return str(value) if value else ""


# ==================== HTML ====================

def render_certificate_html(certificate: dict) -> str:
    e = lambda v: html.escape(str(v if v is not None else ""))
    expiry = ""
    if certificate.get("expiry_date"):
        expiry = f"<div>Valid until: {e(_fmt_date(certificate['expiry_date']))}</div>"

    return f"""<!DOCTYPE html>
<html>
<head>
  <title>Certificate of Completion</title>
  <style>
    body {{ font-family: Arial, sans-serif; text-align: center; padding: 40px; background: #f9f9f9; }}
    .certificate {{ max-width: 800px; margin: 0 auto; padding: 40px; background: white; border: 2px solid #f1c40f; }}
    .header {{ font-size: 36px; color: #2c3e50; margin-bottom: 20px; }}
    .subheader {{ font-size: 24px; color: #34495e; margin-bottom: 30px; }}
    .content {{ font-size: 18px; line-height: 1.6; color: #2c3e50; margin-bottom: 30px; }}
    .footer {{ font-size: 14px; color: #7f8c8d; margin-top: 40px; }}
    .certificate-id {{ font-family: monospace; color: #7f8c8d; }}
  </style>
</head>
<body>
  <div class="certificate">
    <div class="header">Certificate of Completion</div>
    <div class="subheader">This is to certify that</div>
    <div class="content">
      <strong>{e(certificate.get("student_name"))}</strong><br>
      has successfully completed<br>
      <strong>{e(certificate.get("test_title") or certificate.get("title"))}</strong><br>
      with a score of <strong>{e(certificate.get("score"))}%</strong>
    </div>
    <div>Date: {e(_fmt_date(certificate.get("issue_date")))}</div>
    {expiry}
    <div class="footer">
      <div>Course: {e(certificate.get("course_name"))}</div>
      <div>Issued by {e(CERTIFICATE_ISSUER)}</div>
      <div class="certificate-id">Certificate ID: {e(certificate.get("certificate_id"))}</div>
    </div>
  </div>
</body>
</html>
"""


# ==================== PNG ====================

CANVAS = (1600, 1131)  # A4 landscape ratio
INK = (33, 37, 41)
ACCENT = (25, 105, 160)
MUTED = (108, 117, 125)
SEAL = (200, 160, 40)


def _font(name: str, size: int):
    try:
        return ImageFont.truetype(os.path.join(CERTIFICATE_FONT_DIR, name), size)
    except OSError:
        return ImageFont.load_default()


def _layout(certificate: dict) -> list:
    """(text, font file, size, color) rows, top to bottom; empty rows are skipped"""
    expiry = certificate.get("expiry_date")
    return [
        (CERTIFICATE_ISSUER.upper(), "DejaVuSans.ttf", 26, MUTED),
        ("Certificate of Completion", "DejaVuSerif-Bold.ttf", 68, ACCENT),
        ("awarded to", "DejaVuSerif.ttf", 32, MUTED),
        (certificate.get("student_name") or "Student", "DejaVuSerif-Bold.ttf", 60, INK),
        ("for passing", "DejaVuSerif.ttf", 32, MUTED),
        (certificate.get("test_title") or certificate.get("title", ""), "DejaVuSerif-Bold.ttf", 44, ACCENT),
        (f"{certificate.get('course_name')} ({certificate.get('course_code')})"
         if certificate.get("course_name") else "", "DejaVuSans.ttf", 30, INK),
        (f"Score {certificate.get('score', 0)}% (pass mark {certificate.get('passing_score', 0)}%)",
         "DejaVuSans.ttf", 30, INK),
        (f"Issued {_fmt_date(certificate.get('issue_date'))}"
         + (f", valid until {_fmt_date(expiry)}" if expiry else ""), "DejaVuSans.ttf", 24, MUTED),
        (f"Verify: {certificate.get('certificate_id', '')}", "DejaVuSansMono.ttf", 22, MUTED),
    ]


def render_certificate_png(certificate: dict) -> bytes:
    """Blocking; call from a thread when serving requests"""
    width, height = CANVAS
    img = Image.new("RGB", CANVAS, color=(252, 250, 245))
    draw = ImageDraw.Draw(img)
    draw.rectangle([30, 30, width - 30, height - 30], outline=ACCENT, width=6)
    draw.ellipse([width - 230, height - 230, width - 90, height - 90], outline=SEAL, width=8)

    y = 110
    for text, font_name, size, color in _layout(certificate):
        if not text:
            continue
        font = _font(font_name, size)
        left, top, right, bottom = draw.textbbox((0, 0), text, font=font)
        draw.text(((width - (right - left)) / 2, y), text, fill=color, font=font)
        y += (bottom - top) + 40

    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()
