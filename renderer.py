"""
Artifact rendering in two independent stages joined by bytes:

    render_artifact(...)  -> PNG bytes, always 1200x1600
    wrap_png_as_pdf(png)  -> PDF bytes, one page the size of the image

The layout stage knows nothing about PDFs; the document stage knows nothing
about the layout.
"""

import io, json, logging

from PIL import Image, ImageDraw, ImageFont
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from errors import RenderError
from schemas import NarrativeSections

logger = logging.getLogger("giftbrief")

WIDTH, HEIGHT = 1200, 1600
PADDING       = 60

BG         = "#0d1116"
ACCENT     = "#3b82f6"
LIGHT_GRAY = "#9ca3af"
WHITE      = "#f9fafb"
RULE       = "#2b3038"

BODY_SIZE         = 18
BODY_LINE_HEIGHT  = int(BODY_SIZE * 1.6)
MAX_SECTION_LINES = 7

SECTIONS = (
    ("01", "Your Challenge",          "problem_reframe"),
    ("02", "Why Gifting Works",       "why_gifting_works"),
    ("03", "Your Strategy Structure", "strategy_shape"),
    ("04", "What Success Looks Like", "success_and_next_step"),
)

CTA_TEXT    = "Ready to turn this into reality? Let's design your custom gifting campaign together."
CTA_BUTTON  = "Schedule Your Call"
FOOTER_NOTE = "© 2025 Real.AI · Making gifting meaningful"


def _font(size: int, bold: bool = False) -> ImageFont.FreeTypeFont:
    try:
        return ImageFont.truetype("DejaVuSans-Bold.ttf" if bold else "DejaVuSans.ttf", size)
    except OSError:
        return ImageFont.load_default(size=size)


def _wrap(draw: ImageDraw.ImageDraw, text: str, font, width: int, max_lines: int = 0) -> list[str]:
    lines, line = [], ""
    for word in text.split():
        candidate = f"{line} {word}".strip()
        if not line or draw.textlength(candidate, font=font) <= width:
            line = candidate
        else:
            lines.append(line)
            line = word
    if line:
        lines.append(line)
    if max_lines and len(lines) > max_lines:
        lines = lines[:max_lines]
        lines[-1] = lines[-1].rstrip(".,;: ") + "…"
    return lines


def _draw_header(draw: ImageDraw.ImageDraw, recipient_name: str, industry: str) -> int:
    y = PADDING
    draw.ellipse((PADDING, y + 5, PADDING + 10, y + 15), fill=ACCENT)
    draw.text((PADDING + 20, y), "REAL.AI GIFTING STRATEGY", font=_font(16, bold=True), fill=LIGHT_GRAY)
    y += 32
    title_font = _font(48, bold=True)
    for line in _wrap(draw, f"{recipient_name}'s Personalized Strategy", title_font, WIDTH - 2 * PADDING, 2):
        draw.text((PADDING, y), line, font=title_font, fill=WHITE)
        y += 54
    y += 8
    draw.text((PADDING, y), f"Industry: {industry}", font=_font(20), fill=LIGHT_GRAY)
    return y + 28 + 40


def _draw_sections(draw: ImageDraw.ImageDraw, sections: NarrativeSections, y: int) -> int:
    label_font, body_font = _font(14, bold=True), _font(BODY_SIZE)
    for number, title, field in SECTIONS:
        draw.text((PADDING, y), f"{number}  {title.upper()}", font=label_font, fill=ACCENT)
        y += 22
        for line in _wrap(draw, getattr(sections, field), body_font, WIDTH - 2 * PADDING, MAX_SECTION_LINES):
            draw.text((PADDING, y), line, font=body_font, fill=WHITE)
            y += BODY_LINE_HEIGHT
        y += 32
    return y


def _draw_footer(draw: ImageDraw.ImageDraw) -> None:
    # anchored to the bottom edge, independent of how long the sections ran
    bar_y = HEIGHT - PADDING - 40
    draw.line((PADDING, bar_y, WIDTH - PADDING, bar_y), fill=RULE, width=1)
    draw.text((PADDING, bar_y + 20), "Real.AI", font=_font(18, bold=True), fill=WHITE)
    note_font = _font(14)
    note_w = draw.textlength(FOOTER_NOTE, font=note_font)
    draw.text((WIDTH - PADDING - note_w, bar_y + 22), FOOTER_NOTE, font=note_font, fill=LIGHT_GRAY)

    button_font = _font(20, bold=True)
    button_w = draw.textlength(CTA_BUTTON, font=button_font) + 120
    button_top = bar_y - 40 - 60
    left = (WIDTH - button_w) / 2
    draw.rounded_rectangle((left, button_top, left + button_w, button_top + 60), radius=12, fill=ACCENT)
    draw.text((WIDTH / 2, button_top + 30), CTA_BUTTON, font=button_font, fill=WHITE, anchor="mm")

    cta_font = _font(22, bold=True)
    cta_lines = _wrap(draw, CTA_TEXT, cta_font, 700)
    y = button_top - 24 - len(cta_lines) * 30
    for line in cta_lines:
        draw.text((WIDTH / 2, y), line, font=cta_font, fill=WHITE, anchor="mt")
        y += 30


def render_artifact(sections: NarrativeSections, recipient_name: str, industry: str) -> bytes:
    try:
        img = Image.new("RGB", (WIDTH, HEIGHT), BG)
        draw = ImageDraw.Draw(img)
        y = _draw_header(draw, recipient_name, industry)
        _draw_sections(draw, sections, y)
        _draw_footer(draw)
        buf = io.BytesIO()
        img.save(buf, format="PNG", optimize=True)
    except Exception as e:
        logger.error(json.dumps({"event": "render_failed", "error": str(e)}))
        raise RenderError("Failed to generate image") from e
    return buf.getvalue()


def wrap_png_as_pdf(png: bytes) -> bytes:
    """Embed ``png`` as the only content of a page sized to it at 1:1."""
    try:
        image = ImageReader(io.BytesIO(png))
        width, height = image.getSize()
        buf = io.BytesIO()
        doc = canvas.Canvas(buf, pagesize=(width, height))
        doc.drawImage(image, 0, 0, width=width, height=height)
        doc.showPage()
        doc.save()
    except Exception as e:
        raise RenderError("Failed to convert image to PDF") from e
    return buf.getvalue()
