"""Certificate PDFs (ReportLab): text over a JPEG template, merged per masjid and zipped by cluster.

Layout (3508 x 2481 points, landscape, origin bottom-left):
  - student: name, masjid and completion date at fixed slots over the
    cluster's template (``cluster_NN_certificate.jpg``);
  - volunteer: name and masjid over a single template.
Each slot has a maximum width; the font shrinks in 0.5pt steps down to 7pt
until the text fits.
"""
from dataclasses import dataclass
from datetime import date, datetime, timezone
import io
import logging
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional, Union
import zipfile

from reportlab.lib.utils import ImageReader
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFError, TTFont
from reportlab.pdfgen import canvas

from shaheen.errors import InvalidTimestamp
from shaheen.models.chilla import ChillaPeriod
from shaheen.services.attendance_window import AttendanceWindowEngine, by_tracker, group_by_subject
from shaheen.services.certificates import CertificateIssuer
from shaheen.services.loaders import certificates_by_student, events_for_windows, volunteers_by_id
from shaheen.services.local_time import IST_OFFSET_MINUTES, format_local, local_range, to_utc
from shaheen.services.normalize import as_text, location_of, safe_filename, title_case
from shaheen.store.base import CERTIFICATES, Store

logger = logging.getLogger(__name__)

PAGE_SIZE = (3508, 2481)
FALLBACK_FONT = "Helvetica"
CERTIFICATE_FONT = "CertificateFont"
MIN_FONT_SIZE = 7
SHRINK_STEP = 0.5


@dataclass(frozen=True)
class TextSlot:
    x: float
    y: float
    max_width: Optional[float]
    size: float


_, PAGE_HEIGHT = PAGE_SIZE

STUDENT_LAYOUT = {
    "name": TextSlot(1700, PAGE_HEIGHT - 1315, 1300, 58),
    "masjid": TextSlot(2200, PAGE_HEIGHT - 1530, 1300, 52),
    "date": TextSlot(1200, PAGE_HEIGHT - 1530, 650, 45),
}

VOLUNTEER_LAYOUT = {
    "name": TextSlot(1500, 1300, 1500, 60),
    "masjid": TextSlot(1150, 1100, 1000, 50),
}


@dataclass(frozen=True)
class CertificatePage:
    name: str
    masjid: str
    cluster: Any
    date_text: str = ""


def register_font(font_path: Union[str, Path, None]) -> str:
    """Register the TTF certificate font; Helvetica when it is missing or unreadable."""
    if not font_path or not Path(font_path).is_file():
        logger.warning("Custom font not found at %s, using %s", font_path, FALLBACK_FONT)
        return FALLBACK_FONT
    if CERTIFICATE_FONT in pdfmetrics.getRegisteredFontNames():
        return CERTIFICATE_FONT
    try:
        pdfmetrics.registerFont(TTFont(CERTIFICATE_FONT, str(font_path)))
    except (TTFError, OSError) as e:
        logger.warning("Error reading font %s: %s", font_path, e)
        return FALLBACK_FONT
    return CERTIFICATE_FONT


def auto_size(text: str, font_name: str, base_size: float, max_width: Optional[float]) -> float:
    if not text or not max_width:
        return base_size
    size = base_size
    while pdfmetrics.stringWidth(text, font_name, size) > max_width and size > MIN_FONT_SIZE:
        size -= SHRINK_STEP
    return size


def template_name(cluster: Any) -> str:
    return f"cluster_{as_text(cluster).zfill(2)}_certificate.jpg"


def _draw_slot(c: canvas.Canvas, font_name: str, slot: TextSlot, text: str) -> None:
    c.setFont(font_name, auto_size(text, font_name, slot.size, slot.max_width))
    c.setFillColorRGB(0, 0, 0)
    c.drawString(slot.x, slot.y, text)


class CertificateRenderer:
    def __init__(self, templates_dir: Union[str, Path], font_path: Union[str, Path, None] = None):
        self.templates_dir = Path(templates_dir)
        self.font_name = register_font(font_path)
        self._templates: dict[str, Optional[ImageReader]] = {}

    def template(self, cluster: Any) -> Optional[ImageReader]:
        name = template_name(cluster)
        if name not in self._templates:
            path = self.templates_dir / name
            if path.is_file():
                self._templates[name] = ImageReader(str(path))
            else:
                logger.error("Template not found for cluster %s: %s", cluster, path)
                self._templates[name] = None
        return self._templates[name]

    def render_student_pages(self, pages: Iterable[CertificatePage]) -> tuple[Optional[bytes], int]:
        """One PDF with a page per certificate; pages without a template are skipped."""
        buf = io.BytesIO()
        c = canvas.Canvas(buf, pagesize=PAGE_SIZE)
        rendered = 0
        for page in pages:
            template = self.template(page.cluster)
            if template is None:
                logger.warning("Skipping %s - template not found for cluster %s", page.name, page.cluster)
                continue
            c.drawImage(template, 0, 0, width=PAGE_SIZE[0], height=PAGE_SIZE[1])
            _draw_slot(c, self.font_name, STUDENT_LAYOUT["name"], page.name)
            _draw_slot(c, self.font_name, STUDENT_LAYOUT["date"], page.date_text)
            _draw_slot(c, self.font_name, STUDENT_LAYOUT["masjid"], page.masjid)
            c.showPage()
            rendered += 1
        if not rendered:
            return None, 0
        c.save()
        return buf.getvalue(), rendered


def render_volunteer_certificate(
    template_path: Union[str, Path], font_name: str, name: str, masjid: str
) -> bytes:
    """Single-page volunteer certificate sized to its template image."""
    image = ImageReader(str(template_path))
    width, height = image.getSize()
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=(width, height))
    c.drawImage(image, 0, 0, width=width, height=height)
    _draw_slot(c, font_name, VOLUNTEER_LAYOUT["name"], title_case(name))
    _draw_slot(c, font_name, VOLUNTEER_LAYOUT["masjid"], title_case(masjid))
    c.showPage()
    c.save()
    return buf.getvalue()


def certificate_page(cert: Mapping, offset_minutes: int = IST_OFFSET_MINUTES) -> CertificatePage:
    _, masjid, cluster = location_of(cert)
    try:
        date_text = format_local(cert.get("time"), "%d-%m-%Y", offset_minutes)
    except InvalidTimestamp:
        date_text = "Unknown Date"
    return CertificatePage(
        name=title_case(as_text(cert.get("name"))),
        masjid=title_case(masjid),
        cluster=cluster or 0,
        date_text=date_text,
    )


def group_by_masjid(pages: Iterable[CertificatePage]) -> dict[str, tuple[Any, list[CertificatePage]]]:
    """Pages per masjid name; the cluster of the first page decides the zip folder."""
    groups: dict[str, tuple[Any, list[CertificatePage]]] = {}
    for page in pages:
        groups.setdefault(page.masjid, (page.cluster, []))[1].append(page)
    return groups


def write_masjid_bundle(
    renderer: CertificateRenderer, pages: Iterable[CertificatePage], out_dir: Path, label: str
) -> Optional[Path]:
    """Merged PDF per masjid plus a zip laid out as ``clusters/cluster_NN/<masjid>.pdf``."""
    out_dir.mkdir(parents=True, exist_ok=True)
    merged: dict[str, tuple[Any, Path]] = {}
    total = 0
    for masjid, (cluster, masjid_pages) in group_by_masjid(pages).items():
        pdf, count = renderer.render_student_pages(masjid_pages)
        if pdf is None:
            continue
        safe_masjid = masjid.replace("/", "-")
        path = out_dir / f"All_{safe_masjid}.pdf"
        path.write_bytes(pdf)
        merged[safe_masjid] = (cluster, path)
        total += count
        logger.info("Merged PDF for: %s (%d certificates)", masjid, count)
    if not merged:
        logger.warning("No certificates rendered")
        return None

    zip_path = out_dir / f"{label}_{datetime.now():%Y%m%d%H%M%S}.zip"
    with zipfile.ZipFile(zip_path, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=9) as zf:
        for safe_masjid, (cluster, path) in merged.items():
            zf.write(path, f"clusters/cluster_{as_text(cluster).zfill(2)}/{safe_masjid}.pdf")
    logger.info(
        "ZIP file created: %s (%d masjids, %d certificates)", zip_path, len(merged), total
    )
    return zip_path


async def export_certificate_pdfs_in_range(
    store: Store,
    start: date,
    end: date,
    renderer: CertificateRenderer,
    out_dir: Path,
    offset_minutes: int = IST_OFFSET_MINUTES,
) -> Optional[Path]:
    """Every certificate whose completion date falls in [start, end]."""
    lo, hi = local_range(start, end, offset_minutes)
    certs = await store.query(CERTIFICATES, [("time", ">=", lo), ("time", "<", hi)], order_by="time")
    logger.info("Found %d certificates from %s to %s", len(certs), start, end)
    if not certs:
        return None
    pages = [certificate_page(c, offset_minutes) for c in certs]
    return write_masjid_bundle(renderer, pages, out_dir, "certificates_export")


def _completion_instant(cert: Mapping):
    try:
        return to_utc(cert.get("time"))
    except InvalidTimestamp:
        return datetime.max.replace(tzinfo=timezone.utc)


async def export_certificate_pdfs_by_count(
    store: Store,
    count: int,
    renderer: CertificateRenderer,
    out_dir: Path,
    offset_minutes: int = IST_OFFSET_MINUTES,
) -> Optional[Path]:
    """Certificates of students holding exactly ``count`` certificates, oldest first."""
    if count < 1:
        raise ValueError(f"Certificate count must be at least 1, got {count}")
    grouped = await certificates_by_student(store)
    matching = {sid: certs for sid, certs in grouped.items() if len(certs) == count}
    logger.info(
        "Total students: %d; with exactly %d certificate(s): %d", len(grouped), count, len(matching)
    )
    if not matching:
        return None
    pages = []
    for certs in matching.values():
        for cert in sorted(certs, key=_completion_instant):
            pages.append(certificate_page(cert, offset_minutes))
    return write_masjid_bundle(renderer, pages, out_dir, f"certificates_count_{count}")


async def export_volunteer_certificates(
    store: Store,
    windows: list[ChillaPeriod],
    engine: AttendanceWindowEngine,
    template_path: Union[str, Path],
    font_path: Union[str, Path, None],
    out_dir: Path,
    limit: Optional[int] = None,
) -> int:
    """Issue and render a certificate for every volunteer eligible in each window.

    Returns the number of PDFs written. Records already issued are kept as
    they are; the PDF is rendered again.
    """
    if not Path(template_path).is_file():
        raise FileNotFoundError(f"Volunteer certificate template not found: {template_path}")
    font_name = register_font(font_path)
    issuer = CertificateIssuer(store)
    volunteers = await volunteers_by_id(store)
    events = await events_for_windows(store, windows, engine.offset_minutes)
    grouped = group_by_subject(events, by_tracker)

    written = 0
    for period in windows:
        period_dir = out_dir / period.slug
        period_dir.mkdir(parents=True, exist_ok=True)
        logger.info("Processing %s...", period.name)
        for uid, volunteer in volunteers.items():
            if limit is not None and written >= limit:
                return written
            summary = engine.summarize(period, grouped.get(uid, ()))
            if not summary.eligible:
                continue
            logger.info("Generating for %s (%.1f%%)", volunteer.name, summary.attendance_percentage)
            try:
                await issuer.issue_volunteer_certificate(volunteer, period, summary)
                pdf = render_volunteer_certificate(template_path, font_name, volunteer.name, volunteer.masjid)
            except Exception:
                logger.exception("Failed to generate for %s", volunteer.name)
                continue
            (period_dir / f"{safe_filename(volunteer.name)}_{uid}.pdf").write_bytes(pdf)
            written += 1
    logger.info("Done. Generated %d volunteer certificates", written)
    return written
