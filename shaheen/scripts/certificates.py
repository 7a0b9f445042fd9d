"""Certificate PDF scripts."""
import logging
from pathlib import Path
from typing import Optional

from shaheen.config import settings
from shaheen.scripts._runner import UsageError, optional, parse_range, require, run_script, window_engine
from shaheen.services.certificate_pdf import (
    CertificateRenderer,
    export_certificate_pdfs_by_count,
    export_certificate_pdfs_in_range,
    export_volunteer_certificates,
)
from shaheen.store.base import Store

logger = logging.getLogger(__name__)


def _renderer() -> CertificateRenderer:
    return CertificateRenderer(settings.certificate_templates_dir, settings.certificate_font_path)


def _positive_int(text: str, name: str) -> int:
    try:
        value = int(text)
    except ValueError as e:
        raise UsageError(f"{name} must be an integer, got {text!r}") from e
    if value < 1:
        raise UsageError(f"{name} must be at least 1, got {value}")
    return value


async def _pdfs_in_range(store: Store, arg: Optional[str]) -> None:
    start, end = parse_range(require(arg, "START:END"))
    out_dir = Path(settings.output_dir) / f"certificates_{start:%Y%m%d}_{end:%Y%m%d}"
    zip_path = await export_certificate_pdfs_in_range(
        store, start, end, _renderer(), out_dir, settings.timezone_offset_minutes
    )
    if zip_path is None:
        logger.info("No certificates to export")


async def _pdfs_by_count(store: Store, arg: Optional[str]) -> None:
    count = _positive_int(require(arg, "count"), "count")
    out_dir = Path(settings.output_dir) / f"certificates_count_{count}"
    zip_path = await export_certificate_pdfs_by_count(
        store, count, _renderer(), out_dir, settings.timezone_offset_minutes
    )
    if zip_path is None:
        logger.info("No students with exactly %d certificate(s)", count)


async def _volunteer_certificates(store: Store, arg: Optional[str]) -> None:
    limit = _positive_int(arg, "limit") if arg else None
    await export_volunteer_certificates(
        store,
        settings.windows,
        window_engine(),
        settings.volunteer_template_path,
        settings.certificate_font_path,
        Path(settings.output_dir) / "volunteer_certificates",
        limit=limit,
    )


def certificates_in_range_main(argv=None) -> int:
    return run_script(
        _pdfs_in_range,
        "shaheen-certificates-range START:END",
        argv,
        check=lambda arg: parse_range(require(arg, "START:END")),
    )


def certificates_by_count_main(argv=None) -> int:
    return run_script(
        _pdfs_by_count,
        "shaheen-certificates-count <n>",
        argv,
        check=lambda arg: _positive_int(require(arg, "count"), "count"),
    )


def volunteer_certificates_main(argv=None) -> int:
    return run_script(
        _volunteer_certificates,
        "shaheen-volunteer-certificates [limit]",
        argv,
        check=optional(lambda text: _positive_int(text, "limit")),
    )
