"""Volunteer audit script: prints who each matching volunteer marked present."""
import logging
from typing import Optional

from shaheen.config import settings
from shaheen.scripts._runner import require, required, run_script
from shaheen.services.audit import find_volunteers, volunteer_attendance_log
from shaheen.store.base import Store

logger = logging.getLogger(__name__)


async def _audit(store: Store, arg: Optional[str]) -> None:
    fragment = require(arg, "name")
    matches = await find_volunteers(store, fragment)
    if not matches:
        logger.info("No volunteer found matching %r", fragment)
        return
    for user_id, name in matches:
        log = await volunteer_attendance_log(
            store, user_id, settings.audit_start_date, settings.timezone_offset_minutes
        )
        print(f"\n{name} ({user_id}): {len(log)} attendance records since {settings.audit_start_date}")
        for entry in log:
            print(f"  {entry['time']}  {entry['student_name']} ({entry['student_id']})")


def volunteer_audit_main(argv=None) -> int:
    return run_script(_audit, "shaheen-volunteer-audit <name>", argv, check=required("name"))
