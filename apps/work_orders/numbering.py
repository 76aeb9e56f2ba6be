"""
Work order numbers: WO-YYYYMMDD-NNN, one sequence per calendar day.
"""
import logging
import re

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from apps.utils.exceptions import ConflictError
from .models import WorkOrder, WorkOrderSequence

logger = logging.getLogger(__name__)


def _prefix():
    return getattr(settings, "WORK_ORDER_NUMBER_PREFIX", "WO")


def format_number(day, sequence: int) -> str:
    return f"{_prefix()}-{day:%Y%m%d}-{sequence:03d}"


def _highest_existing(day) -> int:
    """
    Highest sequence already used on `day`. Only consulted when the day's
    counter row is first created, so numbers issued before the counter
    existed are never reused.
    """
    stem = f"{_prefix()}-{day:%Y%m%d}-"
    pattern = re.compile(re.escape(stem) + r"(\d+)$")
    highest = 0
    for number in WorkOrder.objects.filter(number__startswith=stem).values_list("number", flat=True):
        match = pattern.match(number)
        if match:
            highest = max(highest, int(match.group(1)))
    return highest


def allocate_number(day=None) -> str:
    """
    Reserve the next number for `day` (defaults to today in TIME_ZONE).

    The per-day counter row is locked for the increment; two creators racing
    to insert a fresh day's row hit the unique constraint and the loser retries.
    """
    day = day or timezone.localdate()
    retries = getattr(settings, "WORK_ORDER_NUMBER_RETRIES", 5)

    for attempt in range(1, retries + 1):
        try:
            with transaction.atomic():
                sequence, created = (
                    WorkOrderSequence.objects
                    .select_for_update()
                    .get_or_create(day=day, defaults={"last_value": _highest_existing(day)})
                )
                WorkOrderSequence.objects.filter(pk=sequence.pk).update(last_value=F("last_value") + 1)
                sequence.refresh_from_db(fields=["last_value"])
                return format_number(day, sequence.last_value)
        except IntegrityError:
            logger.warning("Sequence row for %s created concurrently (attempt %s/%s)", day, attempt, retries)

    raise ConflictError("Could not allocate a work order number. Please try again.")
