"""Weekly schedule rules and "what should be playing now" resolution.

Rules for a (store, day) partition the day into disjoint [start, end)
windows. Overlaps are rejected at write time, so resolution is a single
indexed lookup with no tie-break.

Day and time of day are evaluated in the store's own timezone
(``Store.timezone``), falling back to ``STOREAUDIO_DEFAULT_TIMEZONE``.
"""

import logging
import os
import re
from datetime import datetime, time, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy.orm import Session

from storeaudio.errors import NotFound, ScheduleConflict, ValidationError
from storeaudio.models import Playlist, ScheduleRule, Store
from storeaudio.schemas.schedule import (
    BulkCreateIn,
    CopyScheduleIn,
    DayOfWeek,
    ScheduleRuleFields,
    ScheduleRuleIn,
    ScheduleRuleUpdate,
)
from storeaudio.services.payloads import hhmm, rule_payload
from storeaudio.services.stores import get_playlist_for_org, get_store_for_org, lock_store

logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = (os.getenv("STOREAUDIO_DEFAULT_TIMEZONE", "Europe/Rome") or "").strip() or "UTC"

# Index matches datetime.weekday().
WEEK: list[DayOfWeek] = [
    DayOfWeek.MONDAY,
    DayOfWeek.TUESDAY,
    DayOfWeek.WEDNESDAY,
    DayOfWeek.THURSDAY,
    DayOfWeek.FRIDAY,
    DayOfWeek.SATURDAY,
    DayOfWeek.SUNDAY,
]
_DAY_INDEX = {day.value: index for index, day in enumerate(WEEK)}
_HHMM = re.compile(r"^([01]?[0-9]|2[0-3]):([0-5][0-9])$")


def parse_time_of_day(value: str) -> time:
    match = _HHMM.match((value or "").strip())
    if not match:
        raise ValidationError("Invalid time format. Use HH:MM.")
    return time(int(match.group(1)), int(match.group(2)))


def _zone(name: str | None) -> ZoneInfo:
    for candidate in (name, DEFAULT_TIMEZONE):
        if not candidate:
            continue
        try:
            return ZoneInfo(candidate)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning("Unknown timezone %r, falling back", candidate)
    return ZoneInfo("UTC")


def store_zone(store: Store) -> ZoneInfo:
    return _zone(store.timezone)


def local_clock(store: Store, at_time: datetime | None = None) -> tuple[DayOfWeek, time]:
    """Day bucket and minute of day for ``at_time`` on the store's wall clock.

    Naive datetimes are read as UTC, matching how timestamps are stored.
    """
    instant = at_time or datetime.now(timezone.utc)
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    local = instant.astimezone(store_zone(store))
    return WEEK[local.weekday()], time(local.hour, local.minute)


def find_active_rule(db: Session, store_id: str, day: DayOfWeek, current: time) -> ScheduleRule | None:
    return (
        db.query(ScheduleRule)
        .filter(
            ScheduleRule.store_id == store_id,
            ScheduleRule.day_of_week == day.value,
            ScheduleRule.is_active.is_(True),
            ScheduleRule.start_time <= current,
            ScheduleRule.end_time > current,
        )
        .order_by(ScheduleRule.start_time.asc())
        .first()
    )


def resolve(db: Session, store: Store, at_time: datetime | None = None) -> tuple[ScheduleRule | None, Playlist | None]:
    """Matching rule (if any) and the playlist that should be playing."""
    day, current = local_clock(store, at_time)
    rule = find_active_rule(db, store.id, day, current)
    if rule is not None:
        playlist = db.get(Playlist, rule.playlist_id)
        if playlist is not None:
            return rule, playlist
    if store.active_playlist_id:
        return None, db.get(Playlist, store.active_playlist_id)
    return None, None


def resolve_current_playlist(db: Session, store_id: str, at_time: datetime | None = None) -> Playlist | None:
    store = db.get(Store, store_id)
    if store is None:
        raise NotFound("Store not found")
    _, playlist = resolve(db, store, at_time)
    return playlist


def check_overlap(
    db: Session,
    store_id: str,
    day: DayOfWeek,
    start: time,
    end: time,
    exclude_id: str | None = None,
) -> None:
    if start >= end:
        raise ValidationError("startTime must be before endTime.")

    # Two half-open ranges intersect iff each starts before the other ends.
    conditions = [
        ScheduleRule.store_id == store_id,
        ScheduleRule.day_of_week == day.value,
        ScheduleRule.is_active.is_(True),
        ScheduleRule.start_time < end,
        ScheduleRule.end_time > start,
    ]
    if exclude_id is not None:
        conditions.append(ScheduleRule.id != exclude_id)

    overlap = db.query(ScheduleRule).filter(*conditions).first()
    if overlap:
        raise ScheduleConflict(day.value, hhmm(start), hhmm(end))


def _sort_key(rule: ScheduleRule) -> tuple[int, time]:
    return _DAY_INDEX.get(rule.day_of_week, len(WEEK)), rule.start_time


def list_rules(db: Session, organization_id: str, store_id: str) -> list[ScheduleRule]:
    get_store_for_org(db, store_id, organization_id)
    rules = db.query(ScheduleRule).filter(ScheduleRule.store_id == store_id).all()
    return sorted(rules, key=_sort_key)


def active_rules(db: Session, store_id: str) -> list[ScheduleRule]:
    rules = (
        db.query(ScheduleRule)
        .filter(ScheduleRule.store_id == store_id, ScheduleRule.is_active.is_(True))
        .all()
    )
    return sorted(rules, key=_sort_key)


def get_rule(db: Session, organization_id: str, rule_id: str) -> ScheduleRule:
    rule = (
        db.query(ScheduleRule)
        .join(Store, Store.id == ScheduleRule.store_id)
        .filter(ScheduleRule.id == rule_id, Store.organization_id == organization_id)
        .first()
    )
    if rule is None:
        raise NotFound("Schedule rule not found")
    return rule


def _install_rule(db: Session, organization_id: str, store_id: str, fields: ScheduleRuleFields) -> ScheduleRule:
    get_playlist_for_org(db, fields.playlist_id, organization_id)
    start = parse_time_of_day(fields.start_time)
    end = parse_time_of_day(fields.end_time)
    if fields.is_active:
        check_overlap(db, store_id, fields.day_of_week, start, end)
    elif start >= end:
        raise ValidationError("startTime must be before endTime.")
    rule = ScheduleRule(
        store_id=store_id,
        playlist_id=fields.playlist_id,
        day_of_week=fields.day_of_week.value,
        start_time=start,
        end_time=end,
        volume=fields.volume,
        is_active=fields.is_active,
    )
    db.add(rule)
    # Later checks in the same transaction must see this rule.
    db.flush()
    return rule


def create_rule(db: Session, organization_id: str, payload: ScheduleRuleIn) -> ScheduleRule:
    get_store_for_org(db, payload.store_id, organization_id)
    try:
        lock_store(db, payload.store_id)
        rule = _install_rule(db, organization_id, payload.store_id, payload)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(rule)
    return rule


def update_rule(db: Session, organization_id: str, rule_id: str, payload: ScheduleRuleUpdate) -> ScheduleRule:
    rule = get_rule(db, organization_id, rule_id)
    changes = payload.model_fields_set
    try:
        lock_store(db, rule.store_id)
        new_day = payload.day_of_week if payload.day_of_week is not None else DayOfWeek(rule.day_of_week)
        new_start = parse_time_of_day(payload.start_time) if payload.start_time is not None else rule.start_time
        new_end = parse_time_of_day(payload.end_time) if payload.end_time is not None else rule.end_time
        new_active = payload.is_active if payload.is_active is not None else bool(rule.is_active)
        if new_active:
            check_overlap(db, rule.store_id, new_day, new_start, new_end, exclude_id=rule.id)
        elif new_start >= new_end:
            raise ValidationError("startTime must be before endTime.")
        if payload.playlist_id is not None:
            get_playlist_for_org(db, payload.playlist_id, organization_id)
            rule.playlist_id = payload.playlist_id

        rule.day_of_week = new_day.value
        rule.start_time = new_start
        rule.end_time = new_end
        rule.is_active = new_active
        if "volume" in changes:
            rule.volume = payload.volume
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(rule)
    return rule


def delete_rule(db: Session, organization_id: str, rule_id: str) -> None:
    rule = get_rule(db, organization_id, rule_id)
    db.delete(rule)
    db.commit()


def bulk_create(db: Session, organization_id: str, payload: BulkCreateIn) -> list[ScheduleRule]:
    """Install every rule or none of them."""
    get_store_for_org(db, payload.store_id, organization_id)
    created: list[ScheduleRule] = []
    try:
        lock_store(db, payload.store_id)
        for fields in payload.rules:
            created.append(_install_rule(db, organization_id, payload.store_id, fields))
        db.commit()
    except Exception:
        db.rollback()
        raise
    for rule in created:
        db.refresh(rule)
    return created


def copy_schedule(db: Session, organization_id: str, payload: CopyScheduleIn) -> list[ScheduleRule]:
    """Replace the target store's rules with a verbatim copy of the source's."""
    if payload.source_store_id == payload.target_store_id:
        raise ValidationError("Source and target store must differ.")
    get_store_for_org(db, payload.source_store_id, organization_id)
    get_store_for_org(db, payload.target_store_id, organization_id)

    source_rules = (
        db.query(ScheduleRule)
        .filter(ScheduleRule.store_id == payload.source_store_id)
        .all()
    )
    created: list[ScheduleRule] = []
    try:
        lock_store(db, payload.target_store_id)
        db.query(ScheduleRule).filter(ScheduleRule.store_id == payload.target_store_id).delete(
            synchronize_session=False
        )
        db.flush()
        for source in sorted(source_rules, key=_sort_key):
            if source.is_active:
                check_overlap(
                    db,
                    payload.target_store_id,
                    DayOfWeek(source.day_of_week),
                    source.start_time,
                    source.end_time,
                )
            rule = ScheduleRule(
                store_id=payload.target_store_id,
                playlist_id=source.playlist_id,
                day_of_week=source.day_of_week,
                start_time=source.start_time,
                end_time=source.end_time,
                volume=source.volume,
                is_active=source.is_active,
            )
            db.add(rule)
            db.flush()
            created.append(rule)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info(
        "Copied %d schedule rules from store %s to store %s",
        len(created),
        payload.source_store_id,
        payload.target_store_id,
    )
    return created


def weekly_overview(db: Session, organization_id: str, store_id: str) -> dict[str, list[dict]]:
    get_store_for_org(db, store_id, organization_id)
    overview: dict[str, list[dict]] = {day.value: [] for day in WEEK}
    for rule in active_rules(db, store_id):
        overview.setdefault(rule.day_of_week, []).append(rule_payload(rule))
    return overview
