from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import date

from sqlalchemy.orm import Session

from performate.config import settings
from performate.core.errors import ReferentialError, ValidationError
from performate.core.storage import storage_guard
from performate.core.time_provider import TimeProvider, default_time_provider
from performate.models import CounterKind, Mentor, MorningBliss, StarSource, Student, TallyCategory
from performate.services.ledger_store import LedgerStore, fine_for
from performate.services.reason_catalog import ReasonCatalog, coerce_category


logger = logging.getLogger(__name__)

COUNTER_FOR_CATEGORY = {
    TallyCategory.CLASS: CounterKind.TALLY,
    TallyCategory.PERFORMANCE: CounterKind.OTHER_TALLY,
    TallyCategory.STAR: CounterKind.STAR,
}
TOPPER_THRESHOLD = 9.5


@dataclass(frozen=True)
class TallyResult:
    student_id: int
    category: TallyCategory
    points: int
    new_total: int
    history_id: int
    duplicate: bool = False


@dataclass(frozen=True)
class NetFine:
    student_id: int
    tally_count: int
    star_count: int
    other_tally_count: int
    net_tallies: int
    fine_amount: int
    other_fine_amount: int

    @property
    def total_fine(self) -> int:
        return self.fine_amount + self.other_fine_amount

    def as_dict(self) -> dict:
        return {
            'student_id': self.student_id,
            'tallies': self.tally_count,
            'stars': self.star_count,
            'other_tallies': self.other_tally_count,
            'net_tallies': self.net_tallies,
            'fine_amount': self.fine_amount,
            'other_fine_amount': self.other_fine_amount,
            'total_fine': self.total_fine,
        }


def history_delta(category: TallyCategory, points: int) -> int:
    # Stars are logged as negative tally points; net fine reporting relies on it.
    if category == TallyCategory.STAR:
        return -points * settings.star_tally_offset
    return points


def stars_for_score(score: float) -> int:
    if score == 10:
        return 3
    if score >= 9.5:
        return 2
    if score >= 9.0:
        return 1
    return 0


def compute_net_fine(student_id: int, tally_count: int, star_count: int, other_tally_count: int) -> NetFine:
    net_tallies = max(0, int(tally_count) - int(star_count) * settings.star_tally_offset)
    return NetFine(
        student_id=int(student_id),
        tally_count=int(tally_count),
        star_count=int(star_count),
        other_tally_count=int(other_tally_count),
        net_tallies=net_tallies,
        fine_amount=fine_for(net_tallies),
        other_fine_amount=fine_for(other_tally_count),
    )


def _clean_points(points) -> int:
    if isinstance(points, bool) or (isinstance(points, float) and not points.is_integer()):
        raise ValidationError('count must be a positive integer')
    try:
        value = int(points)
    except (TypeError, ValueError) as exc:
        raise ValidationError('count must be a positive integer') from exc
    if value < 1:
        raise ValidationError('count must be a positive integer')
    return value


def _clean_score(score) -> float:
    if isinstance(score, bool):
        raise ValidationError('score must be a number between 0 and 10')
    try:
        value = float(score)
    except (TypeError, ValueError) as exc:
        raise ValidationError('score must be a number between 0 and 10') from exc
    if math.isnan(value) or value < 0 or value > 10:
        raise ValidationError('score must be a number between 0 and 10')
    return value


class AccountingService:
    def __init__(
        self,
        db: Session,
        *,
        ledger: LedgerStore | None = None,
        catalog: ReasonCatalog | None = None,
        time_provider: TimeProvider = default_time_provider,
    ) -> None:
        self.db = db
        self.ledger = ledger or LedgerStore(db)
        self.catalog = catalog or ReasonCatalog(db)
        self.time_provider = time_provider

    def apply_tally(
        self,
        student_id: int,
        class_name: str | None,
        mentor_id: int | None,
        mentor_short_form: str | None,
        category,
        reason_id: int | None = None,
        points: int | None = None,
        *,
        reason_text: str | None = None,
        source: str = StarSource.MANUAL.value,
        idempotency_key: str | None = None,
    ) -> TallyResult:
        """Add points for one student and record who did it and why.

        With ``reason_id`` the point value and label come from the catalog, otherwise
        ``points`` is used as given. A repeated ``idempotency_key`` returns the current
        total without touching the ledger.
        """
        clean_category = coerce_category(category)
        if reason_id is None and points is None:
            raise ValidationError('Either reason_id or count is required')
        clean_points = None if reason_id is not None else _clean_points(points)
        clean_key = (idempotency_key or '').strip() or None

        student = self._require_student(student_id)
        if clean_key:
            duplicate = self._duplicate_result(student, clean_category, clean_key)
            if duplicate is not None:
                return duplicate

        label = (reason_text or '').strip() or None
        if reason_id is not None:
            resolved = self.catalog.resolve(clean_category, reason_id)
            clean_points = resolved.value
            label = resolved.label

        short_form = self._resolve_short_form(mentor_id, mentor_short_form)
        steps: list[str] = []
        with storage_guard(self.db, 'apply_tally', steps=steps):
            result = self._apply(
                student=student,
                class_name=(class_name or '').strip() or student.class_name,
                mentor_id=mentor_id,
                mentor_short_form=short_form,
                category=clean_category,
                points=clean_points,
                label=label,
                source=source,
                idempotency_key=clean_key,
                steps=steps,
            )
            self.db.commit()
        logger.info(
            'tally_applied student_id=%s category=%s points=%s new_total=%s mentor=%s',
            student.id,
            clean_category.value,
            clean_points,
            result.new_total,
            short_form,
        )
        return result

    def record_morning_bliss(
        self,
        student_id: int,
        class_name: str | None,
        topic: str,
        score,
        evaluator_name: str,
        photo_refs: list[str] | None = None,
        entry_date: date | None = None,
        explicit_topper_flag: bool | None = None,
        *,
        mentor_id: int | None = None,
        mentor_short_form: str | None = None,
        is_daily_winner: bool = False,
    ) -> MorningBliss:
        clean_topic = (topic or '').strip()
        clean_evaluator = (evaluator_name or '').strip()
        if not clean_topic:
            raise ValidationError('topic is required')
        if not clean_evaluator:
            raise ValidationError('evaluated_by is required')
        clean_score = _clean_score(score)
        refs = [str(ref).strip() for ref in (photo_refs or []) if str(ref or '').strip()]

        student = self._require_student(student_id)
        resolved_class = (class_name or '').strip() or student.class_name
        is_topper = bool(explicit_topper_flag) if explicit_topper_flag is not None else clean_score >= TOPPER_THRESHOLD
        stars = stars_for_score(clean_score)

        entry = MorningBliss(
            student_id=student.id,
            class_name=resolved_class,
            topic=clean_topic,
            score=clean_score,
            evaluated_by=clean_evaluator,
            evaluator_id=mentor_id,
            photo_urls=refs,
            entry_date=entry_date or self.time_provider.today(),
            stars_awarded=stars,
            is_daily_winner=bool(is_daily_winner),
            is_topper=is_topper,
        )
        steps: list[str] = []
        with storage_guard(self.db, 'record_morning_bliss', steps=steps):
            self.db.add(entry)
            self.db.flush()
            steps.append('morning_bliss')
            if stars > 0:
                self._apply(
                    student=student,
                    class_name=resolved_class,
                    mentor_id=mentor_id,
                    mentor_short_form=self._resolve_short_form(mentor_id, mentor_short_form, fallback=clean_evaluator),
                    category=TallyCategory.STAR,
                    points=stars,
                    label=f'Morning Bliss: {clean_topic}',
                    source=StarSource.MORNING_BLISS.value,
                    idempotency_key=None,
                    steps=steps,
                )
            self.db.commit()
            self.db.refresh(entry)
        logger.info(
            'morning_bliss_recorded student_id=%s score=%s stars=%s topper=%s',
            student.id,
            clean_score,
            stars,
            is_topper,
        )
        return entry

    def net_fine(self, student_id: int) -> NetFine:
        student = self._require_student(student_id)
        return self.net_fines([student.id])[student.id]

    def net_fines(self, student_ids: list[int]) -> dict[int, NetFine]:
        counts = self.ledger.counts_for_students(student_ids)
        return {
            sid: compute_net_fine(
                sid,
                totals[CounterKind.TALLY],
                totals[CounterKind.STAR],
                totals[CounterKind.OTHER_TALLY],
            )
            for sid, totals in counts.items()
        }

    def _apply(
        self,
        *,
        student: Student,
        class_name: str,
        mentor_id: int | None,
        mentor_short_form: str,
        category: TallyCategory,
        points: int,
        label: str | None,
        source: str,
        idempotency_key: str | None,
        steps: list[str],
    ) -> TallyResult:
        new_total = self.ledger.upsert_add(
            COUNTER_FOR_CATEGORY[category],
            student.id,
            points,
            added_by=mentor_id,
            source=source,
            commit=False,
        )
        steps.append(f'counter:{category.value}')
        history = self.ledger.append_history(
            student_id=student.id,
            class_name=class_name,
            mentor_id=mentor_id,
            mentor_short_form=mentor_short_form,
            category=category,
            reason=label,
            signed_delta=history_delta(category, points),
            idempotency_key=idempotency_key,
            commit=False,
        )
        steps.append('history')
        return TallyResult(
            student_id=student.id,
            category=category,
            points=points,
            new_total=new_total,
            history_id=history.id,
        )

    def _duplicate_result(self, student: Student, category: TallyCategory, key: str) -> TallyResult | None:
        existing = self.ledger.find_history_by_key(key)
        if existing is None:
            return None
        if existing.student_id != student.id or existing.category != category.value:
            raise ValidationError('Idempotency key was already used for a different operation')
        snapshot = self.ledger.get_counter(COUNTER_FOR_CATEGORY[category], student.id)
        points = existing.tally_value
        if category == TallyCategory.STAR:
            points = -existing.tally_value // settings.star_tally_offset
        logger.info('tally_duplicate_skipped student_id=%s category=%s key=%s', student.id, category.value, key)
        return TallyResult(
            student_id=student.id,
            category=category,
            points=points,
            new_total=snapshot.count if snapshot else 0,
            history_id=existing.id,
            duplicate=True,
        )

    def _require_student(self, student_id: int) -> Student:
        if student_id is None:
            raise ValidationError('student_id is required')
        with storage_guard(self.db, 'load_student'):
            student = self.db.get(Student, int(student_id))
        if student is None:
            raise ReferentialError('Student not found')
        return student

    def _resolve_short_form(self, mentor_id: int | None, short_form: str | None, *, fallback: str | None = None) -> str:
        clean = (short_form or '').strip()
        if clean:
            return clean
        if mentor_id is not None:
            with storage_guard(self.db, 'load_mentor'):
                mentor = self.db.get(Mentor, int(mentor_id))
            if mentor is not None and mentor.short_form:
                return mentor.short_form
        if fallback:
            return fallback[:20]
        raise ValidationError('mentor_short_form is required')
