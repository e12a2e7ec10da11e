"""Accessibility Window - Decide se um quiz agendado pode ser iniciado agora."""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ..models.schemas import AccessibilityResult, Schedule

logger = logging.getLogger(__name__)

END_OF_DAY = time(23, 59, 59, 999999)


class ScheduleConfigError(ValueError):
    """Agendamento ativo com datas ausentes ou fuso desconhecido."""


class AccessibilityWindow:
    """Avaliador puro da janela de acesso.

    Combina data + hora (opcional) + fuso do agendamento em instantes
    absolutos e compara com ``now``. Sem hora definida, o inicio e a
    meia-noite do dia e o fim e o ultimo instante do dia.

    Agendamento ativo sem datas, ou com fuso invalido, falha fechado:
    o quiz fica inacessivel em vez de virar "sempre aberto".

    Example:
        >>> window = AccessibilityWindow("Asia/Kolkata")
        >>> result = window.evaluate(quiz.schedule, datetime.now(timezone.utc))
        >>> result.accessible
    """

    def __init__(self, default_timezone: str = "Asia/Kolkata"):
        self.default_timezone = default_timezone

    def evaluate(self, schedule: Schedule, now: datetime) -> AccessibilityResult:
        """Avalia acessibilidade em ``now``.

        Args:
            schedule: Configuracao de agendamento do quiz
            now: Instante atual (sem tzinfo e tratado como UTC)

        Returns:
            AccessibilityResult com starts_at / ended_at / ends_at conforme o caso
        """
        if not schedule.is_scheduled:
            return AccessibilityResult(accessible=True, reason="Quiz is available")

        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)

        try:
            tz = self._zone(schedule)
            start, end = self.resolve_bounds(schedule, tz)
        except ScheduleConfigError as e:
            logger.warning(f"Agendamento invalido: {e}")
            return AccessibilityResult(
                accessible=False,
                reason=f"Quiz schedule is misconfigured: {e}",
            )

        if now < start:
            return AccessibilityResult(
                accessible=False,
                reason=f"Quiz will start on {self.format_instant(start, tz)}",
                starts_at=start,
            )

        if now > end:
            return AccessibilityResult(
                accessible=False,
                reason=f"Quiz ended on {self.format_instant(end, tz)}",
                ended_at=end,
            )

        return AccessibilityResult(
            accessible=True,
            reason="Quiz is currently active",
            ends_at=end,
        )

    def resolve_bounds(self, schedule: Schedule, tz: ZoneInfo | None = None) -> tuple[datetime, datetime]:
        """Calcula (inicio, fim) absolutos do agendamento."""
        if schedule.start_date is None or schedule.end_date is None:
            raise ScheduleConfigError("start and end dates are required")
        tz = tz or self._zone(schedule)
        start = self._combine(schedule.start_date, schedule.start_time, time(0, 0), tz)
        end = self._combine(schedule.end_date, schedule.end_time, END_OF_DAY, tz)
        return start, end

    def _zone(self, schedule: Schedule) -> ZoneInfo:
        name = schedule.timezone or self.default_timezone
        try:
            return ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ScheduleConfigError(f"unknown timezone {name!r}") from e

    @staticmethod
    def _combine(day: date, hhmm: str | None, fallback: time, tz: ZoneInfo) -> datetime:
        if hhmm:
            hours, minutes = hhmm.split(":")
            moment = time(int(hours), int(minutes))
        else:
            moment = fallback
        return datetime.combine(day, moment, tzinfo=tz)

    @staticmethod
    def format_instant(instant: datetime, tz: ZoneInfo) -> str:
        """Formata o instante no fuso do quiz (ex: '10 Jan 2025, 09:00 AM IST')."""
        return instant.astimezone(tz).strftime("%d %b %Y, %I:%M %p %Z")
