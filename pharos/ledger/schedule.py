import calendar
from datetime import date, timedelta
from typing import Optional

from pharos.core.models import Frequency


def clamp_day_to_month(year: int, month: int, day: int) -> int:
    """Ajusta el día al último día válido del mes (31 -> 28/29/30)."""
    return min(day, calendar.monthrange(year, month)[1])


def add_months(d: date, n: int, anchor_day: Optional[int] = None) -> date:
    """
    Suma n meses a d.
    anchor_day fija el día objetivo: 31 ene -> 28/29 feb -> 31 mar, sin arrastrar
    el recorte de febrero a los meses siguientes.
    """
    day = anchor_day or d.day
    month = d.month - 1 + n
    year = d.year + month // 12
    month = month % 12 + 1
    return date(year, month, clamp_day_to_month(year, month, day))


def advance(d: date, frequency: Frequency, anchor_day: Optional[int] = None) -> date:
    """Siguiente fecha de ejecución, un período después de d."""
    frequency = Frequency(frequency)

    if frequency == Frequency.daily:
        return d + timedelta(days=1)
    if frequency == Frequency.weekly:
        return d + timedelta(days=7)
    if frequency == Frequency.monthly:
        return add_months(d, 1, anchor_day)
    if frequency == Frequency.yearly:
        return add_months(d, 12, anchor_day)

    raise ValueError(f"Unknown frequency: {frequency}")


def local_today() -> date:
    """Reloj único del ledger: fecha local del servidor (scheduler, dashboard, presupuesto)."""
    return date.today()
