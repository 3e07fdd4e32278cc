"""
Heuristic field extraction from OCR text of German work invoices.

Every finder is independent and returns None when nothing matches, so the
caller can keep whatever value the form already holds. The pattern order
inside each finder matters: the first successful pattern wins.
"""
import logging
import re

import config

log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Patterns
# ---------------------------------------------------------------------------

# 01.02.2026, 1/2/26, 1-2-71 (day first)
_DATE_RE = re.compile(r'([0-9]{1,2}[\./-][0-9]{1,2}[\./-][0-9]{2,4})')

# "<hours> Stunden ... <rate> €"
_HOURS_RATE_RE = re.compile(
    r'([0-9]+[\.,]?[0-9]*)\s*Stunden?[^0-9]*([0-9]+[\.,]?[0-9]*)\s*(?:€|eur|euro)',
    re.IGNORECASE,
)
# "Anzahl: 12,00"
_ANZAHL_RE = re.compile(r'Anzahl[:\s]*([0-9\.,]+)', re.IGNORECASE)
# "5 h", "7,5 Std"
_HOURS_UNIT_RE = re.compile(r'([0-9]+[\.,]?[0-9]*)\s*(?:h|std|stunden)', re.IGNORECASE)
# "Betrag: 45,00" / "Stundensatz: 45"
_RATE_KEYWORD_RE = re.compile(r'(?:betrag|stundensatz)[:\s]*([0-9\.,]+)', re.IGNORECASE)
# "45,50 €", "38.00 EUR"
_CURRENCY_AMOUNT_RE = re.compile(r'([0-9]+[\.,][0-9]{1,2})\s*(?:€|eur|euro)', re.IGNORECASE)

_CLIENT_KEYWORD_RE = re.compile(r'auftraggeber', re.IGNORECASE)
_PERSON_NAME_RE = re.compile(
    r'^[A-ZÄÖÜ][A-Za-zÄÖÜäöüß\-]+\s+[A-ZÄÖÜ][A-Za-zÄÖÜäöüß\-]+$'
)
_ADDRESS_RE = re.compile(
    r'(strasse|straße|weg|platz|allee|gasse|stadt|[0-9]{4,5})', re.IGNORECASE
)

_LEADING_NUMBER_RE = re.compile(r'[0-9]+(?:\.[0-9]*)?|\.[0-9]+')


def _to_float(raw):
    """Read the leading decimal number of ``raw`` after turning the first
    comma into a dot ('12,00' -> 12.0, '1.234,5' -> 1.234). None if there is
    no number at the start."""
    m = _LEADING_NUMBER_RE.match(raw.replace(',', '.', 1))
    if not m:
        return None
    return float(m.group(0))


def _is_plausible_rate(value):
    return value is not None and value <= config.RATE_PLAUSIBILITY_MAX


# ---------------------------------------------------------------------------
# Finders
# ---------------------------------------------------------------------------

def find_date(text):
    """Return the first day-first date in ``text`` as YYYY-MM-DD, or None.

    Two-digit years below 50 are read as 20xx, the rest as 19xx. The result
    is not checked against the calendar.
    """
    m = _DATE_RE.search(text)
    if not m:
        return None
    parts = m.group(1).replace('/', '.').replace('-', '.').split('.')
    day = parts[0].zfill(2)
    month = parts[1].zfill(2)
    year = parts[2]
    if len(year) == 2:
        year = ('20' if int(year) < 50 else '19') + year
    return f'{year}-{month}-{day}'


def find_hours_and_rate(text):
    """Return ``(hours, rate)``; either may be None.

    Strategy:
    - "<n> Stunden ... <m> €" sets hours, and the rate only if m <= 120.
    - Hours fallbacks: "Anzahl <n>", then "<n> h/Std/Stunden" (the latter
      only when no Anzahl keyword is present at all).
    - Rate fallbacks: the first "Betrag/Stundensatz <n>" with n <= 120, then
      the first "<n,nn> €" with n <= 120.
    """
    hours = None
    rate = None

    m = _HOURS_RATE_RE.search(text)
    if m:
        hours = _to_float(m.group(1))
        candidate = _to_float(m.group(2))
        if _is_plausible_rate(candidate):
            rate = candidate
            log.debug('hours and rate from combined pattern: %s / %s', hours, rate)
        else:
            log.debug('combined pattern rate %s rejected', candidate)

    if hours is None:
        anzahl = _ANZAHL_RE.search(text)
        if anzahl:
            hours = _to_float(anzahl.group(1))
        else:
            unit = _HOURS_UNIT_RE.search(text)
            if unit:
                hours = _to_float(unit.group(1))

    if rate is None:
        for km in _RATE_KEYWORD_RE.finditer(text):
            val = _to_float(km.group(1))
            if _is_plausible_rate(val):
                rate = val
                break

    if rate is None:
        for cm in _CURRENCY_AMOUNT_RE.finditer(text):
            val = _to_float(cm.group(1))
            if _is_plausible_rate(val):
                rate = val
                break

    return hours, rate


def _is_excluded(line):
    """Lines holding a date, an hours figure or an amount are never a facility."""
    return (
        _DATE_RE.search(line) is not None
        or _HOURS_UNIT_RE.search(line) is not None
        or _CURRENCY_AMOUNT_RE.search(line) is not None
        or len(line) <= 2
    )


def find_facility(text):
    """Return the client/facility line, or None.

    The line after "Auftraggeber" wins. Otherwise the first line that is not
    a date/hours/amount line is taken, except that a person name or an
    address line is skipped in favour of the line right after it.
    """
    lines = [ln.strip() for ln in re.split(r'\r?\n', text)]
    lines = [ln for ln in lines if ln]

    for i, line in enumerate(lines):
        if _CLIENT_KEYWORD_RE.search(line):
            if i + 1 < len(lines):
                return lines[i + 1]
            break

    for idx, line in enumerate(lines):
        if _is_excluded(line):
            continue
        looks_personal = (_PERSON_NAME_RE.match(line) is not None
                          or _ADDRESS_RE.search(line.lower()) is not None)
        if looks_personal and idx + 1 < len(lines):
            next_line = lines[idx + 1]
            if not _is_excluded(next_line):
                return next_line
        else:
            return line
    return None


def parse_work_text(text):
    """Parse OCR text into a partial record dict.

    Only keys that were found are present: any of ``date``, ``hours``,
    ``rate``, ``facility``.
    """
    text = text or ''
    fields = {}

    date = find_date(text)
    if date:
        fields['date'] = date

    hours, rate = find_hours_and_rate(text)
    if hours is not None:
        fields['hours'] = hours
    if rate is not None:
        fields['rate'] = rate

    facility = find_facility(text)
    if facility:
        fields['facility'] = facility

    log.debug('extracted fields: %s', sorted(fields))
    return fields
