"""Month / year / date-range selection and ordering of income records."""
from datetime import date, datetime, time

_END_OF_DAY = time(23, 59, 59, 999000)


def _to_datetime(value):
    """Coerce an ISO string, date or datetime to a datetime; None if invalid."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time.min)
    else:
        try:
            parsed = datetime.fromisoformat(value)
        except (TypeError, ValueError):
            return None
    # Compared as local wall-clock time
    return parsed.replace(tzinfo=None)


def _is_unset(value):
    return value is None or value == '' or value == 'all'


def filter_records(records, month='all', year='all', from_date=None, to_date=None):
    """Return the records matching every given constraint.

    ``month`` (1-12) and ``year`` accept ints, numeric strings or 'all'.
    ``to_date`` is inclusive through the end of that day. With nothing set
    the input comes back unchanged.
    """
    month = None if _is_unset(month) else int(month)
    year = None if _is_unset(year) else int(year)
    start = None
    if not _is_unset(from_date):
        start = _to_datetime(from_date)
        if start is None:
            raise ValueError(f'invalid from date: {from_date!r}')
    end = None
    if not _is_unset(to_date):
        end = _to_datetime(to_date)
        if end is None:
            raise ValueError(f'invalid to date: {to_date!r}')
        end = datetime.combine(end.date(), _END_OF_DAY)

    if month is None and year is None and start is None and end is None:
        return list(records)

    out = []
    for rec in records:
        d = _to_datetime(rec.get('date'))
        # An unparseable date never satisfies a constraint
        if d is None:
            continue
        if month is not None and d.month != month:
            continue
        if year is not None and d.year != year:
            continue
        if start is not None and d < start:
            continue
        if end is not None and d > end:
            continue
        out.append(rec)
    return out


def sort_newest_first(records):
    """Sort by date descending; equal dates keep their stored order."""
    return sorted(records, key=_sort_key, reverse=True)


def _sort_key(rec):
    d = _to_datetime(rec.get('date'))
    return d if d is not None else datetime.min


def available_years(records):
    """Distinct record years, newest first (for the year dropdown)."""
    years = set()
    for rec in records:
        d = _to_datetime(rec.get('date'))
        if d is not None:
            years.add(d.year)
    return sorted(years, reverse=True)
