"""CSV export of the currently filtered records plus a summary block."""
import csv
import io

import config
from summary import format_date, summarize

EMPTY_EXPORT_MESSAGE = 'Keine Einträge zum Export.'
HEADER = ['Datum', 'Einrichtung', 'Stunden', 'Stundensatz', 'Einnahmen']


class EmptyExportError(ValueError):
    """Nothing to export for the current filter."""


def _raw_number(value):
    """Write numbers without a trailing '.0' for whole values (10, 45.5)."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def build_csv(records, settings):
    if not records:
        raise EmptyExportError(EMPTY_EXPORT_MESSAGE)

    output = io.StringIO()
    writer = csv.writer(output, lineterminator='\n')
    writer.writerow(HEADER)
    for r in records:
        writer.writerow([format_date(r['date']), r['facility'], _raw_number(r['hours']),
                         _raw_number(r['rate']), _raw_number(r['income'])])

    s = summarize(records, settings)
    writer.writerow([])
    writer.writerow(['Gesamt Einnahmen:', _raw_number(s['total'])])
    writer.writerow(['Steuersatz:', f"{_raw_number(s['taxRate'])}%"])
    writer.writerow(['Steuerbetrag:', _raw_number(s['taxAmount'])])
    writer.writerow(['Bereits abgeführte Steuern:', _raw_number(s['taxPaid'])])
    writer.writerow([f"{s['openLabel']}:", _raw_number(s['openValue'])])
    writer.writerow(['Netto nach Steuern:', _raw_number(s['net'])])
    return output.getvalue()


def export_filename(day):
    return f"{config.EXPORT_PREFIX}{day.strftime('%Y%m%d')}.csv"
