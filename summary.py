"""Tax summary arithmetic and de-DE display formatting."""
from datetime import date

OPEN_TAX_LABELS = {
    'due': 'Offene Steuer',
    'overpayment': 'Überzahlung',
    'balanced': 'Ausgeglichen',
}


def classify_open_tax(open_tax):
    """Return ``(status, value)`` for the difference between owed and paid tax."""
    if open_tax > 0:
        return 'due', open_tax
    if open_tax < 0:
        return 'overpayment', abs(open_tax)
    return 'balanced', 0


def summarize(records, settings):
    """Totals for a list of records under the given tax settings."""
    total = sum(r['income'] for r in records)
    tax_rate = settings.get('taxRate') or 0
    tax_paid = settings.get('taxPaid') or 0
    tax_amount = total * (tax_rate / 100)
    net = total - tax_amount
    open_tax = tax_amount - tax_paid
    status, open_value = classify_open_tax(open_tax)
    return {
        'total': total,
        'taxRate': tax_rate,
        'taxAmount': tax_amount,
        'taxPaid': tax_paid,
        'openTax': open_tax,
        'status': status,
        'openLabel': OPEN_TAX_LABELS[status],
        'openValue': open_value,
        'net': net,
    }


def format_currency(value):
    """Format a number the way de-DE shows euros: 1.234,56 €"""
    s = f"{value:,.2f}".replace(',', '_').replace('.', ',').replace('_', '.')
    return f"{s} €"


def format_date(date_str):
    """ISO date -> '1.2.2026'. Anything unparseable is returned as-is."""
    try:
        d = date.fromisoformat(date_str)
    except (TypeError, ValueError):
        return date_str
    return f"{d.day}.{d.month}.{d.year}"
