"""
Income records and tax settings, persisted as two JSON documents in SQLite.

The store keeps the collection in memory. Changes re-read the stored document
and write it back in full inside one SQLite write transaction. Records are never
edited in place, only added or deleted.
"""
import json
import logging
import math
import sqlite3
import time
from contextlib import contextmanager
from datetime import date

import config
from db_init import init_db

log = logging.getLogger(__name__)

REQUIRED_FIELDS_MESSAGE = 'Bitte alle Felder ausfüllen.'
INVALID_DATE_MESSAGE = "Ungültiges Datum (erwartet JJJJ-MM-TT)."


class ValidationError(ValueError):
    """A submitted record is missing a field or has a non-numeric value."""


def _as_number(value):
    """float(value) for numbers and numeric strings (comma decimals allowed), else None."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, str):
        value = value.strip().replace(',', '.')
    try:
        num = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(num):  # NaN, inf
        return None
    return num


def build_record(data, record_id):
    """Validate a form submission and return a complete record dict.

    ``income`` is always derived from hours and rate here; callers cannot
    supply it.
    """
    record_date = str(data.get('date') or '').strip()
    facility = str(data.get('facility') or '').strip()
    hours = _as_number(data.get('hours'))
    rate = _as_number(data.get('rate'))
    if not record_date or not facility or hours is None or rate is None:
        raise ValidationError(REQUIRED_FIELDS_MESSAGE)
    if hours < 0 or rate < 0:
        raise ValidationError(REQUIRED_FIELDS_MESSAGE)
    try:
        record_date = date.fromisoformat(record_date).isoformat()
    except ValueError:
        raise ValidationError(INVALID_DATE_MESSAGE) from None
    if not math.isfinite(hours * rate):
        raise ValidationError(REQUIRED_FIELDS_MESSAGE)
    return {
        'id': record_id,
        'date': record_date,
        'facility': facility,
        'hours': hours,
        'rate': rate,
        'income': hours * rate,
    }


class RecordStore:
    def __init__(self, db_path=None):
        self.db_path = db_path or config.DB_PATH
        self.records = []
        self.settings = dict(config.DEFAULT_SETTINGS)

    def _get_conn(self):
        init_db(self.db_path)
        return sqlite3.connect(self.db_path)

    @contextmanager
    def _transaction(self):
        """Hold the database write lock from the re-read until the write-back."""
        conn = self._get_conn()
        conn.isolation_level = None
        try:
            conn.execute('BEGIN IMMEDIATE')
            try:
                yield conn
            except BaseException:
                conn.execute('ROLLBACK')
                raise
            conn.execute('COMMIT')
        finally:
            conn.close()

    def _read(self, conn, key):
        cur = conn.cursor()
        cur.execute('SELECT value FROM kv WHERE key = ?', (key,))
        row = cur.fetchone()
        return json.loads(row[0]) if row else None

    def _write(self, conn, key, value):
        conn.execute('''
            INSERT INTO kv (key, value)
            VALUES (?, ?)
            ON CONFLICT(key) DO UPDATE SET value = excluded.value
        ''', (key, json.dumps(value, allow_nan=False)))

    def _read_records(self, conn):
        records = self._read(conn, config.STORAGE_KEY_RECORDS)
        return records if records is not None else []

    def load(self):
        conn = self._get_conn()
        try:
            records = self._read_records(conn)
            settings = self._read(conn, config.STORAGE_KEY_SETTINGS)
        finally:
            conn.close()
        self.records = records
        self.settings = settings if settings is not None else dict(config.DEFAULT_SETTINGS)
        return self

    def save(self):
        with self._transaction() as conn:
            self._write(conn, config.STORAGE_KEY_RECORDS, self.records)
            self._write(conn, config.STORAGE_KEY_SETTINGS, self.settings)

    def new_id(self):
        """Millisecond timestamp as a string, bumped until unused."""
        return _unused_id(int(time.time() * 1000), self.records)

    def add(self, record):
        """Append ``record`` to the stored collection as it is now, not as it
        was at load(). The id is bumped if another writer already took it."""
        with self._transaction() as conn:
            records = self._read_records(conn)
            if any(r['id'] == record['id'] for r in records):
                record['id'] = _unused_id(int(time.time() * 1000), records)
            records.append(record)
            self._write(conn, config.STORAGE_KEY_RECORDS, records)
        self.records = records
        log.info('Added record %s (%s, %s)', record['id'], record['date'], record['facility'])
        return record

    def delete(self, record_id):
        """Remove the record with ``record_id``; False if there was none."""
        with self._transaction() as conn:
            records = self._read_records(conn)
            remaining = [r for r in records if r['id'] != record_id]
            if len(remaining) != len(records):
                self._write(conn, config.STORAGE_KEY_RECORDS, remaining)
        self.records = remaining
        if len(remaining) == len(records):
            return False
        log.info('Deleted record %s', record_id)
        return True

    def update_settings(self, tax_rate, tax_paid):
        """Store new tax settings; non-numeric inputs become 0."""
        rate = _as_number(tax_rate)
        paid = _as_number(tax_paid)
        self.settings = {
            'taxRate': rate if rate is not None else 0,
            'taxPaid': paid if paid is not None else 0,
        }
        with self._transaction() as conn:
            self._write(conn, config.STORAGE_KEY_SETTINGS, self.settings)
        return self.settings


def _unused_id(candidate, records):
    taken = {r['id'] for r in records}
    while str(candidate) in taken:
        candidate += 1
    return str(candidate)
