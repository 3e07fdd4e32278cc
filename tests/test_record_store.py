import pytest

from record_store import RecordStore, ValidationError, build_record


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "income.db")


def test_load_empty_database_gives_defaults(db_path):
    store = RecordStore(db_path).load()
    assert store.records == []
    assert store.settings == {'taxRate': 0, 'taxPaid': 0}


def test_add_then_reload_round_trip(db_path):
    store = RecordStore(db_path).load()
    first = store.add(build_record({'date': '2026-02-01', 'facility': 'Klinikum Nord',
                                    'hours': 5, 'rate': 45.5}, store.new_id()))
    second = store.add(build_record({'date': '2026-01-10', 'facility': 'Caritas',
                                     'hours': '2,5', 'rate': '40'}, store.new_id()))

    reloaded = RecordStore(db_path).load()
    assert reloaded.records == [first, second]


def test_delete(db_path):
    store = RecordStore(db_path).load()
    rec = store.add(build_record({'date': '2026-02-01', 'facility': 'A', 'hours': 1, 'rate': 1}, 'r1'))
    store.add(build_record({'date': '2026-02-02', 'facility': 'B', 'hours': 1, 'rate': 1}, 'r2'))

    assert store.delete(rec['id']) is True
    assert store.delete('missing') is False
    assert [r['id'] for r in RecordStore(db_path).load().records] == ['r2']


def test_update_settings_persists_and_coerces(db_path):
    store = RecordStore(db_path).load()
    store.update_settings('19,5', 'abc')
    assert RecordStore(db_path).load().settings == {'taxRate': 19.5, 'taxPaid': 0}


def test_new_id_is_unique(db_path, monkeypatch):
    store = RecordStore(db_path)
    monkeypatch.setattr('record_store.time.time', lambda: 1700000000.0)
    store.records = [{'id': '1700000000000'}, {'id': '1700000000001'}]
    assert store.new_id() == '1700000000002'


def test_build_record_computes_income():
    rec = build_record({'date': '2026-02-01', 'facility': '  Klinikum  ', 'hours': '5',
                        'rate': 45.5, 'income': 999}, 'id1')
    assert rec == {'id': 'id1', 'date': '2026-02-01', 'facility': 'Klinikum',
                   'hours': 5.0, 'rate': 45.5, 'income': 227.5}


@pytest.mark.parametrize("data", [
    {'facility': 'A', 'hours': 1, 'rate': 1},
    {'date': '2026-02-01', 'facility': '   ', 'hours': 1, 'rate': 1},
    {'date': '2026-02-01', 'facility': 'A', 'hours': 'viele', 'rate': 1},
    {'date': '2026-02-01', 'facility': 'A', 'hours': 1},
    {'date': '2026-02-01', 'facility': 'A', 'hours': -1, 'rate': 1},
    {'date': '2026-02-01', 'facility': 'A', 'hours': 1, 'rate': 'NaN'},
    {'date': '2026-02-01', 'facility': 'A', 'hours': 'inf', 'rate': 1},
    {'date': '2026-02-01', 'facility': 'A', 'hours': 1, 'rate': '-Infinity'},
    {'date': '2026-02-01', 'facility': 'A', 'hours': '1e309', 'rate': 1},
    {'date': '2026-02-01', 'facility': 'A', 'hours': 1e200, 'rate': 1e200},
])
def test_build_record_validation(data):
    with pytest.raises(ValidationError, match='Bitte alle Felder'):
        build_record(data, 'x')


@pytest.mark.parametrize("value", [
    '2026-02-02T10:00:00+01:00',
    '<img src=x onerror=alert(1)>',
    '01.02.2026',
    '2026-02-30',
])
def test_build_record_rejects_non_calendar_dates(value):
    with pytest.raises(ValidationError, match='Ungültiges Datum'):
        build_record({'date': value, 'facility': 'A', 'hours': 1, 'rate': 1}, 'x')


def test_build_record_stores_iso_date():
    rec = build_record({'date': ' 2026-02-01 ', 'facility': 'A', 'hours': 1, 'rate': 1}, 'x')
    assert rec['date'] == '2026-02-01'


def test_stores_loaded_together_keep_both_additions(db_path):
    a = RecordStore(db_path).load()
    b = RecordStore(db_path).load()
    a.add(build_record({'date': '2026-02-01', 'facility': 'A', 'hours': 1, 'rate': 1}, 'a'))
    b.add(build_record({'date': '2026-02-02', 'facility': 'B', 'hours': 1, 'rate': 1}, 'b'))

    assert [r['id'] for r in RecordStore(db_path).load().records] == ['a', 'b']
    assert [r['id'] for r in b.records] == ['a', 'b']


def test_add_bumps_id_taken_by_another_store(db_path, monkeypatch):
    monkeypatch.setattr('record_store.time.time', lambda: 1700000000.0)
    a = RecordStore(db_path).load()
    b = RecordStore(db_path).load()
    a.add(build_record({'date': '2026-02-01', 'facility': 'A', 'hours': 1, 'rate': 1}, a.new_id()))
    rec = b.add(build_record({'date': '2026-02-02', 'facility': 'B', 'hours': 1, 'rate': 1}, b.new_id()))

    assert rec['id'] == '1700000000001'
    ids = [r['id'] for r in RecordStore(db_path).load().records]
    assert ids == ['1700000000000', '1700000000001']


def test_delete_keeps_record_added_by_another_store(db_path):
    a = RecordStore(db_path).load()
    a.add(build_record({'date': '2026-02-01', 'facility': 'A', 'hours': 1, 'rate': 1}, 'a'))
    b = RecordStore(db_path).load()
    a.add(build_record({'date': '2026-02-02', 'facility': 'B', 'hours': 1, 'rate': 1}, 'b'))

    assert b.delete('a') is True
    assert [r['id'] for r in RecordStore(db_path).load().records] == ['b']


def test_settings_save_keeps_records_added_meanwhile(db_path):
    a = RecordStore(db_path).load()
    b = RecordStore(db_path).load()
    a.add(build_record({'date': '2026-02-01', 'facility': 'A', 'hours': 1, 'rate': 1}, 'a'))
    b.update_settings(19, 0)

    reloaded = RecordStore(db_path).load()
    assert [r['id'] for r in reloaded.records] == ['a']
    assert reloaded.settings == {'taxRate': 19.0, 'taxPaid': 0.0}


def test_failed_validation_saves_nothing(db_path):
    store = RecordStore(db_path).load()
    with pytest.raises(ValidationError):
        store.add(build_record({'date': '', 'facility': 'A', 'hours': 1, 'rate': 1}, store.new_id()))
    assert RecordStore(db_path).load().records == []
