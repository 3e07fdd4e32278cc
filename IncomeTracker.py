from flask import Flask, jsonify, request, send_file, render_template
from pathlib import Path
from datetime import datetime
import io
import qrcode
from werkzeug.utils import secure_filename
import config
from csv_export import EmptyExportError, build_csv, export_filename
from db_init import init_db
from extraction import parse_work_text
from ocr import FileReadError, OcrError, recognize_upload
from record_filter import available_years, filter_records, sort_newest_first
from record_store import RecordStore, ValidationError, build_record
from summary import format_currency, format_date, summarize

APP_ROOT = Path(__file__).parent

app = Flask(__name__, static_folder=str(APP_ROOT / 'static'), template_folder=str(APP_ROOT / 'templates'))
app.config.setdefault('DB_PATH', str(config.DB_PATH))


def get_store():
    return RecordStore(app.config['DB_PATH']).load()


def _filter_args():
    """Month/year/from/to query args as filter_records keyword arguments."""
    return {
        'month': request.args.get('month', 'all'),
        'year': request.args.get('year', 'all'),
        'from_date': request.args.get('from') or None,
        'to_date': request.args.get('to') or None,
    }


def _filtered(store):
    try:
        return filter_records(store.records, **_filter_args())
    except ValueError:
        return None


def _display_record(rec):
    row = dict(rec)
    row['dateDisplay'] = format_date(rec['date'])
    row['rateDisplay'] = format_currency(rec['rate'])
    row['incomeDisplay'] = format_currency(rec['income'])
    return row


def _display_summary(records, settings):
    s = summarize(records, settings)
    s['display'] = {
        'total': format_currency(s['total']),
        'taxAmount': format_currency(s['taxAmount']),
        'taxPaid': format_currency(s['taxPaid']),
        'openValue': format_currency(s['openValue']),
        'net': format_currency(s['net']),
    }
    return s


@app.route('/')
def index():
    return render_template('index.html', month_names=config.MONTH_NAMES,
                           today=datetime.now().date().isoformat())

@app.route('/api/records')
def get_records():
    store = get_store()
    rows = _filtered(store)
    if rows is None:
        return jsonify({'error': 'Ungültiger Filter'}), 400
    return jsonify({
        'records': [_display_record(r) for r in sort_newest_first(rows)],
        'summary': _display_summary(rows, store.settings),
        'years': available_years(store.records),
    })

@app.route('/api/records', methods=['POST'])
def add_record():
    data = request.json or {}
    store = get_store()
    try:
        record = build_record(data, store.new_id())
    except ValidationError as e:
        return jsonify({'error': str(e)}), 400
    store.add(record)
    return jsonify(record), 201

@app.route('/api/records/<record_id>', methods=['DELETE'])
def delete_record(record_id):
    store = get_store()
    if not store.delete(record_id):
        return jsonify({'error': 'Record not found'}), 404
    return jsonify({'deleted': record_id})

@app.route('/api/settings')
def get_settings():
    return jsonify(get_store().settings)

@app.route('/api/settings', methods=['POST'])
def save_settings():
    data = request.json or {}
    store = get_store()
    settings = store.update_settings(data.get('taxRate'), data.get('taxPaid'))
    return jsonify(settings)

@app.route('/api/summary')
def get_summary():
    store = get_store()
    rows = _filtered(store)
    if rows is None:
        return jsonify({'error': 'Ungültiger Filter'}), 400
    return jsonify(_display_summary(rows, store.settings))

@app.route('/api/export')
def export_csv():
    store = get_store()
    rows = _filtered(store)
    if rows is None:
        return jsonify({'error': 'Ungültiger Filter'}), 400
    try:
        csv_text = build_csv(rows, store.settings)
    except EmptyExportError as e:
        return jsonify({'error': str(e)}), 404
    return send_file(io.BytesIO(csv_text.encode('utf-8')), mimetype='text/csv', as_attachment=True,
                     download_name=export_filename(datetime.now().date()))

# ---------------------------------------------------------------------------
# OCR upload
# ---------------------------------------------------------------------------

@app.route('/api/ocr', methods=['POST'])
def ocr_upload():
    if 'file' not in request.files:
        return jsonify({'error': 'No file uploaded'}), 400
    f = request.files['file']
    filename = secure_filename(f.filename or '')
    ext = Path(filename).suffix.lower()
    if ext not in config.ALLOWED_UPLOAD_EXTENSIONS:
        allowed = ', '.join(sorted(config.ALLOWED_UPLOAD_EXTENSIONS))
        app.logger.warning(f'Rejected upload {filename!r}')
        return jsonify({'error': f'Invalid file type: {ext}. Allowed: {allowed}'}), 400

    try:
        data = f.read()
        text = recognize_upload(data, filename, f.mimetype)
    except (FileReadError, OSError) as e:
        app.logger.warning(f'Could not read upload {filename!r}: {e}')
        return jsonify({'error': 'Datei konnte nicht gelesen werden.'}), 400
    except OcrError as e:
        app.logger.error(f'OCR failed for {filename!r}: {e}')
        return jsonify({'error': f'OCR fehlgeschlagen: {e}'}), 500

    return jsonify({'text': text.strip(), 'fields': parse_work_text(text)})


@app.route('/qr.png')
def qr_png():
    """QR code for opening the app on a phone in the same network.

    Encodes the address this request came in on, so it works behind
    whatever host/port the server is reached through.
    """
    qr = qrcode.QRCode(box_size=config.QR_BOX_SIZE, border=2)
    qr.add_data(request.host_url)
    qr.make(fit=True)
    buf = io.BytesIO()
    qr.make_image().save(buf, format='PNG')
    buf.seek(0)
    return send_file(buf, mimetype='image/png', max_age=0)

@app.route('/sw.js')
def service_worker():
    # Scope is the whole app; clients always revalidate the worker script
    res = send_file(str(APP_ROOT / 'static' / 'sw.js'), mimetype='application/javascript', max_age=0)
    res.headers['Service-Worker-Allowed'] = '/'
    res.headers['Cache-Control'] = 'no-cache'
    return res


if __name__ == '__main__':
    init_db(app.config['DB_PATH'])
    app.run(debug=True, host='0.0.0.0')
