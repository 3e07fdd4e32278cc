# Configuration file for the income tracker
from pathlib import Path

APP_ROOT = Path(__file__).parent

# Storage
DB_PATH = APP_ROOT / 'income_tracker.db'
STORAGE_KEY_RECORDS = 'income_records_ocr'
STORAGE_KEY_SETTINGS = 'income_settings_ocr'
DEFAULT_SETTINGS = {'taxRate': 0, 'taxPaid': 0}

# OCR Settings
OCR_LANG = 'deu+eng'
TESSERACT_CONFIG = '--psm 4 --oem 1'
PDF_RENDER_DPI = 144  # 2x the 72 DPI PDF base resolution
OCR_MIN_SIDE = 1500   # upscale smaller photos before recognition
OCR_THRESHOLD_BLOCK = 31  # neighbourhood (odd, px) for adaptive binarisation
ALLOWED_UPLOAD_EXTENSIONS = {'.jpg', '.jpeg', '.png', '.webp', '.tif', '.tiff', '.bmp', '.pdf'}

# Extraction
RATE_PLAUSIBILITY_MAX = 120.0  # anything above is not an hourly rate

# Export
EXPORT_PREFIX = "einnahmen_ocr_"  # Prefix for CSV export files

# Other
QR_BOX_SIZE = 6  # pixels per QR module

MONTH_NAMES = ['Januar', 'Februar', 'März', 'April', 'Mai', 'Juni', 'Juli',
               'August', 'September', 'Oktober', 'November', 'Dezember']
