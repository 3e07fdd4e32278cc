import sqlite3

import config


def init_db(db_path=None):
    conn = sqlite3.connect(db_path or config.DB_PATH)
    cur = conn.cursor()
    # One row per JSON document (records list, settings object)
    cur.execute('''
    CREATE TABLE IF NOT EXISTS kv (
        key TEXT PRIMARY KEY,
        value TEXT NOT NULL
    )
    ''')
    conn.commit()
    conn.close()

if __name__ == '__main__':
    init_db()
    print(f"Initialized database at {config.DB_PATH}")
