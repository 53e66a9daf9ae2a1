import sqlite3
import sys

# readings are chained month to month; edits and deletes never cascade, so
# this reports where the chain has drifted
CHAIN_SQL = """
SELECT r.meter_id, r.month, r.previous_reading, p.current_reading
FROM monthlyreading r
JOIN monthlyreading p
  ON p.meter_id = r.meter_id
 AND p.month = date(r.month, '-1 month')
WHERE r.previous_reading <> p.current_reading
ORDER BY r.meter_id, r.month;
"""

GAP_SQL = """
SELECT r.meter_id, r.month
FROM monthlyreading r
WHERE r.month > (SELECT MIN(month) FROM monthlyreading m WHERE m.meter_id = r.meter_id)
  AND NOT EXISTS (
    SELECT 1 FROM monthlyreading p
    WHERE p.meter_id = r.meter_id AND p.month = date(r.month, '-1 month')
  )
ORDER BY r.meter_id, r.month;
"""


def check(db_path):
    conn = sqlite3.connect(db_path)
    cur = conn.cursor()
    try:
        cur.execute(
            "SELECT meter_id, month, COUNT(*) AS c FROM monthlyreading "
            "GROUP BY meter_id, month HAVING c > 1;"
        )
        duplicates = cur.fetchall()
        cur.execute(CHAIN_SQL)
        mismatched = cur.fetchall()
        cur.execute(GAP_SQL)
        orphaned = cur.fetchall()
    except Exception as e:
        print("ERROR_SQL:", e)
        return 2
    finally:
        conn.close()
    if not (duplicates or mismatched or orphaned):
        print("OK")
        return 0
    for meter_id, month, count in duplicates:
        print(f"DUPLICATE meter={meter_id} month={month} count={count}")
    for meter_id, month, opened, closed in mismatched:
        print(f"MISMATCH meter={meter_id} month={month} previous={opened} prior_current={closed}")
    for meter_id, month in orphaned:
        print(f"GAP meter={meter_id} month={month}")
    return 1


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("Usage: python check_reading_chain.py <path_to_sqlite_db>")
        sys.exit(3)
    sys.exit(check(sys.argv[1]))
