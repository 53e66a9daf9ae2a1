import sqlite3
import sys


def check(db_path):
    """Report tenants with more than one active version, or whose active row is not the newest."""
    conn = sqlite3.connect(db_path)
    cur = conn.cursor()
    try:
        cur.execute(
            "SELECT tenant_id, COUNT(*) AS c FROM tenant WHERE status = 'active' "
            "GROUP BY tenant_id HAVING c > 1;"
        )
        multiple = cur.fetchall()
        cur.execute(
            "SELECT a.tenant_id, a.tenant_version, MAX(t.tenant_version) FROM tenant a "
            "JOIN tenant t ON t.tenant_id = a.tenant_id WHERE a.status = 'active' "
            "GROUP BY a.tenant_id, a.tenant_version HAVING a.tenant_version < MAX(t.tenant_version);"
        )
        stale = cur.fetchall()
    except Exception as e:
        print("ERROR_SQL:", e)
        return 2
    finally:
        conn.close()
    if not multiple and not stale:
        print("OK")
        return 0
    for tenant_id, count in multiple:
        print(f"MULTIPLE_ACTIVE {tenant_id} count={count}")
    for tenant_id, active_version, newest in stale:
        print(f"STALE_ACTIVE {tenant_id} active=v{active_version} newest=v{newest}")
    return 1


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("Usage: python check_active_tenants.py <path_to_sqlite_db>")
        sys.exit(3)
    db = sys.argv[1]
    sys.exit(check(db))
