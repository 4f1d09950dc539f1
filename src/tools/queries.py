"""SQL queries for MCP tools.

Catalog lookups bind schema/table names as parameters ($1, $2, ...);
only DDL built in the handlers interpolates (quoted) identifiers.
"""

# ---------------------------------------------------------------------------
# Functions
# ---------------------------------------------------------------------------

QUERY_GET_FUNCTIONS = """
SELECT
    p.proname AS name,
    n.nspname AS schema,
    l.lanname AS language,
    pg_get_function_result(p.oid) AS "returnType",
    pg_get_function_arguments(p.oid) AS arguments,
    CASE p.provolatile
        WHEN 'i' THEN 'IMMUTABLE'
        WHEN 's' THEN 'STABLE'
        ELSE 'VOLATILE'
    END AS volatility,
    CASE WHEN p.prosecdef THEN 'DEFINER' ELSE 'INVOKER' END AS security,
    pg_get_functiondef(p.oid) AS definition,
    pg_get_userbyid(p.proowner) AS owner
FROM pg_proc p
JOIN pg_namespace n ON p.pronamespace = n.oid
JOIN pg_language l ON p.prolang = l.oid
WHERE n.nspname = $1 AND p.prokind = 'f'
"""

# ---------------------------------------------------------------------------
# Row-level security
# ---------------------------------------------------------------------------

QUERY_RLS_STATUS = """
SELECT c.relrowsecurity AS enabled, c.relforcerowsecurity AS forced
FROM pg_class c
JOIN pg_namespace n ON n.oid = c.relnamespace
WHERE n.nspname = $1 AND c.relname = $2
"""

QUERY_GET_POLICIES = """
SELECT
    schemaname,
    tablename,
    policyname,
    permissive,
    roles,
    cmd,
    qual AS "using",
    with_check AS "check"
FROM pg_policies
WHERE schemaname = $1
"""

# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------

QUERY_COMMENT_RELATION = """
SELECT c.relname AS "objectName", obj_description(c.oid, 'pg_class') AS comment
FROM pg_class c
JOIN pg_namespace n ON n.oid = c.relnamespace
WHERE n.nspname = $1 AND c.relname = $2 AND c.relkind::text = ANY($3::text[])
"""

QUERY_COMMENT_COLUMN = """
SELECT a.attname AS "objectName", c.relname AS "tableName", col_description(c.oid, a.attnum) AS comment
FROM pg_attribute a
JOIN pg_class c ON c.oid = a.attrelid
JOIN pg_namespace n ON n.oid = c.relnamespace
WHERE n.nspname = $1 AND c.relname = $2 AND a.attname = $3
  AND a.attnum > 0 AND NOT a.attisdropped
"""

QUERY_COMMENT_FUNCTION = """
SELECT p.proname AS "objectName",
       pg_get_function_identity_arguments(p.oid) AS parameters,
       obj_description(p.oid, 'pg_proc') AS comment
FROM pg_proc p
JOIN pg_namespace n ON n.oid = p.pronamespace
WHERE n.nspname = $1 AND p.proname = $2
ORDER BY parameters
"""

QUERY_COMMENT_SCHEMA = """
SELECT n.nspname AS "objectName", obj_description(n.oid, 'pg_namespace') AS comment
FROM pg_namespace n
WHERE n.nspname = $1
"""

QUERY_COMMENT_CONSTRAINT = """
SELECT con.conname AS "objectName", c.relname AS "tableName",
       obj_description(con.oid, 'pg_constraint') AS comment
FROM pg_constraint con
JOIN pg_class c ON c.oid = con.conrelid
JOIN pg_namespace n ON n.oid = c.relnamespace
WHERE n.nspname = $1 AND c.relname = $2 AND con.conname = $3
"""

QUERY_COMMENT_TRIGGER = """
SELECT t.tgname AS "objectName", c.relname AS "tableName",
       obj_description(t.oid, 'pg_trigger') AS comment
FROM pg_trigger t
JOIN pg_class c ON c.oid = t.tgrelid
JOIN pg_namespace n ON n.oid = c.relnamespace
WHERE n.nspname = $1 AND c.relname = $2 AND t.tgname = $3
"""

QUERY_COMMENT_POLICY = """
SELECT pol.polname AS "objectName", c.relname AS "tableName",
       obj_description(pol.oid, 'pg_policy') AS comment
FROM pg_policy pol
JOIN pg_class c ON c.oid = pol.polrelid
JOIN pg_namespace n ON n.oid = c.relnamespace
WHERE n.nspname = $1 AND c.relname = $2 AND pol.polname = $3
"""

QUERY_BULK_COMMENTS = """
SELECT 'table'::text AS "objectType", c.relname::text AS "objectName",
       NULL::text AS "tableName", obj_description(c.oid, 'pg_class') AS comment
FROM pg_class c
JOIN pg_namespace n ON n.oid = c.relnamespace
WHERE n.nspname = $1 AND c.relkind IN ('r', 'p', 'v', 'm', 'S')
  AND obj_description(c.oid, 'pg_class') IS NOT NULL
UNION ALL
SELECT 'column'::text, a.attname::text, c.relname::text, col_description(c.oid, a.attnum)
FROM pg_attribute a
JOIN pg_class c ON c.oid = a.attrelid
JOIN pg_namespace n ON n.oid = c.relnamespace
WHERE n.nspname = $1 AND a.attnum > 0 AND NOT a.attisdropped
  AND col_description(c.oid, a.attnum) IS NOT NULL
UNION ALL
SELECT 'function'::text, p.proname::text, NULL::text, obj_description(p.oid, 'pg_proc')
FROM pg_proc p
JOIN pg_namespace n ON n.oid = p.pronamespace
WHERE n.nspname = $1 AND obj_description(p.oid, 'pg_proc') IS NOT NULL
ORDER BY 1, 3, 2
"""

# ---------------------------------------------------------------------------
# Triggers
# ---------------------------------------------------------------------------

QUERY_GET_TRIGGERS = """
SELECT
    t.tgname AS name,
    c.relname AS "tableName",
    n.nspname AS schema,
    p.proname AS "functionName",
    CASE t.tgenabled
        WHEN 'O' THEN 'ENABLED'
        WHEN 'D' THEN 'DISABLED'
        WHEN 'R' THEN 'REPLICA'
        WHEN 'A' THEN 'ALWAYS'
    END AS state,
    pg_get_triggerdef(t.oid) AS definition
FROM pg_trigger t
JOIN pg_class c ON c.oid = t.tgrelid
JOIN pg_namespace n ON n.oid = c.relnamespace
JOIN pg_proc p ON p.oid = t.tgfoid
WHERE NOT t.tgisinternal AND n.nspname = $1
"""

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

QUERY_LIST_TABLES = """
SELECT table_name AS "tableName", table_type AS "tableType"
FROM information_schema.tables
WHERE table_schema = $1
ORDER BY table_name
"""

QUERY_GET_COLUMNS = """
SELECT column_name AS name, data_type AS "dataType", udt_name AS "udtName",
       is_nullable = 'YES' AS nullable, column_default AS "default",
       character_maximum_length AS "maxLength"
FROM information_schema.columns
WHERE table_schema = $1 AND table_name = $2
ORDER BY ordinal_position
"""

QUERY_GET_CONSTRAINTS = """
SELECT con.conname AS name,
       CASE con.contype
           WHEN 'p' THEN 'PRIMARY KEY'
           WHEN 'f' THEN 'FOREIGN KEY'
           WHEN 'u' THEN 'UNIQUE'
           WHEN 'c' THEN 'CHECK'
           WHEN 'x' THEN 'EXCLUDE'
           ELSE con.contype::text
       END AS type,
       pg_get_constraintdef(con.oid) AS definition
FROM pg_constraint con
JOIN pg_class c ON c.oid = con.conrelid
JOIN pg_namespace n ON n.oid = c.relnamespace
WHERE n.nspname = $1 AND c.relname = $2
ORDER BY con.conname
"""

QUERY_GET_TABLE_INDEXES = """
SELECT indexname AS name, indexdef AS definition
FROM pg_indexes
WHERE schemaname = $1 AND tablename = $2
ORDER BY indexname
"""

QUERY_GET_ENUMS = """
SELECT n.nspname AS schema, t.typname AS name,
       array_agg(e.enumlabel ORDER BY e.enumsortorder) AS "values"
FROM pg_type t
JOIN pg_enum e ON e.enumtypid = t.oid
JOIN pg_namespace n ON n.oid = t.typnamespace
WHERE n.nspname = $1
"""

QUERY_TYPE_EXISTS = """
SELECT 1 AS found
FROM pg_type t
JOIN pg_namespace n ON n.oid = t.typnamespace
WHERE n.nspname = $1 AND t.typname = $2
"""

# ---------------------------------------------------------------------------
# Indexes
# ---------------------------------------------------------------------------

QUERY_GET_INDEXES = """
SELECT
    i.schemaname AS schema,
    i.tablename AS "tableName",
    i.indexname AS "indexName",
    i.indexdef AS definition,
    pg_size_pretty(pg_relation_size(c.oid)) AS size,
    s.idx_scan AS scans
FROM pg_indexes i
JOIN pg_namespace n ON n.nspname = i.schemaname
JOIN pg_class c ON c.relname = i.indexname AND c.relnamespace = n.oid
LEFT JOIN pg_stat_user_indexes s ON s.indexrelid = c.oid
WHERE i.schemaname = $1
"""

# ---------------------------------------------------------------------------
# Analysis and monitoring
# ---------------------------------------------------------------------------

QUERY_VERSION = "SELECT version() AS version"

QUERY_KEY_SETTINGS = """
SELECT name, setting, unit
FROM pg_settings
WHERE name = ANY($1::text[])
"""

QUERY_CONNECTION_COUNTS = """
SELECT
    count(*) AS connections,
    count(*) FILTER (WHERE state = 'active') AS active,
    count(*) FILTER (WHERE state = 'idle in transaction') AS "idleInTransaction"
FROM pg_stat_activity
"""

QUERY_CONNECTIONS_BY_STATE = """
SELECT coalesce(state, 'background') AS state, count(*) AS count
FROM pg_stat_activity
GROUP BY 1
ORDER BY 2 DESC
"""

QUERY_CACHE_STATS = """
SELECT
    coalesce(blks_hit, 0) AS hits,
    coalesce(blks_read, 0) AS reads,
    coalesce(xact_commit, 0) AS commits,
    coalesce(xact_rollback, 0) AS rollbacks,
    coalesce(deadlocks, 0) AS deadlocks
FROM pg_stat_database
WHERE datname = current_database()
"""

QUERY_TABLE_SIZES = """
SELECT schemaname AS schema, tablename AS "tableName",
       pg_size_pretty(pg_table_size(format('%I.%I', schemaname, tablename)::regclass)) AS size
FROM pg_tables
WHERE schemaname NOT IN ('pg_catalog', 'information_schema')
ORDER BY pg_table_size(format('%I.%I', schemaname, tablename)::regclass) DESC
LIMIT 20
"""

QUERY_DATABASE_OVERVIEW = """
SELECT
    current_database() AS name,
    pg_size_pretty(pg_database_size(current_database())) AS size,
    (SELECT count(*) FROM pg_stat_activity WHERE datname = current_database()) AS connections,
    (SELECT setting::int FROM pg_settings WHERE name = 'max_connections') AS "maxConnections",
    pg_is_in_recovery() AS "inRecovery"
"""

QUERY_SUPERUSER_COUNT = "SELECT count(*) AS count FROM pg_roles WHERE rolsuper"

QUERY_SHOW_SSL = "SELECT current_setting('ssl') AS ssl"

QUERY_PASSWORDLESS_LOGIN_ROLES = """
SELECT count(*) AS count
FROM pg_roles
WHERE rolcanlogin AND rolpassword IS NULL AND NOT rolsuper
"""

QUERY_ACTIVE_QUERIES = """
SELECT
    pid,
    usename AS "user",
    application_name AS application,
    client_addr::text AS client,
    state,
    wait_event_type AS "waitEventType",
    EXTRACT(EPOCH FROM (now() - query_start))::float AS "durationSeconds",
    left(query, 500) AS query
FROM pg_stat_activity
WHERE state IS NOT NULL AND state <> 'idle' AND pid <> pg_backend_pid()
ORDER BY query_start
"""

QUERY_BLOCKING_LOCKS = """
SELECT
    blocked.pid AS "blockedPid",
    blocked.usename AS "blockedUser",
    left(blocked.query, 300) AS "blockedQuery",
    blocking.pid AS "blockingPid",
    blocking.usename AS "blockingUser",
    left(blocking.query, 300) AS "blockingQuery",
    EXTRACT(EPOCH FROM (now() - blocked.query_start))::float AS "waitingSeconds"
FROM pg_stat_activity blocked
JOIN LATERAL unnest(pg_blocking_pids(blocked.pid)) AS b(pid) ON true
JOIN pg_stat_activity blocking ON blocking.pid = b.pid
"""

QUERY_LOCK_MODES = """
SELECT mode, granted, count(*) AS count
FROM pg_locks
GROUP BY mode, granted
ORDER BY count DESC
"""

QUERY_TABLE_STATS = """
SELECT
    schemaname AS schema,
    relname AS "tableName",
    n_live_tup AS "liveTuples",
    n_dead_tup AS "deadTuples",
    seq_scan AS "seqScans",
    idx_scan AS "indexScans",
    last_vacuum AS "lastVacuum",
    last_autovacuum AS "lastAutovacuum",
    last_analyze AS "lastAnalyze"
FROM pg_stat_user_tables
ORDER BY n_dead_tup DESC
LIMIT 50
"""

QUERY_SEQ_SCAN_HEAVY_TABLES = """
SELECT schemaname AS schema, relname AS "tableName",
       seq_scan AS "seqScans", coalesce(idx_scan, 0) AS "indexScans", n_live_tup AS "liveTuples"
FROM pg_stat_user_tables
WHERE seq_scan > coalesce(idx_scan, 0) AND n_live_tup > 10000
ORDER BY seq_scan DESC
LIMIT 20
"""

QUERY_REPLICATION = """
SELECT
    application_name AS application,
    client_addr::text AS client,
    state,
    sync_state AS "syncState",
    sent_lsn::text AS "sentLsn",
    replay_lsn::text AS "replayLsn",
    EXTRACT(EPOCH FROM replay_lag)::float AS "replayLagSeconds"
FROM pg_stat_replication
"""

QUERY_REPLICATION_SLOTS = """
SELECT slot_name AS "slotName", slot_type AS "slotType", active, restart_lsn::text AS "restartLsn"
FROM pg_replication_slots
"""

QUERY_IN_RECOVERY = "SELECT pg_is_in_recovery() AS \"inRecovery\""
