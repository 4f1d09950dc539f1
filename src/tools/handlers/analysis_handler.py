"""pg_analyze_database and pg_debug_database: health reports with recommendations."""

import logging
from typing import Any, Dict, List, Literal

from mcp.types import CallToolResult
from pydantic import Field

from database.async_connectors import ConnectionHandle
from tools import queries
from tools.base import ToolContext, ToolHandler
from tools.definitions import (
    TOOL_ANALYZE_DATABASE,
    TOOL_DEBUG_DATABASE,
    object_schema,
    string_property,
)
from tools.validators import ToolArguments, validate_arguments

logger = logging.getLogger(__name__)

KEY_SETTINGS = ["max_connections", "shared_buffers", "work_mem", "maintenance_work_mem", "effective_cache_size"]

CACHE_HIT_TARGET = 0.99
CONNECTION_USAGE_LIMIT = 0.8
LONG_RUNNING_SECONDS = 5


def cache_hit_ratio(hits: int, reads: int) -> float:
    total = (hits or 0) + (reads or 0)
    if total == 0:
        return 0.0
    return round((hits or 0) / total, 2)


def configuration_recommendations(settings: Dict[str, Any], metrics: Dict[str, Any]) -> List[str]:
    """Cache and connection-pressure checks shared by configuration and performance analysis."""
    recommendations = []
    if metrics["cacheHitRatio"] < CACHE_HIT_TARGET:
        recommendations.append("Consider increasing shared_buffers to improve cache hit ratio")

    max_connections = settings.get("max_connections", {}).get("setting")
    if max_connections and metrics["connections"] > int(max_connections) * CONNECTION_USAGE_LIMIT:
        recommendations.append(
            "High connection usage detected. Consider increasing max_connections or implementing connection pooling"
        )
    return recommendations


class AnalyzeArgs(ToolArguments):
    analysis_type: Literal["configuration", "performance", "security"] = Field(alias="analysisType")


class AnalyzeDatabaseHandler(ToolHandler):
    """Handler for database configuration, performance and security analysis."""

    name = TOOL_ANALYZE_DATABASE
    description = "Analyze PostgreSQL database configuration and performance"
    input_schema = object_schema({
        "analysisType": string_property(
            "Type of analysis to perform",
            enum=["configuration", "performance", "security"]
        ),
    }, required=["analysisType"])

    async def execute(self, arguments: Dict[str, Any], context: ToolContext) -> CallToolResult:
        args = validate_arguments(AnalyzeArgs, arguments, "analyze")

        async with context.connection(args.connection_string) as db:
            report = await self.analyze(db, args.analysis_type)

        return self._json_response(report)

    async def analyze(self, db: ConnectionHandle, analysis_type: str) -> Dict[str, Any]:
        version = await db.query_one(queries.QUERY_VERSION)
        settings = {
            row["name"]: {"setting": row["setting"], "unit": row["unit"]}
            for row in await db.query(queries.QUERY_KEY_SETTINGS, [KEY_SETTINGS])
        }
        counts = await db.query_one(queries.QUERY_CONNECTION_COUNTS)
        cache = await db.query_one(queries.QUERY_CACHE_STATS) or {"hits": 0, "reads": 0}
        table_sizes = await db.query(queries.QUERY_TABLE_SIZES)

        metrics = {
            "connections": counts["connections"],
            "activeQueries": counts["active"],
            "cacheHitRatio": cache_hit_ratio(cache["hits"], cache["reads"]),
            "tableSizes": {f"{t['schema']}.{t['tableName']}": t["size"] for t in table_sizes}
        }

        recommendations: List[str] = []
        if analysis_type in ("configuration", "performance"):
            recommendations.extend(configuration_recommendations(settings, metrics))
        if analysis_type == "performance" and counts["idleInTransaction"]:
            recommendations.append(
                f"{counts['idleInTransaction']} session(s) idle in transaction; they hold locks and block vacuum"
            )
        if analysis_type == "security":
            recommendations.extend(await self._security_recommendations(db))

        return {
            "analysisType": analysis_type,
            "version": version["version"],
            "settings": {name: f"{s['setting']}{s['unit'] or ''}" for name, s in settings.items()},
            "metrics": metrics,
            "recommendations": recommendations
        }

    async def _security_recommendations(self, db: ConnectionHandle) -> List[str]:
        recommendations = []
        superusers = await db.query_one(queries.QUERY_SUPERUSER_COUNT)
        if superusers["count"] > 1:
            recommendations.append("Multiple superuser accounts detected. Review and reduce if possible")

        ssl = await db.query_one(queries.QUERY_SHOW_SSL)
        if ssl["ssl"] != "on":
            recommendations.append("SSL is not enabled. Consider enabling SSL for secure connections")

        passwordless = await db.query_one(queries.QUERY_PASSWORDLESS_LOGIN_ROLES)
        if passwordless and passwordless["count"]:
            recommendations.append(
                f"{passwordless['count']} login role(s) have no password; check pg_hba.conf authentication methods"
            )
        return recommendations


class DebugArgs(ToolArguments):
    issue: Literal["connection", "performance", "locks", "replication"]
    log_level: Literal["info", "debug", "warning"] = Field(default="info", alias="logLevel")


class DebugDatabaseHandler(ToolHandler):
    """Handler for targeted troubleshooting of common database issues."""

    name = TOOL_DEBUG_DATABASE
    description = "Debug common PostgreSQL issues: connection pressure, slow queries, lock contention, replication"
    input_schema = object_schema({
        "issue": string_property("Issue to debug", enum=["connection", "performance", "locks", "replication"]),
        "logLevel": string_property(
            "warning returns findings only, info adds collected data, debug adds pool statistics",
            enum=["info", "debug", "warning"]
        ),
    }, required=["issue"])

    async def execute(self, arguments: Dict[str, Any], context: ToolContext) -> CallToolResult:
        args = validate_arguments(DebugArgs, arguments, "debug")

        async with context.connection(args.connection_string) as db:
            checker = getattr(self, f"_debug_{args.issue}")
            data, findings = await checker(db)
            pool = db.connector.pool_stats()

        report: Dict[str, Any] = {"issue": args.issue, "findings": findings}
        if args.log_level in ("info", "debug"):
            report["data"] = data
        if args.log_level == "debug":
            report["pool"] = pool
        return self._json_response(report)

    async def _debug_connection(self, db: ConnectionHandle):
        by_state = await db.query(queries.QUERY_CONNECTIONS_BY_STATE)
        overview = await db.query_one(queries.QUERY_DATABASE_OVERVIEW)
        counts = await db.query_one(queries.QUERY_CONNECTION_COUNTS)

        findings = []
        max_connections = overview["maxConnections"]
        if max_connections and counts["connections"] > max_connections * CONNECTION_USAGE_LIMIT:
            findings.append(
                f"{counts['connections']} of {max_connections} connections in use; consider a connection pooler"
            )
        if counts["idleInTransaction"]:
            findings.append(
                f"{counts['idleInTransaction']} session(s) idle in transaction; "
                "set idle_in_transaction_session_timeout or fix the client"
            )
        if not findings:
            findings.append("No connection issues detected")
        return {"byState": by_state, "overview": overview}, findings

    async def _debug_performance(self, db: ConnectionHandle):
        active = await db.query(queries.QUERY_ACTIVE_QUERIES)
        slow = [q for q in active if (q["durationSeconds"] or 0) > LONG_RUNNING_SECONDS]
        seq_heavy = await db.query(queries.QUERY_SEQ_SCAN_HEAVY_TABLES)
        cache = await db.query_one(queries.QUERY_CACHE_STATS) or {"hits": 0, "reads": 0}
        ratio = cache_hit_ratio(cache["hits"], cache["reads"])

        findings = []
        if slow:
            findings.append(f"{len(slow)} quer(ies) running longer than {LONG_RUNNING_SECONDS}s")
        for table in seq_heavy:
            findings.append(
                f"{table['schema']}.{table['tableName']} is read mostly by sequential scans; review its indexes"
            )
        if ratio < CACHE_HIT_TARGET:
            findings.append(f"Cache hit ratio {ratio} is below {CACHE_HIT_TARGET}")
        if not findings:
            findings.append("No performance issues detected")
        return {"slowQueries": slow, "seqScanHeavyTables": seq_heavy, "cacheHitRatio": ratio}, findings

    async def _debug_locks(self, db: ConnectionHandle):
        blocking = await db.query(queries.QUERY_BLOCKING_LOCKS)
        modes = await db.query(queries.QUERY_LOCK_MODES)

        findings = [
            f"PID {b['blockedPid']} is blocked by PID {b['blockingPid']} ({b['waitingSeconds'] or 0:.0f}s)"
            for b in blocking
        ]
        if not findings:
            findings.append("No blocking locks detected")
        return {"blocking": blocking, "lockModes": modes}, findings

    async def _debug_replication(self, db: ConnectionHandle):
        recovery = await db.query_one(queries.QUERY_IN_RECOVERY)
        replicas = await db.query(queries.QUERY_REPLICATION)
        slots = await db.query(queries.QUERY_REPLICATION_SLOTS)

        findings = []
        if recovery["inRecovery"]:
            findings.append("This server is a standby (in recovery)")
        for slot in slots:
            if not slot["active"]:
                findings.append(f"Replication slot {slot['slotName']} is inactive and retains WAL")
        for replica in replicas:
            lag = replica["replayLagSeconds"]
            if lag and lag > 60:
                findings.append(f"Replica {replica['application']} is {lag:.0f}s behind")
        if not replicas and not recovery["inRecovery"]:
            findings.append("No replicas connected")
        return {"inRecovery": recovery["inRecovery"], "replicas": replicas, "slots": slots}, findings
