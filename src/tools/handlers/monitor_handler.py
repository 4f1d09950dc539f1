"""pg_monitor_database: point-in-time metrics with threshold alerts."""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from mcp.types import CallToolResult
from pydantic import BaseModel, ConfigDict, Field

from database.async_connectors import ConnectionHandle
from tools import queries
from tools.base import ToolContext, ToolHandler
from tools.definitions import (
    TOOL_MONITOR_DATABASE,
    boolean_property,
    object_schema,
)
from tools.handlers.analysis_handler import cache_hit_ratio
from tools.validators import ToolArguments, validate_arguments

logger = logging.getLogger(__name__)


class AlertThresholds(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    connection_percentage: float = Field(default=80, alias="connectionPercentage")
    long_running_query_seconds: float = Field(default=30, alias="longRunningQuerySeconds")
    cache_hit_ratio: float = Field(default=0.95, alias="cacheHitRatio")
    dead_tuples_percentage: float = Field(default=10, alias="deadTuplesPercentage")


class MonitorArgs(ToolArguments):
    include_queries: bool = Field(default=False, alias="includeQueries")
    include_locks: bool = Field(default=False, alias="includeLocks")
    include_tables: bool = Field(default=False, alias="includeTables")
    include_replication: bool = Field(default=False, alias="includeReplication")
    alert_thresholds: AlertThresholds = Field(default_factory=AlertThresholds, alias="alertThresholds")


def dead_tuple_percentage(table: Dict[str, Any]) -> float:
    live = table.get("liveTuples") or 0
    dead = table.get("deadTuples") or 0
    if live + dead == 0:
        return 0.0
    return round(dead * 100 / (live + dead), 2)


def evaluate_alerts(metrics: Dict[str, Any], thresholds: AlertThresholds) -> List[Dict[str, Any]]:
    """
    Compare collected metrics against thresholds.

    Only sections present in ``metrics`` are checked, so a report without
    ``activeQueries`` never raises a long-running-query alert.
    """
    alerts = []

    database = metrics.get("database") or {}
    max_connections = database.get("maxConnections")
    if max_connections:
        usage = round(database.get("connections", 0) * 100 / max_connections, 2)
        if usage >= thresholds.connection_percentage:
            alerts.append({
                "level": "critical" if usage >= 95 else "warning",
                "type": "connections",
                "message": f"Connection usage at {usage}% of max_connections ({max_connections})",
                "value": usage
            })

    cache = metrics.get("cache") or {}
    ratio = cache.get("hitRatio")
    if ratio is not None and (cache.get("hits") or cache.get("reads")) and ratio < thresholds.cache_hit_ratio:
        alerts.append({
            "level": "warning",
            "type": "cache",
            "message": f"Cache hit ratio {ratio} is below {thresholds.cache_hit_ratio}",
            "value": ratio
        })

    for query in metrics.get("activeQueries") or []:
        duration = query.get("durationSeconds") or 0
        if duration >= thresholds.long_running_query_seconds:
            alerts.append({
                "level": "warning",
                "type": "long_running_query",
                "message": f"Query on PID {query.get('pid')} running for {duration:.0f}s",
                "value": duration
            })

    for blocked in metrics.get("locks") or []:
        alerts.append({
            "level": "warning",
            "type": "blocking_lock",
            "message": f"PID {blocked['blockedPid']} is blocked by PID {blocked['blockingPid']}",
            "value": blocked.get("waitingSeconds")
        })

    for table in metrics.get("tables") or []:
        percentage = table.get("deadTuplesPercentage", 0)
        if percentage >= thresholds.dead_tuples_percentage:
            alerts.append({
                "level": "warning",
                "type": "dead_tuples",
                "message": f"{table['schema']}.{table['tableName']} has {percentage}% dead tuples; consider VACUUM",
                "value": percentage
            })

    return alerts


class MonitorDatabaseHandler(ToolHandler):
    """Handler for real-time database monitoring."""

    name = TOOL_MONITOR_DATABASE
    description = (
        "Get real-time monitoring information for a PostgreSQL database: connections, cache, "
        "and optionally active queries, locks, table statistics and replication, with threshold alerts"
    )
    input_schema = object_schema({
        "includeQueries": boolean_property("Include active queries"),
        "includeLocks": boolean_property("Include blocking lock information"),
        "includeTables": boolean_property("Include table statistics"),
        "includeReplication": boolean_property("Include replication status"),
        "alertThresholds": {
            "type": "object",
            "description": "Alert thresholds",
            "properties": {
                "connectionPercentage": {"type": "number", "description": "Connection usage percentage (default 80)"},
                "longRunningQuerySeconds": {"type": "number", "description": "Long-running query seconds (default 30)"},
                "cacheHitRatio": {"type": "number", "description": "Minimum cache hit ratio (default 0.95)"},
                "deadTuplesPercentage": {"type": "number", "description": "Dead tuple percentage (default 10)"}
            }
        },
    })

    async def execute(self, arguments: Dict[str, Any], context: ToolContext) -> CallToolResult:
        args = validate_arguments(MonitorArgs, arguments, "monitor")

        async with context.connection(args.connection_string) as db:
            metrics = await self.collect(db, args)

        metrics["alerts"] = evaluate_alerts(metrics, args.alert_thresholds)
        if metrics["alerts"]:
            logger.info(f"Monitoring raised {len(metrics['alerts'])} alert(s)")
        return self._json_response(metrics)

    async def collect(self, db: ConnectionHandle, args: MonitorArgs) -> Dict[str, Any]:
        cache = await db.query_one(queries.QUERY_CACHE_STATS) or {
            "hits": 0, "reads": 0, "commits": 0, "rollbacks": 0, "deadlocks": 0
        }
        metrics: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "database": await db.query_one(queries.QUERY_DATABASE_OVERVIEW),
            "connections": {
                row["state"]: row["count"] for row in await db.query(queries.QUERY_CONNECTIONS_BY_STATE)
            },
            "cache": dict(cache, hitRatio=cache_hit_ratio(cache["hits"], cache["reads"])),
        }

        if args.include_queries:
            metrics["activeQueries"] = await db.query(queries.QUERY_ACTIVE_QUERIES)
        if args.include_locks:
            metrics["locks"] = await db.query(queries.QUERY_BLOCKING_LOCKS)
        if args.include_tables:
            tables = await db.query(queries.QUERY_TABLE_STATS)
            metrics["tables"] = [dict(t, deadTuplesPercentage=dead_tuple_percentage(t)) for t in tables]
        if args.include_replication:
            metrics["replication"] = await self._replication(db)
        return metrics

    async def _replication(self, db: ConnectionHandle) -> Optional[Dict[str, Any]]:
        recovery = await db.query_one(queries.QUERY_IN_RECOVERY)
        return {
            "inRecovery": recovery["inRecovery"],
            "replicas": await db.query(queries.QUERY_REPLICATION),
            "slots": await db.query(queries.QUERY_REPLICATION_SLOTS)
        }
