"""
操作路由單元測試

測試 operation 判別欄位驗證、各分支必填欄位檢查，以及結果信封格式。
"""

import json

import pytest
from pydantic import Field

from conftest import result_text
from core.exceptions import MissingArgumentError, UnknownOperationError
from tools.base import OperationResult
from tools.handlers.functions_handler import FunctionsHandler
from tools.router import Operation, OperationRouter
from tools.validators import SchemaArguments


class WidgetArgs(SchemaArguments):
    widget_name: str = Field(alias="widgetName")
    size: int
    color: str


class ListArgs(SchemaArguments):
    pass


class WidgetRouter(OperationRouter):
    """測試用寬工具"""

    name = "widgets"
    description = "widgets"
    operations = {
        "list": Operation(ListArgs, "_list", returns_rows=True),
        "create": Operation(WidgetArgs, "_create", hint="size is in centimeters"),
        "fail": Operation(ListArgs, "_fail"),
    }

    async def _list(self, db, args):
        return OperationResult(message="ok", details=await db.query("SELECT * FROM widgets WHERE schema = $1", [args.schema_name]))

    async def _create(self, db, args):
        await db.execute("INSERT INTO widgets")
        return OperationResult(message=f"Widget {args.widget_name} created", details={"name": args.widget_name})

    async def _fail(self, db, args):
        return OperationResult(success=False, message="Nothing to do")


class PaintedWidgetRouter(WidgetRouter):
    """color 為 paint 時需要 finish"""

    def extra_missing(self, operation, arguments):
        if operation == "create" and arguments.get("color") == "paint" and not arguments.get("finish"):
            return ["finish"]
        return []


class TestResolveOperation:
    """operation 判別欄位測試"""

    def test_unknown_operation_lists_valid_set(self):
        """❌ 未知操作列出所有合法操作"""
        with pytest.raises(UnknownOperationError) as exc_info:
            WidgetRouter().resolve_operation({"operation": "explode"})

        message = exc_info.value.message
        assert '"explode"' in message
        assert "list, create, fail" in message
        assert exc_info.value.error_kind == "UnknownOperation"

    def test_missing_operation(self):
        """❌ 缺少 operation"""
        with pytest.raises(MissingArgumentError) as exc_info:
            WidgetRouter().resolve_operation({})
        assert exc_info.value.missing == ["operation"]
        assert "list, create, fail" in exc_info.value.message

    def test_non_string_operation(self):
        """❌ operation 不是字串"""
        with pytest.raises(UnknownOperationError):
            WidgetRouter().resolve_operation({"operation": ["list"]})

    def test_operation_is_case_sensitive(self):
        """❌ 大小寫不同視為未知"""
        with pytest.raises(UnknownOperationError):
            WidgetRouter().resolve_operation({"operation": "LIST"})


class TestBranchValidation:
    """分支必填欄位測試"""

    @pytest.mark.parametrize("provided,expected_missing", [
        ({}, ["widgetName", "size", "color"]),
        ({"widgetName": "w"}, ["size", "color"]),
        ({"size": 3}, ["widgetName", "color"]),
        ({"widgetName": "w", "size": 3}, ["color"]),
    ])
    def test_every_missing_field_named(self, provided, expected_missing):
        """❌ 缺少的必填欄位全部列出"""
        with pytest.raises(MissingArgumentError) as exc_info:
            WidgetRouter().parse({"operation": "create", **provided})

        assert exc_info.value.missing == expected_missing
        for name in expected_missing:
            assert name in exc_info.value.message
        assert exc_info.value.message.endswith("size is in centimeters")

    def test_parse_returns_typed_arguments(self):
        """✅ 回傳分支專屬的參數記錄"""
        operation, args = WidgetRouter().parse({"operation": "create", "widgetName": "w", "size": 3, "color": "red"})
        assert operation == "create"
        assert isinstance(args, WidgetArgs)
        assert args.schema_name == "public"

    def test_conditional_field_reported_with_record_fields(self):
        """❌ 條件式必填欄位與其他缺少的欄位一起列出"""
        with pytest.raises(MissingArgumentError) as exc_info:
            PaintedWidgetRouter().parse({"operation": "create", "color": "paint"})
        assert exc_info.value.missing == ["widgetName", "size", "finish"]

    def test_conditional_field_satisfied(self):
        """✅ 條件成立且已提供"""
        _, args = PaintedWidgetRouter().parse({
            "operation": "create", "widgetName": "w", "size": 1, "color": "paint", "finish": "matte"
        })
        assert args.color == "paint"


class TestEnvelopes:
    """結果信封測試"""

    @pytest.mark.asyncio
    async def test_read_branch_returns_rows_json(self, tool_context, db):
        """✅ 讀取分支直接回傳資料列 JSON"""
        db.rows.append([{"id": 1}, {"id": 2}])

        result = await WidgetRouter().run({"operation": "list", "schema": "shop"}, tool_context)

        assert not result.isError
        assert json.loads(result_text(result)) == [{"id": 1}, {"id": 2}]
        assert db.calls[0][2] == ["shop"]

    @pytest.mark.asyncio
    async def test_write_branch_returns_message_and_details(self, tool_context, db):
        """✅ 寫入分支回傳訊息與 Details"""
        result = await WidgetRouter().run(
            {"operation": "create", "widgetName": "w", "size": 3, "color": "red"}, tool_context
        )

        text = result_text(result)
        assert text.startswith("Widget w created Details: ")
        assert json.loads(text.split(" Details: ", 1)[1]) == {"name": "w"}

    @pytest.mark.asyncio
    async def test_unsuccessful_result_is_error(self, tool_context):
        """❌ success=False 轉為錯誤信封"""
        result = await WidgetRouter().run({"operation": "fail"}, tool_context)
        assert result.isError is True
        assert result_text(result) == "Error: Nothing to do"

    @pytest.mark.asyncio
    async def test_validation_happens_before_connecting(self, tool_context, fake_manager):
        """❌ 驗證失敗時不取得連接"""
        result = await WidgetRouter().run({"operation": "create"}, tool_context)

        assert result.isError is True
        assert fake_manager.requested == []

    @pytest.mark.asyncio
    async def test_explicit_connection_string_wins(self, tool_context, fake_manager):
        """✅ 明確的 connectionString 優先"""
        await WidgetRouter().run({"operation": "list", "connectionString": "postgresql://other/db"}, tool_context)
        assert fake_manager.requested == ["postgresql://other/db"]


class TestFunctionsScenarios:
    """pg_manage_functions 情境測試"""

    @pytest.mark.asyncio
    async def test_create_missing_three_fields(self, tool_context, fake_manager):
        """❌ 缺少 functionName、returnType、functionBody 一次列出"""
        result = await FunctionsHandler().run({"operation": "create", "parameters": ""}, tool_context)

        text = result_text(result)
        assert result.isError is True
        for name in ("functionName", "returnType", "functionBody"):
            assert name in text
        assert fake_manager.requested == []

    @pytest.mark.asyncio
    async def test_unknown_operation(self, tool_context):
        """❌ 未知操作列出 get, create, drop"""
        result = await FunctionsHandler().run({"operation": "rename"}, tool_context)
        assert result.isError is True
        assert "get, create, drop" in result_text(result)
