"""
識別字與參數驗證單元測試

測試 SQL 識別字引號處理、參數記錄驗證，確保缺少的欄位一次全部回報。
"""

from typing import List, Optional

import pytest
from pydantic import Field

from core.exceptions import InvalidIdentifierError, MissingArgumentError, ToolValidationError
from tools.validators import (
    InputValidator,
    SchemaArguments,
    ToolArguments,
    dollar_quote,
    missing_one_of,
    qualified_name,
    quote_identifier,
    quote_literal,
    quote_role,
    validate_arguments,
)


class TestInputValidator:
    """識別字驗證測試"""

    def test_valid_identifier(self):
        """✅ 一般名稱"""
        assert InputValidator.validate_identifier("users") == (True, "")

    def test_valid_mixed_case_identifier(self):
        """✅ 大小寫混合與空白皆可（會被引號包住）"""
        is_valid, _ = InputValidator.validate_identifier("Order Items")
        assert is_valid is True

    def test_empty_identifier(self):
        """❌ 空字串"""
        is_valid, error = InputValidator.validate_identifier("   ")
        assert is_valid is False
        assert "empty" in error

    def test_non_string_identifier(self):
        """❌ 非字串"""
        is_valid, _ = InputValidator.validate_identifier(42)
        assert is_valid is False

    def test_nul_identifier(self):
        """❌ 含 NUL 字元"""
        is_valid, error = InputValidator.validate_identifier("bad\x00name")
        assert is_valid is False
        assert "NUL" in error

    def test_too_long_identifier(self):
        """❌ 超過 63 bytes"""
        is_valid, error = InputValidator.validate_identifier("a" * 64)
        assert is_valid is False
        assert "too long" in error

    def test_multibyte_length_counts_bytes(self):
        """❌ 以 UTF-8 位元組計算長度"""
        is_valid, _ = InputValidator.validate_identifier("資" * 22)
        assert is_valid is False

    def test_validate_limit(self):
        """✅/❌ 查詢筆數限制"""
        assert InputValidator.validate_limit(10, 100) == (True, "")
        assert InputValidator.validate_limit(-1)[0] is False
        assert InputValidator.validate_limit(101, 100)[0] is False


class TestQuoting:
    """引號處理測試"""

    def test_quote_identifier(self):
        """✅ 一律加上雙引號，保留大小寫"""
        assert quote_identifier("Users") == '"Users"'

    def test_quote_identifier_escapes_quotes(self):
        """✅ 內嵌雙引號加倍"""
        assert quote_identifier('we"ird') == '"we""ird"'

    def test_quote_identifier_injection_is_inert(self):
        """✅ 注入字串只會成為識別字的一部分"""
        assert quote_identifier('x"; DROP TABLE users; --') == '"x""; DROP TABLE users; --"'

    def test_quote_identifier_rejects_empty(self):
        """❌ 空識別字拋出 InvalidIdentifierError"""
        with pytest.raises(InvalidIdentifierError):
            quote_identifier("")

    def test_qualified_name(self):
        """✅ schema.name"""
        assert qualified_name("public", "users") == '"public"."users"'
        assert qualified_name(None, "users") == '"users"'

    def test_quote_role_keywords(self):
        """✅ PUBLIC / CURRENT_USER 不加引號"""
        assert quote_role("public") == "PUBLIC"
        assert quote_role("current_user") == "CURRENT_USER"
        assert quote_role("app_user") == '"app_user"'

    def test_quote_literal(self):
        """✅ 單引號加倍"""
        assert quote_literal("it's") == "'it''s'"

    def test_dollar_quote_avoids_collision(self):
        """✅ 內文包含標籤時改用其他標籤"""
        assert dollar_quote("SELECT 1", "function") == "$function$SELECT 1$function$"
        quoted = dollar_quote("SELECT '$function$'", "function")
        assert quoted.startswith("$function1$")
        assert quoted.endswith("$function1$")


class SampleArgs(SchemaArguments):
    table_name: str = Field(alias="tableName")
    columns: List[str]
    return_type: str = Field(alias="returnType")
    limit: Optional[int] = None


class TestValidateArguments:
    """參數記錄驗證測試"""

    def test_valid_arguments(self):
        """✅ 以 camelCase 別名填入"""
        args = validate_arguments(SampleArgs, {
            "tableName": "users", "columns": ["id"], "returnType": "TEXT", "schema": "sales"
        })
        assert args.table_name == "users"
        assert args.schema_name == "sales"
        assert args.connection_string is None

    def test_schema_defaults_to_public(self):
        """✅ schema 預設 public"""
        args = validate_arguments(SampleArgs, {"tableName": "t", "columns": ["a"], "returnType": "int"})
        assert args.schema_name == "public"

    def test_all_missing_fields_reported(self):
        """❌ 一次列出所有缺少的欄位"""
        with pytest.raises(MissingArgumentError) as exc_info:
            validate_arguments(SampleArgs, {"limit": 5}, operation="create")

        error = exc_info.value
        assert error.missing == ["tableName", "columns", "returnType"]
        assert "create operation" in error.message
        for name in ("tableName", "columns", "returnType"):
            assert name in error.message

    def test_blank_values_count_as_missing(self):
        """❌ 空字串、空陣列、None 視為缺少"""
        with pytest.raises(MissingArgumentError) as exc_info:
            validate_arguments(SampleArgs, {"tableName": "  ", "columns": [], "returnType": None})
        assert exc_info.value.missing == ["tableName", "columns", "returnType"]

    def test_hint_appended(self):
        """✅ 附加提示文字"""
        with pytest.raises(MissingArgumentError) as exc_info:
            validate_arguments(SampleArgs, {}, operation="create", hint="See the docs")
        assert exc_info.value.message.endswith("See the docs")

    def test_wrong_types_reported(self):
        """❌ 型別錯誤轉為 ToolValidationError"""
        with pytest.raises(ToolValidationError) as exc_info:
            validate_arguments(
                SampleArgs,
                {"tableName": "t", "columns": "not-a-list", "returnType": "int", "limit": "many"},
                operation="create"
            )
        assert not isinstance(exc_info.value, MissingArgumentError)
        assert len(exc_info.value.problems) == 2
        assert "Invalid arguments for create operation" in exc_info.value.message

    def test_unknown_keys_ignored(self):
        """✅ 多餘的參數（例如 operation）被忽略"""
        args = validate_arguments(ToolArguments, {"operation": "get", "connectionString": "postgresql://x"})
        assert args.connection_string == "postgresql://x"


class TestConditionalMissing:
    """條件式必要欄位測試"""

    def test_extra_missing_merged_into_one_error(self):
        """❌ 條件式欄位與記錄欄位一起列出"""
        with pytest.raises(MissingArgumentError) as exc_info:
            validate_arguments(SampleArgs, {"columns": ["id"]}, "create", extra_missing=["tableName", "name"])
        assert exc_info.value.missing == ["tableName", "returnType", "name"]

    def test_extra_missing_alone(self):
        """❌ 只有條件式欄位缺少"""
        with pytest.raises(MissingArgumentError) as exc_info:
            validate_arguments(SampleArgs, {"tableName": "t", "columns": ["a"], "returnType": "int"}, extra_missing=["name"])
        assert exc_info.value.missing == ["name"]

    def test_one_of_present(self):
        """✅ 任一欄位存在即可"""
        assert missing_one_of({"check": "true"}, ["using", "check"]) == []

    def test_one_of_absent(self):
        """❌ 全部缺少或空白"""
        assert missing_one_of({"using": "  "}, ["using", "check"]) == ["using|check"]
        assert missing_one_of(None, ["using", "check"]) == ["using|check"]
