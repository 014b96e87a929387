"""Tests for name, command and environment validation."""

import pytest

from lars.errors import ErrorKind, InvalidInput
from lars.validation import (
    MAX_NAME_LENGTH,
    generate_service_name,
    parse_env_pairs,
    unique_name,
    validate_command,
    validate_service_name,
)


class TestValidateServiceName:
    @pytest.mark.parametrize("name", ["web", "my-app", "api_v2", "A1", "x" * 64])
    def test_accepts_valid_names(self, name):
        assert validate_service_name(name) == name

    @pytest.mark.parametrize(
        "name", ["", "x" * (MAX_NAME_LENGTH + 1), "my app", "a/b", "dot.name", "ü"]
    )
    def test_rejects_invalid_names(self, name):
        with pytest.raises(InvalidInput) as exc_info:
            validate_service_name(name)
        assert exc_info.value.kind == ErrorKind.INVALID_INPUT

    def test_invalid_input_is_a_value_error(self):
        with pytest.raises(ValueError):
            validate_service_name("bad name")


class TestValidateCommand:
    def test_accepts_command(self):
        assert validate_command("npm run dev") == "npm run dev"

    @pytest.mark.parametrize("command", ["", "   ", "\t\n"])
    def test_rejects_blank(self, command):
        with pytest.raises(InvalidInput):
            validate_command(command)

    def test_rejects_null_byte(self):
        with pytest.raises(InvalidInput):
            validate_command("echo \0")


class TestParseEnvPairs:
    def test_parses_pairs(self):
        assert parse_env_pairs(["PORT=3000", "NODE_ENV=dev"]) == {
            "PORT": "3000",
            "NODE_ENV": "dev",
        }

    def test_value_may_contain_equals(self):
        assert parse_env_pairs(["URL=a=b"]) == {"URL": "a=b"}

    def test_empty_value_allowed(self):
        assert parse_env_pairs(["EMPTY="]) == {"EMPTY": ""}

    def test_later_pairs_win(self):
        assert parse_env_pairs(["A=1", "A=2"]) == {"A": "2"}

    def test_rejects_missing_equals(self):
        with pytest.raises(InvalidInput, match="KEY=VALUE"):
            parse_env_pairs(["PORT"])

    @pytest.mark.parametrize("pair", ["=value", "1ABC=x", "MY-VAR=x"])
    def test_rejects_bad_keys(self, pair):
        with pytest.raises(InvalidInput):
            parse_env_pairs([pair])


class TestGenerateServiceName:
    @pytest.mark.parametrize(
        ("command", "expected"),
        [
            ("npm run dev", "npm"),
            ("/usr/bin/python script.py", "python"),
            ("PORT=3000 node server.js", "node"),
            ("npx vibe-kanban", "vibe-kanban"),
            ("npx vibe-kanban@latest", "vibe-kanban"),
            ("PORT=3000 bunx -y create-thing@1.2.3", "create-thing"),
            ("pnpx @scope/tool@2", "tool"),
            ("FOO=bar", "service"),
            ("./bin/my.server --port 1", "myserver"),
        ],
    )
    def test_derives_name(self, command, expected):
        assert generate_service_name(command) == expected

    def test_result_is_always_valid(self):
        name = generate_service_name("x" * 200)
        assert validate_service_name(name) == name


class TestUniqueName:
    def test_free_name_unchanged(self):
        assert unique_name("web", ["api"]) == "web"

    def test_appends_first_free_suffix(self):
        assert unique_name("web", ["web", "web-1"]) == "web-2"

    def test_suffix_respects_max_length(self):
        base = "x" * MAX_NAME_LENGTH
        name = unique_name(base, [base])
        assert len(name) == MAX_NAME_LENGTH
        assert name.endswith("-1")
