from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Tuple
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from schema2puml.cli import CliOptions, main, parse_args, resolve_password, run
from schema2puml.errors import DocumenterError


@pytest.fixture
def fixtures_dir() -> Path:
    return Path(__file__).parent / "fixtures"


def make_options(
    input_path: Path,
    *,
    schemas: Tuple[str, ...] = (),
    output_path: Optional[Path] = None,
) -> CliOptions:
    return CliOptions(
        input_path=input_path,
        output_path=output_path,
        schemas=schemas,
        config=None,
    )


def test_successful_conversion(fixtures_dir: Path) -> None:
    result = run(make_options(fixtures_dir / "shop.yaml"))
    assert result == (fixtures_dir / "shop.puml").read_text(encoding="utf-8")


def test_selected_schemas_only(fixtures_dir: Path) -> None:
    result = run(make_options(fixtures_dir / "shop.yaml", schemas=("common",)))
    assert 'package "common"' in result
    assert 'package "sales"' not in result


def test_unknown_schema_is_rejected(fixtures_dir: Path) -> None:
    with pytest.raises(DocumenterError, match="not found in snapshot: billing"):
        run(make_options(fixtures_dir / "shop.yaml", schemas=("sales", "billing")))


def test_parse_args_for_snapshot(fixtures_dir: Path, tmp_path: Path) -> None:
    options = parse_args(
        [
            "--input",
            str(fixtures_dir / "shop.yaml"),
            "--schemas",
            "sales, common",
            "--output",
            str(tmp_path / "out.puml"),
            "--verbose",
        ]
    )
    assert options.schemas == ("sales", "common")
    assert options.output_path == tmp_path / "out.puml"
    assert options.config is None
    assert options.log_level == logging.INFO


def test_parse_args_for_database_uses_environment_password() -> None:
    options = parse_args(
        ["--host", "db", "--database", "shop", "--username", "reader", "--schemas", "sales", "--no-ssl", "--debug"],
        environ={"SCHEMA2PUML_PASSWORD": "from-env"},
        prompt=lambda message: pytest.fail("prompt should not be used"),
    )
    assert options.input_path is None
    assert options.output_path is None
    assert options.config.password == "from-env"
    assert options.config.use_ssl is False
    assert options.config.database_port == 5432
    assert options.schemas == ("sales",)
    assert options.log_level == logging.DEBUG


def test_password_resolution_order() -> None:
    assert resolve_password("given", {"SCHEMA2PUML_PASSWORD": "env"}, lambda m: "typed") == "given"
    assert resolve_password(None, {"SCHEMA2PUML_PASSWORD": "env"}, lambda m: "typed") == "env"
    assert resolve_password(None, {}, lambda m: "typed") == "typed"


def test_parse_args_requires_connection_details() -> None:
    with pytest.raises(DocumenterError, match="--database, --username"):
        parse_args(["--host", "db", "--schemas", "sales"], environ={})


def test_parse_args_requires_schemas_for_database() -> None:
    with pytest.raises(DocumenterError, match="schemas must contain at least 1 item"):
        parse_args(
            ["--host", "db", "--database", "shop", "--username", "reader", "--password", "pw"],
            environ={},
        )


def test_main_writes_output_file(fixtures_dir: Path, tmp_path: Path) -> None:
    output = tmp_path / "nested" / "shop.puml"
    code = main(["--input", str(fixtures_dir / "shop.yaml"), "--output", str(output)])

    assert code == 0
    assert output.read_text(encoding="utf-8") == (fixtures_dir / "shop.puml").read_text(encoding="utf-8")


def test_main_writes_stdout(fixtures_dir: Path, capsys) -> None:
    assert main(["--input", str(fixtures_dir / "shop.yaml"), "--schemas", "common"]) == 0
    assert capsys.readouterr().out.startswith("@startuml\n")


def test_main_reports_configuration_errors(fixtures_dir: Path, capsys) -> None:
    code = main(["--input", str(fixtures_dir / "invalid_snapshot.yaml")])
    err = capsys.readouterr().err

    assert code == 1
    assert err.startswith("Configuration error: Snapshot validation failed")


def test_main_reports_missing_input(tmp_path: Path, capsys) -> None:
    assert main(["--input", str(tmp_path / "missing.yaml")]) == 1
    assert "Input file not found" in capsys.readouterr().err


def test_main_reports_database_errors(capsys) -> None:
    error = OperationalError("SELECT 1", {}, Exception("connection refused"))
    with patch("schema2puml.cli.DbDocumenter") as documenter:
        documenter.return_value.generate_puml.side_effect = error
        code = main(
            ["--host", "db", "--database", "shop", "--username", "u", "--password", "p", "--schemas", "sales"]
        )

    assert code == 2
    assert capsys.readouterr().err.startswith("Database error:")


def test_main_reports_output_errors(fixtures_dir: Path, tmp_path: Path, capsys) -> None:
    code = main(["--input", str(fixtures_dir / "shop.yaml"), "--output", str(tmp_path)])
    assert code == 3
    assert capsys.readouterr().err.startswith("Output error:")
