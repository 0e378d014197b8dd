"""Tests for the decode/allowed CLI commands."""

from __future__ import annotations

from dataclasses import dataclass

from cli.main import run_cli
from core.descriptors import TypeDescriptor
from core.type_registry import MappingTypeRegistry
from data.serializer import ObjectSerializer


@dataclass
class OldDescriptor:
    __stream_fingerprint__ = 11

    identity: str
    fingerprint: int
    field_names: tuple


def _write_old_descriptor(tmp_path):
    types = MappingTypeRegistry()
    types.register(OldDescriptor, TypeDescriptor)
    path = tmp_path / "old.vtos"
    ObjectSerializer(types).save(OldDescriptor("a.B", 5, ("x",)), path)
    return path


def test_cli_decode_prints_repr(tmp_path, capsys) -> None:
    path = tmp_path / "desc.vtos"
    ObjectSerializer().save(TypeDescriptor("a.B", 5, ("x",)), path)

    assert run_cli(["decode", str(path)]) == 0

    out = capsys.readouterr().out
    assert "TypeDescriptor(identity='a.B', fingerprint=5, field_names=('x',))" in out


def test_cli_decode_reports_incompatible_fingerprint(tmp_path, capsys) -> None:
    path = _write_old_descriptor(tmp_path)

    assert run_cli(["decode", str(path)]) == 2

    err = capsys.readouterr().err
    assert err.startswith("error: ")
    assert "stream fingerprint = 11" in err


def test_cli_decode_with_allow_flag(tmp_path, capsys) -> None:
    path = _write_old_descriptor(tmp_path)

    assert run_cli(["decode", str(path), "--allow", "core.descriptors.TypeDescriptor=11"]) == 0
    assert "TypeDescriptor(identity='a.B'" in capsys.readouterr().out


def test_cli_allowed_lists_config_entries(tmp_path, capsys) -> None:
    config_path = tmp_path / "deser.yaml"
    config_path.write_text(
        "allowed_fingerprints:\n"
        "  core.descriptors.TypeDescriptor: [11, 12]\n",
        encoding="utf-8",
    )

    assert run_cli(["allowed", "--config", str(config_path)]) == 0
    assert capsys.readouterr().out.splitlines() == [
        "core.descriptors.TypeDescriptor 11",
        "core.descriptors.TypeDescriptor 12",
    ]

    path = _write_old_descriptor(tmp_path)
    assert run_cli(["decode", str(path), "--config", str(config_path)]) == 0
