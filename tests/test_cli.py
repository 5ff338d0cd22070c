import json

import pytest
from cryptography.x509.oid import NameOID

from installer_sigcheck import cli, pipeline
from installer_sigcheck.errors import CleanupError, InspectionExecutionError
from installer_sigcheck.inspector import decode_signature_output
from installer_sigcheck.models import ProgramOutput, ValidationResult


@pytest.fixture
def installer(tmp_path):
    target = tmp_path / "setup.msi"
    target.write_bytes(b"MZ")
    return target


def fake_inspector(monkeypatch, output):
    monkeypatch.setattr(
        pipeline, "inspect_signature", lambda path, **kw: decode_signature_output(output, path)
    )


def test_valid_signature_json(monkeypatch, capsys, installer, make_output, emurasoft_der):
    fake_inspector(monkeypatch, make_output(emurasoft_der))
    code = cli.run_cli(["--file", str(installer)])
    doc = json.loads(capsys.readouterr().out)
    assert code == cli.EXIT_VALID
    assert doc["result"] == {"valid": True}
    assert "error" not in doc
    assert doc["signature"]["status"] == 0


def test_invalid_signature_exit_code(monkeypatch, capsys, installer, make_output, make_cert):
    fake_inspector(monkeypatch, make_output(make_cert([(NameOID.COMMON_NAME, "Evil Corp")])))
    code = cli.run_cli(["--file", str(installer)])
    doc = json.loads(capsys.readouterr().out)
    assert code == cli.EXIT_INVALID
    assert doc["result"]["valid"] is False
    assert "Evil Corp" in doc["result"]["reason"]
    assert "error" not in doc


def test_execution_error_populates_error_only(monkeypatch, capsys, installer):
    def boom(path, **kw):
        raise InspectionExecutionError("signature inspector not found: pwsh")

    monkeypatch.setattr(pipeline, "inspect_signature", boom)
    code = cli.run_cli(["--file", str(installer)])
    doc = json.loads(capsys.readouterr().out)
    assert code == cli.EXIT_ERROR
    assert "result" not in doc
    assert doc["error"].startswith("InspectionExecutionError:")


def test_expected_publisher_flags(monkeypatch, capsys, installer, make_output, make_cert):
    raw = make_cert(
        [
            (NameOID.COMMON_NAME, "Example GmbH"),
            (NameOID.ORGANIZATION_NAME, "Example GmbH"),
            (NameOID.STATE_OR_PROVINCE_NAME, "Bayern"),
            (NameOID.COUNTRY_NAME, "DE"),
        ]
    )
    fake_inspector(monkeypatch, make_output(raw))
    code = cli.run_cli(
        [
            "--file", str(installer),
            "--expected-cn", "Example GmbH",
            "--expected-org", "Example GmbH",
            "--expected-state", "Bayern",
            "--expected-country", "DE",
        ]
    )
    assert code == cli.EXIT_VALID
    assert json.loads(capsys.readouterr().out)["result"]["valid"] is True


def test_text_output_and_file(monkeypatch, capsys, installer, tmp_path, make_output, emurasoft_der):
    fake_inspector(monkeypatch, make_output(emurasoft_der))
    report = tmp_path / "report.txt"
    code = cli.run_cli(["--file", str(installer), "--text", "--output", str(report), "--no-stdout"])
    assert code == cli.EXIT_VALID
    assert capsys.readouterr().out == ""
    text = report.read_text(encoding="utf-8")
    assert text.startswith("VALID")
    assert "Common Name: Emurasoft, Inc." in text


def test_missing_file(capsys, tmp_path):
    code = cli.run_cli(["--file", str(tmp_path / "nope.msi")])
    doc = json.loads(capsys.readouterr().out)
    assert code == cli.EXIT_ERROR
    assert "result" not in doc
    assert doc["error"].startswith("ConfigurationError: no such file:")
    assert "nope.msi" in doc["error"]


def test_bad_config(capsys, tmp_path, monkeypatch):
    monkeypatch.setenv("SIGCHECK_INSPECT_TIMEOUT", "never")
    code = cli.run_cli(["--file", str(tmp_path / "x.msi")])
    doc = json.loads(capsys.readouterr().out)
    assert code == cli.EXIT_ERROR
    assert "result" not in doc
    assert doc["error"].startswith("ConfigurationError: SIGCHECK_INSPECT_TIMEOUT")


def test_config_error_goes_to_output_file(capsys, tmp_path):
    cfg = tmp_path / "sigcheck.json"
    cfg.write_text('{"keep_file": "false"}', encoding="utf-8")
    report = tmp_path / "report.json"
    code = cli.run_cli(["--config", str(cfg), "--output", str(report), "--no-stdout"])
    assert code == cli.EXIT_ERROR
    assert capsys.readouterr().out == ""
    doc = json.loads(report.read_text(encoding="utf-8"))
    assert doc == {"error": "ConfigurationError: keep_file: expected true or false, got 'false'"}


def test_no_stdout_requires_output():
    with pytest.raises(SystemExit):
        cli.run_cli(["--no-stdout"])


@pytest.mark.parametrize(
    "out, expected",
    [
        (ProgramOutput(result=ValidationResult.passed()), cli.EXIT_VALID),
        (ProgramOutput(result=ValidationResult.failed("bad")), cli.EXIT_INVALID),
        (ProgramOutput(error="DownloadError: bad status: 404"), cli.EXIT_ERROR),
        (ProgramOutput(result=ValidationResult.passed(), cleanup_error="CleanupError: x"), cli.EXIT_ERROR),
        # the verdict wins over a cleanup failure
        (ProgramOutput(result=ValidationResult.failed("bad"), cleanup_error="CleanupError: x"), cli.EXIT_INVALID),
    ],
)
def test_exit_codes(out, expected):
    assert cli.exit_code_for(out) == expected


def test_envelope_omits_absent_fields():
    out = ProgramOutput(error="DownloadError: bad status: 404", cleanup_error=str(CleanupError("x", path="p")))
    assert json.loads(cli.output_to_json(out)) == {
        "error": "DownloadError: bad status: 404",
        "cleanup_error": "x",
    }
