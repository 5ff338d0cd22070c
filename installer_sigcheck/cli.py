#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from . import APP_NAME, APP_VERSION
from .config import Settings, build_settings
from .errors import ConfigurationError
from .models import ProgramOutput
from .pipeline import format_error, run_check

log = logging.getLogger(__name__)

EXIT_VALID = 0
EXIT_INVALID = 1
EXIT_ERROR = 2

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


# =============================================================================
# Output
# =============================================================================
def output_to_json(out: ProgramOutput) -> str:
    return json.dumps(out.to_dict(), ensure_ascii=False, indent=2)


def output_to_human(out: ProgramOutput) -> str:
    lines: List[str] = []
    if out.result is None:
        lines.append("ERROR")
        lines.append(f"Reason: {out.error or 'UNKNOWN'}")
    else:
        lines.append("VALID" if out.result.valid else "INVALID")
        if out.result.reason:
            lines.append(f"Reason: {out.result.reason}")
    if out.cleanup_error:
        lines.append(f"Cleanup: {out.cleanup_error}")

    sig = out.signature
    if sig:
        subject = sig.get("signer_subject") or {}
        lines.append("")
        lines.append("Signature:")
        lines.append(f"• File: {sig.get('path')}")
        lines.append(f"• Status: {sig.get('status')} ({sig.get('status_message')})")
        lines.append("")
        lines.append("Signer certificate:")
        lines.append(f"• Common Name: {subject.get('common_name') or 'UNKNOWN'}")
        lines.append(f"• Organization: {subject.get('organization') or 'UNKNOWN'}")
        if subject.get("organizational_unit"):
            lines.append(f"• Organizational Unit: {subject['organizational_unit']}")
        if subject.get("locality"):
            lines.append(f"• Locality: {subject['locality']}")
        lines.append(f"• State: {subject.get('state') or 'UNKNOWN'}")
        lines.append(f"• Country: {subject.get('country') or 'UNKNOWN'}")
        if sig.get("signer_not_before"):
            lines.append(f"• Not Before: {sig['signer_not_before']}")
        if sig.get("signer_not_after"):
            lines.append(f"• Not After: {sig['signer_not_after']}")
        lines.append(f"• Signer SHA256: {sig.get('signer_cert_sha256') or 'UNKNOWN'}")

    lines.append("")
    lines.append(f"{APP_NAME} v{APP_VERSION}")
    return "\n".join(lines)


def exit_code_for(out: ProgramOutput) -> int:
    if out.error is not None or out.result is None:
        return EXIT_ERROR
    if not out.result.valid:
        return EXIT_INVALID
    if out.cleanup_error is not None:
        return EXIT_ERROR
    return EXIT_VALID


def configure_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity > 1:
        level = logging.DEBUG
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root = logging.getLogger("installer_sigcheck")
    root.handlers[:] = [handler]
    root.setLevel(level)
    root.propagate = False


# =============================================================================
# CLI
# =============================================================================
def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="installer-sigcheck",
        description="Download an installer and check its Authenticode signer against an expected publisher.",
    )
    source = parser.add_mutually_exclusive_group()
    source.add_argument("--url", help="Installer URL to download (env: SIGCHECK_URL).")
    source.add_argument("--file", help="Check an existing local file instead of downloading.")
    parser.add_argument("--config", help="JSON config file.")

    parser.add_argument("--expected-cn", help="Expected signer Common Name.")
    parser.add_argument("--expected-org", help="Expected signer Organization.")
    parser.add_argument("--expected-state", help="Expected signer State/Province.")
    parser.add_argument("--expected-country", help="Expected signer Country.")

    parser.add_argument("--powershell", help="PowerShell executable (default: pwsh).")
    parser.add_argument("--inspect-timeout", type=float, help="Seconds to wait for the signature inspector.")
    parser.add_argument("--download-timeout", type=float, help="HTTP read timeout in seconds.")
    parser.add_argument(
        "--keep-file",
        action="store_true",
        default=None,
        help="Do not delete the downloaded file.",
    )

    parser.add_argument("--text", action="store_true", help="Output human-readable text instead of JSON.")
    parser.add_argument(
        "--output",
        help="Write output to a file (JSON unless --text is set).",
    )
    parser.add_argument(
        "--no-stdout",
        action="store_true",
        help="Do not print output to stdout (useful with --output).",
    )
    parser.add_argument("--traceback", action="store_true", help="Include the Python traceback in the error field.")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="More logging on stderr (-vv for debug).")
    return parser


def settings_from_args(args: argparse.Namespace) -> Settings:
    overrides = {
        "url": args.url,
        "file": args.file,
        "expected_cn": args.expected_cn,
        "expected_org": args.expected_org,
        "expected_state": args.expected_state,
        "expected_country": args.expected_country,
        "powershell": args.powershell,
        "inspect_timeout": args.inspect_timeout,
        "download_timeout": args.download_timeout,
        "keep_file": args.keep_file,
    }
    config_path = Path(args.config).expanduser() if args.config else None
    return build_settings(overrides=overrides, config_path=config_path)


def run_cli(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.no_stdout and not args.output:
        parser.error("--no-stdout requires --output.")

    configure_logging(args.verbose)

    try:
        settings = settings_from_args(args)
        if settings.file and not Path(settings.file).exists():
            raise ConfigurationError(f"no such file: {settings.file}")
    except ConfigurationError as e:
        log.error("Configuration error: %s", e)
        out = ProgramOutput(error=format_error(e, with_traceback=args.traceback))
    else:
        out = run_check(settings, with_traceback=args.traceback)

    output_text = output_to_human(out) if args.text else output_to_json(out)

    if args.output:
        Path(args.output).write_text(output_text + "\n", encoding="utf-8")

    if not args.no_stdout:
        print(output_text)

    return exit_code_for(out)


def main() -> int:
    return run_cli(sys.argv[1:])


if __name__ == "__main__":
    sys.exit(main())
