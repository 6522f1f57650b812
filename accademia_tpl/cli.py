"""
Accademia TPL — Maintenance command line.

Usage:
    accademia-tpl parse lesson.txt
    accademia-tpl parse lesson.txt --json --output blocks/lesson.json
    accademia-tpl roles
    accademia-tpl roles --role operator
    accademia-tpl audit
    accademia-tpl check users.delete --role admin
    accademia-tpl check normatives.view

`audit` exits with status 1 when the permission table has integrity errors;
`check` exits with status 1 when the permission is not granted. Without
--role, `check` answers for the configured default role (an anonymous visitor).
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

import structlog
from rich.console import Console
from rich.table import Table

from accademia_tpl.access.permissions import PermissionManager, permission_manager
from accademia_tpl.access.schema import (
    category_display_name,
    group_permissions_by_category,
    role_display_name,
)
from accademia_tpl.config import settings
from accademia_tpl.content.blocks import (
    CodeBlock,
    HeadingBlock,
    ImageBlock,
    LinkBlock,
)
from accademia_tpl.content.parser import blocks_to_json, parse_content, save_blocks

console = Console()


def configure_logging() -> None:
    """Configure structured logging."""
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            (
                structlog.dev.ConsoleRenderer()
                if settings.log_format != "json"
                else structlog.processors.JSONRenderer()
            ),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(settings.log_level)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def _block_detail(block) -> str:
    if isinstance(block, HeadingBlock):
        return f"h{block.level}"
    if isinstance(block, ImageBlock):
        return block.src
    if isinstance(block, LinkBlock):
        return block.href
    if isinstance(block, CodeBlock):
        return block.language or "—"
    return ""


def run_parse(path: Path, as_json: bool = False, output: Path | None = None) -> int:
    log = structlog.get_logger()
    raw = path.read_text(encoding="utf-8")
    blocks = parse_content(
        raw,
        max_heading_level=settings.max_heading_level,
        image_fallback_alt=settings.image_fallback_alt,
    )
    log.info("accademia_tpl.cli.parse", path=str(path), blocks=len(blocks))

    if output is not None:
        saved = save_blocks(blocks, output)
        log.info("accademia_tpl.cli.saved", path=str(saved))

    if as_json:
        sys.stdout.write(blocks_to_json(blocks) + "\n")
        return 0

    table = Table(title=str(path), show_lines=False)
    table.add_column("#", style="cyan", width=4)
    table.add_column("Kind", style="green", width=10)
    table.add_column("Detail", style="yellow")
    table.add_column("Text")
    for index, block in enumerate(blocks, start=1):
        table.add_row(str(index), block.kind, _block_detail(block), block.text)
    console.print(table)
    return 0


def run_roles(manager: PermissionManager, role: str | None = None) -> int:
    profiles = manager.list_profiles()
    if role is not None:
        profile = manager.get_profile(role)
        if profile is None:
            console.print(f"[red]Unknown role: {role}[/red]")
            return 1
        profiles = {role: profile}

    table = Table(title="Permission matrix", show_lines=True)
    table.add_column("Permission", style="cyan")
    for key in profiles:
        table.add_column(role_display_name(key), justify="center")

    for category, permissions in group_permissions_by_category(manager.list_permissions()).items():
        table.add_row(f"[bold]{category_display_name(category)}[/bold]", *[""] * len(profiles))
        for permission in permissions:
            table.add_row(
                permission.id,
                *[
                    "✓" if permission.id in profile.permissions else "—"
                    for profile in profiles.values()
                ],
            )
    console.print(table)

    for key, profile in profiles.items():
        manages = ", ".join(sorted(profile.manageable_roles)) or "—"
        sections = ", ".join(sorted(profile.sections)) or "—"
        console.print(
            f"[bold]{role_display_name(key)}[/bold] (level {profile.level}) "
            f"manages: {manages} | sections: {sections}"
        )
    return 0


def run_audit(manager: PermissionManager) -> int:
    console.print("\n[bold blue]═══ Permission Table Audit ═══[/bold blue]\n")
    report = manager.verify_integrity()

    for error in report.errors:
        console.print(f"  [bold red]✗[/bold red] {error}")
    for warning in report.warnings:
        console.print(f"  [yellow]⚠[/yellow] {warning}")

    if report.is_valid:
        console.print("[bold green]✓ VALID[/bold green]")
    else:
        console.print("[bold red]✗ INVALID[/bold red]")
    return 0 if report.is_valid else 1


def run_check(manager: PermissionManager, permission_id: str, role: str | None = None) -> int:
    role = role or settings.default_role
    result = manager.check_permission(role, permission_id)
    structlog.get_logger().info(
        "accademia_tpl.cli.check",
        role=result.role,
        permission=permission_id,
        decision=result.decision.value,
    )
    style = "green" if result.is_allowed else "red"
    console.print(f"[bold {style}]{result.decision.value.upper()}[/bold {style}] {result.reason}")
    return 0 if result.is_allowed else 1


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="accademia-tpl",
        description=f"{settings.app_name} maintenance tools",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    parse_cmd = sub.add_parser("parse", help="Parse a lesson file into content blocks")
    parse_cmd.add_argument("path", type=Path)
    parse_cmd.add_argument("--json", action="store_true", help="Print blocks as JSON")
    parse_cmd.add_argument("--output", type=Path, default=None, help="Save blocks as JSON")

    roles_cmd = sub.add_parser("roles", help="Show the permission matrix")
    roles_cmd.add_argument("--role", default=None, help="Show a single role")

    sub.add_parser("audit", help="Check the permission table for integrity problems")

    check_cmd = sub.add_parser("check", help="Check whether a role holds a permission")
    check_cmd.add_argument("permission")
    check_cmd.add_argument(
        "--role", default=None, help=f"Role to check (default: {settings.default_role})"
    )

    args = parser.parse_args(argv)
    configure_logging()

    if args.command == "parse":
        return run_parse(args.path, as_json=args.json, output=args.output)
    if args.command == "roles":
        return run_roles(permission_manager, role=args.role)
    if args.command == "check":
        return run_check(permission_manager, args.permission, role=args.role)
    return run_audit(permission_manager)


if __name__ == "__main__":
    sys.exit(main())
