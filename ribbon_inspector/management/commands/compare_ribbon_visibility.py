import json

from django.core.management.base import BaseCommand, CommandError

from ribbon_inspector.analysis.service import build_analysis_service
from ribbon_inspector.analysis.visibility.types import Difference
from ribbon_inspector.dataverse.cache import get_shared_ribbon_cache
from ribbon_inspector.dataverse.config import get_inspector_settings
from ribbon_inspector.dataverse.exceptions import DataverseError

TABLE_COLUMNS = (
    ("command_id", "Command", 48),
    ("source", "Source", 10),
    ("visible_to_current_user", "Current", 8),
    ("visible_to_target_user", "Target", 8),
    ("difference", "Difference", 22),
)


class Command(BaseCommand):
    help = "Compare command bar visibility between two Dataverse users."

    def add_arguments(self, parser):
        parser.add_argument(
            "--target-user",
            dest="target_user",
            required=True,
            help="systemuserid of the user to inspect.",
        )
        parser.add_argument(
            "--comparison-user",
            dest="comparison_user",
            help="systemuserid to compare against (default: the connected user).",
        )
        parser.add_argument("--entity", help="Entity logical name (default: global commands).")
        parser.add_argument(
            "--context",
            help="Form, HomePageGrid or SubGrid (default: analysis.default_context).",
        )
        parser.add_argument(
            "--format",
            dest="output_format",
            choices=("json", "table"),
            default="table",
            help="Output format (default: table).",
        )
        parser.add_argument(
            "--differences-only",
            action="store_true",
            help="Only list commands whose visibility differs or may differ.",
        )
        parser.add_argument(
            "--clear-cache",
            action="store_true",
            help="Drop cached ribbon XML for the entity before comparing.",
        )
        parser.add_argument(
            "--out",
            dest="output_file",
            help="Output file path (default: stdout).",
        )

    def handle(self, *args, **options):
        try:
            settings = get_inspector_settings()
            service = build_analysis_service(
                settings=settings,
                cache=get_shared_ribbon_cache(settings.ribbon_cache_ttl_seconds),
            )
        except DataverseError as exc:
            raise CommandError(str(exc)) from exc

        if options["clear_cache"]:
            removed = service.clear_ribbon_cache(options.get("entity"))
            self.stderr.write(f"Cleared {removed} cached ribbon(s)")

        try:
            result = service.compare_command_bar_visibility(
                options["target_user"],
                entity=options.get("entity"),
                context=options.get("context"),
                comparison_user_id=options.get("comparison_user"),
            )
        except ValueError as exc:
            raise CommandError(str(exc)) from exc

        if options["differences_only"]:
            result.commands = [
                command
                for command in result.commands
                if command.difference is not Difference.SAME
            ]

        if options["output_format"] == "json":
            output = json.dumps(result.to_dict(), indent=2)
        else:
            output = _render_table(result)

        if options["output_file"]:
            with open(options["output_file"], "w", encoding="utf-8") as f:
                f.write(output)
            self.stdout.write(
                self.style.SUCCESS(f"Comparison written to {options['output_file']}")
            )
        else:
            self.stdout.write(output)

        for notification in result.notifications:
            self.stderr.write(
                self.style.WARNING(f"[{notification['level']}] {notification['message']}")
            )


def _render_table(result) -> str:
    header = "  ".join(title.ljust(width) for _, title, width in TABLE_COLUMNS)
    lines = [header, "-" * len(header)]
    for command in result.commands:
        row = command.to_dict()
        cells = []
        for key, _, width in TABLE_COLUMNS:
            value = row[key]
            if isinstance(value, bool):
                value = "yes" if value else "no"
            cells.append(str(value)[:width].ljust(width))
        lines.append("  ".join(cells).rstrip())

    summary = result.summary
    lines.append("")
    lines.append(
        f"{summary.total_commands} command(s) on {summary.entity} {summary.context}: "
        f"{summary.only_current_user} only current, {summary.only_target_user} only target, "
        f"{summary.potential_differences} potential, {summary.same_visibility} same"
    )
    return "\n".join(lines)
