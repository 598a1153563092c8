"""
Unit tests for the command context heuristic and the standard command catalog.
"""

import pytest

from ribbon_inspector.analysis.ribbon.context import (
    CommandContext,
    command_matches_context,
    normalize_context,
)
from ribbon_inspector.analysis.ribbon.standard_commands import (
    STANDARD_COMMANDS,
    commands_for_context,
    misc_privileges_for_context,
)

pytestmark = pytest.mark.unit


@pytest.mark.parametrize(
    "value,expected",
    [
        ("Form", "Form"),
        ("homepagegrid", "HomePageGrid"),
        ("Home Page Grid", "HomePageGrid"),
        ("grid", "HomePageGrid"),
        (CommandContext.SUB_GRID, "SubGrid"),
        ("Dashboard", None),
        (None, None),
    ],
)
def test_normalize_context(value, expected):
    assert normalize_context(value) == expected


@pytest.mark.parametrize(
    "identifier,context,expected",
    [
        ("Mscrm.Form.account.Save", "Form", True),
        ("Mscrm.SavePrimary", "Form", True),
        ("Mscrm.SubGrid.contact.AddNew", "Form", False),
        ("Mscrm.SubGrid.contact.AddNew", "SubGrid", True),
        ("Mscrm.AddExistingAssociated", "SubGrid", True),
        ("Mscrm.Grid.DeleteSelected", "SubGrid", True),
        ("Mscrm.HomepageGrid.account.DeleteSelected", "SubGrid", False),
        ("Mscrm.HomepageGrid.account.Export", "HomePageGrid", True),
        ("Mscrm.Form.account.Save", "HomePageGrid", False),
    ],
)
def test_command_matches_context(identifier, context, expected):
    assert command_matches_context(identifier, context) is expected


def test_identifiers_with_several_markers_match_several_contexts():
    identifier = "Mscrm.Form.account.ShareSelected"
    assert command_matches_context(identifier, "Form")
    assert command_matches_context(identifier, "HomePageGrid")


def test_unknown_context_matches_everything():
    assert command_matches_context("Mscrm.SubGrid.contact.AddNew", "Dashboard")


def test_standard_commands_are_unique_per_context():
    keys = [(command.id, command.context) for command in STANDARD_COMMANDS]
    assert len(keys) == len(set(keys))


def test_commands_for_context():
    form_ids = {command.id for command in commands_for_context("Form")}
    assert "Mscrm.SavePrimaryRecord" in form_ids
    assert "Mscrm.NewRecordFromGrid" not in form_ids
    assert all(command.context == "SubGrid" for command in commands_for_context("SubGrid"))


def test_misc_privileges_for_context():
    assert misc_privileges_for_context("HomePageGrid") == [
        "prvExportToExcel",
        "prvImportExportData",
    ]
    assert misc_privileges_for_context("Form") == []


def test_standard_command_rules():
    export = next(command for command in STANDARD_COMMANDS if command.id == "Mscrm.ExportToExcel")
    assert export.rules == ["Read", "prvExportToExcel"]
    queue = next(command for command in STANDARD_COMMANDS if command.id == "Mscrm.AddToQueue")
    assert queue.rules == ["Write", "IsValidForQueue"]
