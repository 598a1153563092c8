"""
Built-in command bar commands with known privilege requirements.

These are hand-curated: each command lists the entity privilege it needs
and, where relevant, a miscellaneous privilege or an entity metadata flag
that must be set for the command to appear.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class StandardCommand:
    id: str
    name: str
    required_privilege: str
    context: str
    description: str = ""
    misc_privilege: Optional[str] = None
    entity_property: Optional[str] = None
    selection_required: bool = False
    selection_count: Optional[int] = None
    entity_override: Optional[str] = None
    related_entity: Optional[str] = None

    @property
    def rules(self) -> list[str]:
        return [
            value
            for value in (self.required_privilege, self.misc_privilege, self.entity_property)
            if value
        ]


def _cmd(command_id: str, name: str, privilege: str, context: str, description: str, **extra) -> StandardCommand:
    return StandardCommand(
        id=f"Mscrm.{command_id}",
        name=name,
        required_privilege=privilege,
        context=context,
        description=description,
        **extra,
    )


FORM = "Form"
GRID = "HomePageGrid"
SUBGRID = "SubGrid"

STANDARD_COMMANDS: tuple[StandardCommand, ...] = (
    # Main form
    _cmd("SavePrimaryRecord", "Save", "Write", FORM, "Save the current record"),
    _cmd("SaveAndClose", "Save & Close", "Write", FORM, "Save and close the form"),
    _cmd("SaveAndNew", "Save & New", "Create", FORM, "Save current and create new record"),
    _cmd("DeletePrimaryRecord", "Delete", "Delete", FORM, "Delete the current record"),
    _cmd("AssignPrimaryRecord", "Assign", "Assign", FORM, "Assign the record to another user/team"),
    _cmd("SharePrimaryRecord", "Share", "Share", FORM, "Share the record with other users/teams"),
    _cmd("DeactivatePrimaryRecord", "Deactivate", "Write", FORM, "Deactivate the current record"),
    _cmd("ActivatePrimaryRecord", "Activate", "Write", FORM, "Activate an inactive record"),
    _cmd("RefreshPrimaryRecord", "Refresh", "Read", FORM, "Refresh form data"),
    _cmd(
        "Form.AddConnection", "Connect", "Append", FORM,
        "Add a connection to another record",
        entity_property="IsConnectionsEnabled",
    ),
    _cmd(
        "AddNoteFromForm", "Add Note", "Create", FORM,
        "Add a note to the record",
        entity_property="HasNotes",
        related_entity="annotation",
    ),
    _cmd(
        "AddActivityFromForm", "Add Activity", "Create", FORM,
        "Add an activity to the record",
        entity_property="HasActivities",
    ),
    _cmd("Form.EmailALink", "Email a Link", "Read", FORM, "Email a link to this record"),
    _cmd("Form.CopyShortcut", "Copy Link", "Read", FORM, "Copy record URL to clipboard"),
    _cmd("RunWorkflow", "Run Workflow", "Read", FORM, "Run a workflow on the record"),
    _cmd("Form.StartDialog", "Start Dialog", "Read", FORM, "Start a dialog process"),
    _cmd("Form.WordTemplates", "Word Templates", "Read", FORM, "Generate Word document from template"),
    _cmd("Form.ExcelTemplates", "Excel Templates", "Read", FORM, "Export to Excel template"),
    # Home page grid
    _cmd("NewRecordFromGrid", "New", "Create", GRID, "Create a new record"),
    _cmd(
        "DeleteSelectedRecord", "Delete", "Delete", GRID,
        "Delete selected record(s)", selection_required=True,
    ),
    _cmd(
        "EditSelectedRecord", "Edit", "Write", GRID,
        "Edit selected record", selection_required=True,
    ),
    _cmd(
        "ActivateSelectedRecord", "Activate", "Write", GRID,
        "Activate selected record(s)", selection_required=True,
    ),
    _cmd(
        "DeactivateSelectedRecord", "Deactivate", "Write", GRID,
        "Deactivate selected record(s)", selection_required=True,
    ),
    _cmd(
        "AssignSelectedRecord", "Assign", "Assign", GRID,
        "Assign selected record to user/team", selection_required=True,
    ),
    _cmd(
        "ShareSelectedRecord", "Share", "Share", GRID,
        "Share selected record with users/teams", selection_required=True,
    ),
    _cmd(
        "ExportToExcel", "Export to Excel", "Read", GRID,
        "Export grid data to Excel", misc_privilege="prvExportToExcel",
    ),
    _cmd(
        "ImportFromExcel", "Import from Excel", "Create", GRID,
        "Import data from Excel", misc_privilege="prvImportExportData",
    ),
    _cmd("RefreshGrid", "Refresh", "Read", GRID, "Refresh the grid data"),
    _cmd("OpenCharts", "Show Chart", "Read", GRID, "Show/hide chart pane"),
    _cmd(
        "Grid.RunWorkflow", "Run Workflow", "Read", GRID,
        "Run workflow on selected records", selection_required=True,
    ),
    _cmd(
        "Grid.AddConnection", "Connect", "Append", GRID,
        "Add connection to selected record",
        entity_property="IsConnectionsEnabled",
        selection_required=True,
    ),
    _cmd(
        "MergeSelectedRecord", "Merge", "Write", GRID,
        "Merge two records into one",
        selection_required=True,
        selection_count=2,
    ),
    _cmd(
        "Grid.EmailALink", "Email a Link", "Read", GRID,
        "Email a link to selected record", selection_required=True,
    ),
    _cmd(
        "Grid.CopyShortcut", "Copy Link", "Read", GRID,
        "Copy record URL to clipboard", selection_required=True,
    ),
    # Views
    _cmd("CreateView", "Create View", "Create", GRID, "Create a new personal view", entity_override="savedquery"),
    _cmd("EditView", "Edit View", "Write", GRID, "Edit the current view", entity_override="savedquery"),
    _cmd("DeleteView", "Delete View", "Delete", GRID, "Delete a personal view", entity_override="savedquery"),
    _cmd("SaveAsView", "Save View As", "Create", GRID, "Save current filters as a new view", entity_override="userquery"),
    # Sub-grid
    _cmd("AddNewRecordFromSubGrid", "Add New", "Create", SUBGRID, "Create a new related record"),
    _cmd("AddExistingRecordFromSubGrid", "Add Existing", "Append", SUBGRID, "Associate an existing record"),
    _cmd(
        "DeleteSelectedFromSubGrid", "Delete", "Delete", SUBGRID,
        "Delete selected related record", selection_required=True,
    ),
    _cmd(
        "RemoveSelectedFromSubGrid", "Remove", "Append", SUBGRID,
        "Remove record association (N:N)", selection_required=True,
    ),
    _cmd(
        "EditSelectedFromSubGrid", "Edit", "Write", SUBGRID,
        "Edit selected related record", selection_required=True,
    ),
    # Activities
    _cmd("CreateTask", "Task", "Create", GRID, "Create a new task", entity_override="task"),
    _cmd("CreateEmail", "Email", "Create", GRID, "Create a new email", entity_override="email"),
    _cmd("CreatePhoneCall", "Phone Call", "Create", GRID, "Create a new phone call", entity_override="phonecall"),
    _cmd("CreateAppointment", "Appointment", "Create", GRID, "Create a new appointment", entity_override="appointment"),
    _cmd("CreateLetter", "Letter", "Create", GRID, "Create a new letter", entity_override="letter"),
    _cmd("CreateFax", "Fax", "Create", GRID, "Create a new fax", entity_override="fax"),
    # Queues
    _cmd(
        "AddToQueue", "Add to Queue", "Write", GRID,
        "Add record to a queue",
        entity_property="IsValidForQueue",
        selection_required=True,
    ),
    _cmd(
        "RouteToQueue", "Route", "Write", GRID,
        "Route record to a queue",
        entity_property="IsValidForQueue",
        selection_required=True,
    ),
    _cmd(
        "PickFromQueue", "Pick", "Write", GRID,
        "Pick item from queue to work on",
        entity_property="IsValidForQueue",
        selection_required=True,
    ),
    _cmd(
        "ReleaseToQueue", "Release", "Write", GRID,
        "Release item back to queue",
        entity_property="IsValidForQueue",
        selection_required=True,
    ),
    # Reports and documents
    _cmd("RunReport", "Run Report", "Read", GRID, "Run a report"),
    _cmd("Form.RunReport", "Run Report", "Read", FORM, "Run a report from form"),
    _cmd(
        "MailMerge", "Mail Merge", "Read", GRID,
        "Perform mail merge", entity_property="IsMailMergeEnabled",
    ),
    # Duplicate detection
    _cmd(
        "DetectDuplicates", "Detect Duplicates", "Read", GRID,
        "Detect duplicate records", entity_property="IsDuplicateDetectionEnabled",
    ),
    _cmd(
        "Form.DetectDuplicates", "Detect Duplicates", "Read", FORM,
        "Detect duplicates of current record", entity_property="IsDuplicateDetectionEnabled",
    ),
)

# Entity metadata flags read for the property gates above.
ENTITY_PROPERTIES_FOR_COMMANDS: tuple[str, ...] = (
    "HasNotes",
    "HasActivities",
    "IsConnectionsEnabled",
    "IsValidForQueue",
    "IsMailMergeEnabled",
    "IsDuplicateDetectionEnabled",
    "IsActivity",
    "IsValidForAdvancedFind",
)

# Flags that default to true when the metadata omits them.
ENTITY_PROPERTY_DEFAULTS: dict[str, bool] = {"IsValidForAdvancedFind": True}


def commands_for_context(context: str) -> list[StandardCommand]:
    return [command for command in STANDARD_COMMANDS if command.context == context]


def misc_privileges_for_context(context: str) -> list[str]:
    """Distinct miscellaneous privileges declared by commands in ``context``."""
    seen: list[str] = []
    for command in commands_for_context(context):
        if command.misc_privilege and command.misc_privilege not in seen:
            seen.append(command.misc_privilege)
    return seen
