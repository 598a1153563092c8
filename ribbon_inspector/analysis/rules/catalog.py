"""
Well-known built-in rule ids.

Used when a rule reference cannot be resolved to its XML definition.
"""

import re

PRIVILEGE_BASED_RULES: dict[str, dict[str, str]] = {
    "Mscrm.CreateSelectedEntityPermission": {"privilege": "Create", "depth": "Basic"},
    "Mscrm.CanSavePrimary": {"privilege": "Write", "depth": "Basic"},
    "Mscrm.CanWritePrimary": {"privilege": "Write", "depth": "Basic"},
    "Mscrm.CanWriteSelected": {"privilege": "Write", "depth": "Basic"},
    "Mscrm.WritePrimaryEntityPermission": {"privilege": "Write", "depth": "Basic"},
    "Mscrm.WriteSelectedEntityPermission": {"privilege": "Write", "depth": "Basic"},
    "Mscrm.CanDeletePrimary": {"privilege": "Delete", "depth": "Basic"},
    "Mscrm.DeletePrimaryEntityPermission": {"privilege": "Delete", "depth": "Basic"},
    "Mscrm.DeleteSelectedEntityPermission": {"privilege": "Delete", "depth": "Basic"},
    "Mscrm.AssignSelectedEntityPermission": {"privilege": "Assign", "depth": "Basic"},
    "Mscrm.SharePrimaryPermission": {"privilege": "Share", "depth": "Basic"},
    "Mscrm.ShareSelectedEntityPermission": {"privilege": "Share", "depth": "Basic"},
    "Mscrm.ReadPrimaryEntityPermission": {"privilege": "Read", "depth": "Basic"},
    "Mscrm.ReadSelectedEntityPermission": {"privilege": "Read", "depth": "Basic"},
}

ALWAYS_HIDE_RULES = frozenset({"Mscrm.HideOnModern", "Mscrm.HideOnCommandBar"})

ALWAYS_SHOW_RULES = frozenset({"Mscrm.ShowOnlyOnModern"})

FORM_STATE_RULES: dict[str, str] = {
    "Mscrm.IsFormReadOnly": "ReadOnly",
    "Mscrm.IsFormCreate": "Create",
    "Mscrm.IsFormExisting": "Existing",
    "Mscrm.IsFormDisabled": "Disabled",
}

SELECTION_COUNT_RULES = frozenset(
    {
        "Mscrm.SelectionCountExactlyOne",
        "Mscrm.SelectionCountRule",
        "Mscrm.SelectionCountAtLeastOne",
        "Mscrm.NoRecordsSelected",
    }
)

ORG_SETTING_RULES = frozenset(
    {
        "Mscrm.IsSharepointEnabled",
        "Mscrm.IsSOPIntegrationEnabled",
        "Mscrm.IsFiscalCalendarDefined",
    }
)

MISC_PRIVILEGE_RULES: dict[str, str] = {
    "Mscrm.CanExportToExcel": "prvExportToExcel",
    "Mscrm.CanMailMerge": "prvMailMerge",
    "Mscrm.CanGoOffline": "prvGoOffline",
    "Mscrm.CanBulkDelete": "prvBulkDelete",
}

CUSTOM_RULE_PATTERN = re.compile(r"CustomRule", re.IGNORECASE)
VALUE_RULE_PATTERN = re.compile(r"ValueRule", re.IGNORECASE)
RECORD_PRIVILEGE_RULE_PATTERN = re.compile(r"RecordPrivilegeRule", re.IGNORECASE)

BUILTIN_NAMESPACE = "Mscrm."

# Explanations carried through to the comparison output.
REASON_ALWAYS_HIDE = "Rule always hides on modern UI"
REASON_ALWAYS_SHOW = "Rule always shows on modern UI"
REASON_FORM_STATE = "Form state rule: {state} (context-dependent)"
REASON_SELECTION_COUNT = "Selection count rule (context-dependent)"
REASON_ORG_SETTING = "Organization setting rule (applies to all users)"
REASON_MISC_PRIVILEGE = "Miscellaneous privilege: {privilege} (requires additional check)"
REASON_CUSTOM = "Custom JavaScript rule (cannot evaluate server-side)"
REASON_VALUE = "Value rule (depends on form field values)"
REASON_RECORD_PRIVILEGE = "Record privilege rule (depends on specific record ownership)"
REASON_UNKNOWN = "Custom/unknown rule - cannot evaluate"
REASON_OTHER_ENTITY = "Privilege rule targets {entity} (not evaluated against this entity)"
REASON_PARSE_ERROR = "Rule definition could not be parsed"
