"""Which fields a cloned deal or task inherits from its source.

The exclusion lists are plain frozensets so they can be reviewed, extended
and tested without touching the clone logic.
"""

from typing import Any

from deal_transfer.domain.entities.base import positive_id

# Assigned by Bitrix24; copying them aliases the clone onto the source's
# pipeline position or collides with its identity.
DEAL_IDENTITY_FIELDS = frozenset({
    "ID",
    "CATEGORY_ID",
    "STAGE_ID",
})

# Lifecycle and provenance fields dropped in strict mode.
DEAL_LIFECYCLE_FIELDS = frozenset({
    "DATE_CREATE",
    "DATE_MODIFY",
    "CREATED_BY_ID",
    "MODIFY_BY_ID",
    "BEGINDATE",
    "CLOSEDATE",
    "CLOSED",
    "IS_NEW",
    "STAGE_SEMANTIC_ID",
    "IS_RETURN_CUSTOMER",
    "IS_REPEATED_APPROACH",
    "ORIGINATOR_ID",
    "ORIGIN_ID",
    "LEAD_ID",
    "MOVED_BY_ID",
    "MOVED_TIME",
    "LAST_ACTIVITY_TIME",
    "LAST_ACTIVITY_BY",
    "LAST_COMMUNICATION_TIME",
})

DEAL_TAG_PREFIX = "D_"


def excluded_deal_fields(strict: bool = True) -> frozenset[str]:
    """Field names never copied from a source deal."""
    if strict:
        return DEAL_IDENTITY_FIELDS | DEAL_LIFECYCLE_FIELDS
    return DEAL_IDENTITY_FIELDS


def deal_tag(deal_id: Any) -> str:
    """Back-reference tag stored in UF_CRM_TASK, e.g. ``D_123``."""
    return f"{DEAL_TAG_PREFIX}{deal_id}"


def stage_for_category(category_id: int, stage_status: str) -> str:
    """Full STAGE_ID for a status inside a pipeline.

    The general pipeline (0) uses bare status ids, the others are
    prefixed: ``C5:NEW``.
    """
    if int(category_id) == 0:
        return stage_status
    return f"C{category_id}:{stage_status}"


def clone_title(title: str | None, suffix: str = "") -> str:
    """Title the clone of a deal titled ``title`` gets."""
    title = (title or "").strip()
    if not suffix:
        return title
    return f"{title} {suffix}".strip()


def resolve_responsible(value: Any, default_id: int) -> int:
    """Responsible user id, or the configured default when not a positive id."""
    return positive_id(value) or default_id


def build_clone_fields(
    source: dict[str, Any],
    target_category_id: int,
    *,
    strict: bool = True,
    initial_stage: str = "",
    title_suffix: str = "",
    default_responsible_id: int | None = None,
) -> dict[str, Any]:
    """Build the field set of a new deal from a source deal.

    Everything except the excluded fields is copied, UF_* user fields
    included. The category is always the target, never the source's.
    """
    excluded = excluded_deal_fields(strict)
    fields = {key: value for key, value in source.items() if key.upper() not in excluded}

    fields["CATEGORY_ID"] = target_category_id
    if initial_stage:
        fields["STAGE_ID"] = stage_for_category(target_category_id, initial_stage)
    if title_suffix:
        fields["TITLE"] = clone_title(source.get("TITLE"), title_suffix)
    if default_responsible_id is not None:
        fields["ASSIGNED_BY_ID"] = resolve_responsible(
            source.get("ASSIGNED_BY_ID"), default_responsible_id
        )

    return fields
