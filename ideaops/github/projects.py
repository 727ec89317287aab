"""GitHub Project (v2) board access for lifecycle status.

The board's field schema is read from a locally cached snapshot
(``.repo/projects.json``) so that human-readable names like "Status" and
"Ticketed" can be turned into the node ids the GraphQL API expects. Item
values are looked up live. The snapshot may be stale; every failure here is
turned into a message with a remediation hint instead of an exception, so the
caller can still report the local side of a plan.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import requests
from github.GithubException import GithubException

from ideaops.github.client import GitHubClient, GraphQLError

logger = logging.getLogger(__name__)

SNAPSHOT_RELATIVE_PATH = Path(".repo") / "projects.json"

REFRESH_HINT = "Re-run the project cache refresh to update .repo/projects.json."
SCOPE_HINT = "Check that the GitHub token is valid and has the 'project' scope."

ITEMS_QUERY = """
query($projectId: ID!, $after: String) {
  node(id: $projectId) {
    ... on ProjectV2 {
      items(first: 50, after: $after) {
        nodes {
          id
          content {
            __typename
            ... on Issue { number title }
            ... on PullRequest { number title }
          }
          fieldValues(first: 50) {
            nodes {
              __typename
              ... on ProjectV2ItemFieldTextValue { text field { ... on ProjectV2FieldCommon { id name } } }
              ... on ProjectV2ItemFieldNumberValue { number field { ... on ProjectV2FieldCommon { id name } } }
              ... on ProjectV2ItemFieldSingleSelectValue { name optionId field { ... on ProjectV2FieldCommon { id name } } }
              ... on ProjectV2ItemFieldDateValue { date field { ... on ProjectV2FieldCommon { id name } } }
              ... on ProjectV2ItemFieldIterationValue { title field { ... on ProjectV2FieldCommon { id name } } }
            }
          }
        }
        pageInfo { hasNextPage endCursor }
      }
    }
  }
}
"""

UPDATE_SINGLE_SELECT_MUTATION = """
mutation($projectId: ID!, $itemId: ID!, $fieldId: ID!, $optionId: String!) {
  updateProjectV2ItemFieldValue(
    input: {
      projectId: $projectId
      itemId: $itemId
      fieldId: $fieldId
      value: { singleSelectOptionId: $optionId }
    }
  ) {
    projectV2Item { id }
  }
}
"""

# GraphQL __typename -> attribute holding the human-readable value
_VALUE_KEYS = {
    "ProjectV2ItemFieldSingleSelectValue": "name",
    "ProjectV2ItemFieldTextValue": "text",
    "ProjectV2ItemFieldNumberValue": "number",
    "ProjectV2ItemFieldDateValue": "date",
    "ProjectV2ItemFieldIterationValue": "title",
}


class ProjectLookupError(Exception):
    """The snapshot or the board could not answer a lookup."""


@dataclass
class FieldOption:
    id: str
    name: str


@dataclass
class ProjectField:
    id: str
    name: str
    type: str = ""
    options: list[FieldOption] = field(default_factory=list)

    def option(self, name: str) -> FieldOption | None:
        wanted = name.strip().casefold()
        return next((o for o in self.options if o.name.casefold() == wanted), None)


@dataclass
class ProjectSnapshot:
    """Cached copy of the board's field schema."""

    project_id: str
    fields: dict[str, ProjectField]
    path: Path | None = None
    title: str = ""
    url: str = ""

    def field(self, name: str) -> ProjectField | None:
        return self.fields.get(name)


@dataclass
class FieldValue:
    field_id: str
    name: str
    type: str
    value: Any
    option_id: str | None = None


@dataclass
class ProjectItem:
    id: str
    content: dict
    fields: dict[str, FieldValue]  # keyed by field id

    def value_of(self, field_id: str) -> Any:
        found = self.fields.get(field_id)
        return found.value if found else None


@dataclass
class ProjectLookup:
    item: ProjectItem | None
    status: str | None
    note: str


@dataclass
class StatusUpdateResult:
    updated: bool
    previous: str | None
    message: str


def load_project_cache(root: Path) -> ProjectSnapshot:
    """Read the cached project snapshot from the repository.

    Raises ProjectLookupError (with a refresh hint) when the file is missing
    or doesn't have the expected shape.
    """
    path = root / SNAPSHOT_RELATIVE_PATH
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        raise ProjectLookupError(f"Project cache not found at {path}. {REFRESH_HINT}") from None
    except (OSError, json.JSONDecodeError) as e:
        raise ProjectLookupError(f"Unable to read project cache {path}: {e}. {REFRESH_HINT}") from e
    return parse_project_snapshot(raw, path)


def parse_project_snapshot(raw: dict, path: Path | None = None) -> ProjectSnapshot:
    project = raw.get("project") if isinstance(raw, dict) else None
    if not isinstance(project, dict) or not project.get("id"):
        raise ProjectLookupError(f"Project cache is missing project.id. {REFRESH_HINT}")

    fields: dict[str, ProjectField] = {}
    for name, field_def in (project.get("fields") or {}).items():
        if not isinstance(field_def, dict) or not field_def.get("id"):
            continue
        fields[name] = ProjectField(
            id=field_def["id"],
            name=name,
            type=field_def.get("type", ""),
            options=[
                FieldOption(id=o["id"], name=o["name"])
                for o in field_def.get("options") or []
                if o.get("id") and o.get("name")
            ],
        )

    return ProjectSnapshot(
        project_id=str(project["id"]),
        fields=fields,
        path=path,
        title=project.get("title", ""),
        url=project.get("url", ""),
    )


def map_field_values(nodes: list[dict]) -> dict[str, FieldValue]:
    """Index an item's field values by field id."""
    values: dict[str, FieldValue] = {}
    for node in nodes or []:
        field_info = (node or {}).get("field") or {}
        field_id = field_info.get("id")
        if not field_id:
            continue
        typename = node.get("__typename", "")
        value_key = _VALUE_KEYS.get(typename)
        values[field_id] = FieldValue(
            field_id=field_id,
            name=field_info.get("name", ""),
            type=typename,
            value=node.get(value_key) if value_key else None,
            option_id=node.get("optionId") if typename == "ProjectV2ItemFieldSingleSelectValue" else None,
        )
    return values


class ProjectBoard:
    """Reads and writes project items through the GraphQL API."""

    def __init__(self, client: GitHubClient) -> None:
        self._client = client

    def find_item_by_field_value(
        self, project_id: str, field_id: str, value: str
    ) -> ProjectItem | None:
        """Page through the board for the item whose ``field_id`` equals ``value``."""
        cursor: str | None = None
        wanted = str(value).strip()

        while True:
            data = self._client.graphql(ITEMS_QUERY, {"projectId": project_id, "after": cursor})
            project = data.get("node")
            if not project:
                return None

            items = project.get("items") or {}
            for node in items.get("nodes") or []:
                values = map_field_values((node.get("fieldValues") or {}).get("nodes") or [])
                match = values.get(field_id)
                if match and str(match.value).strip() == wanted:
                    return ProjectItem(id=node["id"], content=node.get("content") or {}, fields=values)

            page_info = items.get("pageInfo") or {}
            if not page_info.get("hasNextPage"):
                return None
            cursor = page_info.get("endCursor")

    def update_single_select(
        self, project_id: str, item_id: str, field_id: str, option_id: str
    ) -> None:
        self._client.graphql(
            UPDATE_SINGLE_SELECT_MUTATION,
            {"projectId": project_id, "itemId": item_id, "fieldId": field_id, "optionId": option_id},
        )


def lookup_project_status(
    id: str,
    snapshot: ProjectSnapshot,
    board: ProjectBoard,
    id_field: str = "ID",
    status_field: str = "Status",
) -> ProjectLookup:
    """Find the board item for ``id`` and read its current status."""
    id_meta = snapshot.field(id_field)
    status_meta = snapshot.field(status_field)
    if not id_meta or not status_meta:
        return ProjectLookup(
            item=None,
            status=None,
            note=f"Project cache missing {id_field} or {status_field} field metadata. {REFRESH_HINT}",
        )

    try:
        item = board.find_item_by_field_value(snapshot.project_id, id_meta.id, id)
    except (GithubException, GraphQLError, requests.RequestException) as e:
        return ProjectLookup(item=None, status=None, note=describe_github_error(e))

    if item is None:
        return ProjectLookup(item=None, status=None, note=f"Project item for {id} not found.")

    status = item.value_of(status_meta.id)
    return ProjectLookup(item=item, status=status, note="Project item located.")


def ensure_project_status(
    id: str,
    status: str,
    snapshot: ProjectSnapshot | None,
    board: ProjectBoard | None,
    item: ProjectItem | None = None,
    id_field: str = "ID",
    status_field: str = "Status",
) -> StatusUpdateResult:
    """Make the board item's status equal ``status``.

    Performs at most one lookup and one mutation. Never raises for lookup or
    API failures; the returned message explains what happened.
    """
    if snapshot is None:
        return StatusUpdateResult(False, None, f"Project cache unavailable. {REFRESH_HINT}")
    if board is None:
        return StatusUpdateResult(
            False, None, "GitHub token not set (IDEAOPS_GITHUB_TOKEN); project status left unchanged."
        )

    id_meta = snapshot.field(id_field)
    status_meta = snapshot.field(status_field)
    if not id_meta or not status_meta:
        return StatusUpdateResult(
            False, None, f"Project cache missing {id_field} or {status_field} field metadata. {REFRESH_HINT}"
        )

    option = status_meta.option(status)
    if option is None:
        return StatusUpdateResult(
            False, None, f'Status option "{status}" not found in project cache. {REFRESH_HINT}'
        )

    try:
        if item is None:
            item = board.find_item_by_field_value(snapshot.project_id, id_meta.id, id)
        if item is None:
            return StatusUpdateResult(False, None, f"Project item for {id} not found.")

        previous = item.value_of(status_meta.id)
        if previous is not None and previous.casefold() == status.casefold():
            return StatusUpdateResult(False, previous, f"Project status already {status}.")

        board.update_single_select(snapshot.project_id, item.id, status_meta.id, option.id)
    except (GithubException, GraphQLError, requests.RequestException) as e:
        return StatusUpdateResult(False, None, describe_github_error(e))

    logger.info(f"Project status for {id} changed from {previous or 'unset'} to {status}")
    return StatusUpdateResult(True, previous, f"Project status updated to {status}.")


def describe_github_error(error: Exception) -> str:
    """Human-readable message with a remediation hint."""
    if isinstance(error, GithubException):
        if error.status in (401, 403):
            return f"GitHub rejected the request ({error.status}). {SCOPE_HINT}"
        message = error.data.get("message") if isinstance(error.data, dict) else None
        return f"GitHub API error ({error.status}): {message or error}. {SCOPE_HINT}"
    if isinstance(error, GraphQLError):
        return f"GitHub GraphQL error: {error}. {REFRESH_HINT}"
    return f"GitHub unreachable: {error}. Check your network connection and retry."
