"""
Workflow Config — Parses the section/key config file that drives an extraction.

The file looks like YAML but is read line by line so that stage order and
line numbers in error messages are preserved:

    ---
    Connection:
      Domain: https://www1.example.com/Company
      Username: jane
      Password: secret

    Criteria:
      Scopes: Team Alpha, Team Beta
      Timeboxes: Sprint 12
      Themes: Billing

    Workflow:
      Backlog: (Created), Future
      Ready: Ready
      In Progress: In Progress, Blocked
      Done: Done, Accepted

    Attributes:
      Project: Scope
      Sprint: Timebox
      Epic: Theme
      Risk: Custom_Risk

Rules:
  - "---" lines, "#" comment lines and blank lines are ignored.
  - A line that is not indented opens a section. Only the sections in
    Section are allowed.
  - Indented "key: value" lines belong to the current section.
  - Workflow keys are stage names in pipeline order; each value lists the raw
    status labels for that stage. "(Created)" marks the first stage as entered
    on creation and is rejected anywhere else.
  - Attribute values must be a FieldKind (Scope, Timebox, Theme) or an
    external "Custom_<Name>" field.

Any violation raises ConfigError naming the 1-based line number. The
orchestrator reports these before any network call is made.
"""

import base64
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from .models import AttributeSchema, AttributeSpec, FieldKind, StageSchema

CREATED_LABEL = "(created)"


class ConfigError(ValueError):
    """Raised when the workflow config file cannot be used."""


class Section(Enum):
    CONNECTION = "Connection"
    CRITERIA = "Criteria"
    WORKFLOW = "Workflow"
    ATTRIBUTES = "Attributes"


class ConnectionKey(Enum):
    DOMAIN = "Domain"
    USERNAME = "Username"
    PASSWORD = "Password"


class CriteriaKey(Enum):
    SCOPES = "Scopes"
    TIMEBOXES = "Timeboxes"
    THEMES = "Themes"


def _member(enum_cls, value: str):
    try:
        return enum_cls(value)
    except ValueError:
        return None


@dataclass
class WorkflowConfig:
    """Everything read from the config file.

    Attributes:
        domain: Base URL of the tracking server.
        username: Login name for basic auth.
        password: Password, possibly empty until the orchestrator fills it in.
        scope_names: Scope (project) filter values.
        timebox_names: Timebox (sprint) filter values.
        themes: Theme (parent hierarchy) filter values.
        stages: Ordered stage schema.
        attributes: Ordered attribute columns.
    """

    domain: str
    username: str
    password: str = ""
    scope_names: List[str] = field(default_factory=list)
    timebox_names: List[str] = field(default_factory=list)
    themes: List[str] = field(default_factory=list)
    stages: StageSchema = field(default_factory=lambda: StageSchema(names=()))
    attributes: AttributeSchema = field(default_factory=AttributeSchema)

    def get_credentials(self) -> str:
        """Return the base64 "username:password" string for a Basic auth header.

        Raises:
            ConfigError: If no password is available.
        """
        if not self.password:
            raise ConfigError("Missing password")
        raw = f"{self.username}:{self.password}".encode("utf-8")
        return base64.b64encode(raw).decode("ascii")


def parse_list(comma_delimited: str) -> List[str]:
    """Split a comma list and trim each entry."""
    return [part.strip() for part in comma_delimited.split(",")]


def load_config_from_lines(lines: List[str]) -> WorkflowConfig:
    """Parse config file lines into a WorkflowConfig.

    Raises:
        ConfigError: On an unknown section, key or attribute kind, a misplaced
            "(Created)", a duplicate stage or status label, or a missing
            required property.
    """
    properties: Dict[str, str] = {}
    stage_names: List[str] = []
    label_map: Dict[str, int] = {}
    created_in_first_stage = False
    attributes: List[AttributeSpec] = []
    section: Optional[Section] = None

    for number, line in enumerate(lines, start=1):
        stripped = line.strip()
        if not stripped or line.startswith("---") or stripped.startswith("#"):
            continue

        if ":" not in line:
            raise ConfigError(f"Expected 'key: value' at line {number}")
        key, value = (part.strip() for part in line.split(":", 1))
        if not key:
            continue

        if line[0] not in (" ", "\t"):
            section = _member(Section, key)
            if section is None:
                raise ConfigError(f"Unexpected section {key} at line {number}")
            continue

        if section is Section.CONNECTION:
            if _member(ConnectionKey, key) is None:
                raise ConfigError(f"Unexpected property {key} at line {number}")
            properties[key] = value

        elif section is Section.CRITERIA:
            if _member(CriteriaKey, key) is None:
                raise ConfigError(f"Unexpected property {key} at line {number}")
            properties[key] = value

        elif section is Section.WORKFLOW:
            if key in stage_names:
                raise ConfigError(f"Duplicate stage {key} at line {number}")
            stage_index = len(stage_names)
            stage_names.append(key)
            for label in parse_list(value):
                if not label:
                    continue
                if label.lower() == CREATED_LABEL:
                    if stage_index != 0:
                        raise ConfigError(
                            f"(Created) cannot be used in non-first stage {key} at line {number}"
                        )
                    created_in_first_stage = True
                elif label in label_map and label_map[label] != stage_index:
                    raise ConfigError(
                        f"Status {label} mapped to more than one stage at line {number}"
                    )
                else:
                    label_map[label] = stage_index

        elif section is Section.ATTRIBUTES:
            kind = FieldKind.parse(value)
            if kind is None:
                raise ConfigError(f"Unknown attribute {value} at line {number}")
            attributes.append(AttributeSpec(column=key, kind=kind, field_name=value))

        else:
            raise ConfigError(f"Can't parse config file at line {number} (extra indent?)")

    domain = properties.get(ConnectionKey.DOMAIN.value, "").rstrip("/")
    if not domain:
        raise ConfigError('Config file has no property "Domain"')
    username = properties.get(ConnectionKey.USERNAME.value, "")
    if not username:
        raise ConfigError('Config file has no property "Username"')
    if not stage_names:
        raise ConfigError('Config file has no stages in section "Workflow"')

    config = WorkflowConfig(
        domain=domain,
        username=username,
        password=properties.get(ConnectionKey.PASSWORD.value, ""),
        stages=StageSchema(
            names=tuple(stage_names),
            label_map=label_map,
            created_in_first_stage=created_in_first_stage,
        ),
        attributes=AttributeSchema(tuple(attributes)),
    )

    if CriteriaKey.SCOPES.value in properties:
        config.scope_names = parse_list(properties[CriteriaKey.SCOPES.value])
    if CriteriaKey.TIMEBOXES.value in properties:
        config.timebox_names = parse_list(properties[CriteriaKey.TIMEBOXES.value])
    if CriteriaKey.THEMES.value in properties:
        config.themes = parse_list(properties[CriteriaKey.THEMES.value])

    return config


def load_config_from_file(path: str) -> WorkflowConfig:
    """Read and parse a config file.

    Raises:
        OSError: If the file cannot be read.
        ConfigError: If its contents are invalid.
    """
    with open(path, "r", encoding="utf-8-sig") as f:
        lines = f.read().splitlines()
    return load_config_from_lines(lines)
