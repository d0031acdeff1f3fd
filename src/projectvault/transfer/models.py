# Project Vault - Archive Document Model
#
# Pydantic models mirroring the persisted schema. One ProjectDoc is the
# in-memory form of the contents.yaml file at the root of an archive:
#
#   project_name
#   development_environment / staging_environment / uat_environment /
#   prod_environment
#       items:            ProjectGroupDoc  (ungrouped bucket)
#       items_in_groups:  {group_name: ProjectGroupDoc}
#
# References between entities use ServerPath / ServerDatabasePath: either a
# direct id (only meaningful in the storage the archive came from) or a
# descriptive path (project name + environment + description).

from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple

import yaml
from pydantic import (
    BaseModel,
    Field,
    StrictBool,
    StrictInt,
    StrictStr,
    ValidationError,
    ValidationInfo,
    field_validator,
    model_validator,
)

from ..enums import (
    ENVIRONMENT_ORDER,
    Environment,
    InterestType,
    RunOn,
    ServerAccessType,
    ServerType,
)
from ..errors import DocumentError

CONTENTS_FILENAME = "contents.yaml"
ICON_FILENAME = "icon.png"

ENV_DOC_KEYS: Dict[Environment, str] = {
    Environment.DEVELOPMENT: "development_environment",
    Environment.STAGE: "staging_environment",
    Environment.UAT: "uat_environment",
    Environment.PROD: "prod_environment",
}


class _DocModel(BaseModel):
    """Base for every node of the document: unknown keys are rejected."""

    model_config = {"extra": "forbid"}

    @field_validator("*", mode="before")
    @classmethod
    def null_is_empty(cls, value: Any, info: ValidationInfo) -> Any:
        # "items:" with nothing below it loads as None
        factory = cls.model_fields[info.field_name].default_factory
        if value is None and factory is not None:
            return factory()
        return value


# ---------------------------------------------------------------------------
# References
# ---------------------------------------------------------------------------


class ServerPath(_DocModel):
    """Reference to a server: direct id, or project + environment + desc."""

    project_name: StrictStr
    environment: Environment
    server_id: Optional[StrictInt] = None
    server_desc: Optional[StrictStr] = None

    @model_validator(mode="after")
    def validate_target(self) -> "ServerPath":
        if self.server_id is None and self.server_desc is None:
            raise ValueError("needs either server_id or server_desc")
        return self

    @property
    def is_direct(self) -> bool:
        return self.server_id is not None

    def describe(self) -> str:
        if self.is_direct:
            return f"server #{self.server_id}"
        return f"{self.project_name}/{self.environment.short_name}/{self.server_desc}"


class ServerDatabasePath(_DocModel):
    """Reference to a server database.

    The database level and the server level each carry either an id or a
    description. The server level is only needed without a database id.
    """

    project_name: StrictStr
    environment: Environment
    database_id: Optional[StrictInt] = None
    database_desc: Optional[StrictStr] = None
    server_id: Optional[StrictInt] = None
    server_desc: Optional[StrictStr] = None

    @model_validator(mode="after")
    def validate_target(self) -> "ServerDatabasePath":
        if self.database_id is None:
            if self.database_desc is None:
                raise ValueError("needs either database_id or database_desc")
            if self.server_id is None and self.server_desc is None:
                raise ValueError("needs either server_id or server_desc")
        return self

    @property
    def is_direct(self) -> bool:
        return self.database_id is not None

    def server_path(self) -> ServerPath:
        return ServerPath(
            project_name=self.project_name,
            environment=self.environment,
            server_id=self.server_id,
            server_desc=self.server_desc,
        )

    def describe(self) -> str:
        if self.is_direct:
            return f"database #{self.database_id}"
        return f"{self.server_path().describe()}/{self.database_desc}"


# ---------------------------------------------------------------------------
# Server-scoped items
# ---------------------------------------------------------------------------


class ServerDatabaseDoc(_DocModel):
    desc: StrictStr
    name: StrictStr = ""
    text: StrictStr = ""
    username: StrictStr = ""
    password: StrictStr = ""


class ServerNoteDoc(_DocModel):
    title: StrictStr
    contents: StrictStr = ""


class ServerPoiDoc(_DocModel):
    desc: StrictStr
    path: StrictStr = ""
    text: StrictStr = ""
    interest_type: InterestType = InterestType.APPLICATION
    run_on: RunOn = RunOn.SERVER


class ServerExtraUserDoc(_DocModel):
    desc: StrictStr
    username: StrictStr = ""
    password: StrictStr = ""
    auth_key: Optional[bytes] = None
    auth_key_filename: Optional[StrictStr] = None


class ServerWebsiteDoc(_DocModel):
    desc: StrictStr
    url: StrictStr = ""
    text: StrictStr = ""
    username: StrictStr = ""
    password: StrictStr = ""
    server_database: Optional[ServerDatabasePath] = None


class ServerGroupDoc(_DocModel):
    """Items of one server that share a group (or are ungrouped)."""

    server_websites: List[ServerWebsiteDoc] = Field(default_factory=list)
    server_pois: List[ServerPoiDoc] = Field(default_factory=list)
    server_databases: List[ServerDatabaseDoc] = Field(default_factory=list)
    server_extra_users: List[ServerExtraUserDoc] = Field(default_factory=list)
    server_notes: List[ServerNoteDoc] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.server_websites or self.server_pois or self.server_databases
                    or self.server_extra_users or self.server_notes)


class ServerInfoDoc(_DocModel):
    """The server row itself."""

    desc: StrictStr
    is_retired: StrictBool = False
    ip: StrictStr = ""
    text: StrictStr = ""
    username: StrictStr = ""
    password: StrictStr = ""
    auth_key: Optional[bytes] = None
    auth_key_filename: Optional[StrictStr] = None
    server_type: ServerType = ServerType.APPLICATION
    access_type: ServerAccessType = ServerAccessType.SSH


class ServerDoc(_DocModel):
    """A server with all of its child items."""

    server: ServerInfoDoc
    items: ServerGroupDoc = Field(default_factory=ServerGroupDoc)
    items_in_groups: Dict[StrictStr, ServerGroupDoc] = Field(default_factory=dict)

    def iter_groups(self) -> Iterator[Tuple[Optional[str], ServerGroupDoc]]:
        """Ungrouped bucket first, then named groups in document order."""
        yield None, self.items
        for name, group in self.items_in_groups.items():
            yield name, group


# ---------------------------------------------------------------------------
# Project-level items
# ---------------------------------------------------------------------------


class ProjectPoiDoc(_DocModel):
    desc: StrictStr
    path: StrictStr = ""
    text: StrictStr = ""
    interest_type: InterestType = InterestType.APPLICATION
    # Set on every occurrence after the first: the POI is project-wide.
    shared_with_other_environments: Optional[StrictStr] = None


class ProjectNoteDoc(_DocModel):
    title: StrictStr
    contents: StrictStr = ""
    # Title of the note whose contents were written in an earlier environment.
    shared_with_other_environments: Optional[StrictStr] = None

    @property
    def is_shared_marker(self) -> bool:
        return self.shared_with_other_environments is not None


class ServerLinkDoc(_DocModel):
    desc: StrictStr
    server: ServerPath


class ProjectGroupDoc(_DocModel):
    """Project-level items of one environment that share a group."""

    project_pois: List[ProjectPoiDoc] = Field(default_factory=list)
    project_notes: List[ProjectNoteDoc] = Field(default_factory=list)
    server_links: List[ServerLinkDoc] = Field(default_factory=list)
    servers: List[ServerDoc] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.project_pois or self.project_notes
                    or self.server_links or self.servers)


class ProjectEnvDoc(_DocModel):
    items: ProjectGroupDoc = Field(default_factory=ProjectGroupDoc)
    items_in_groups: Dict[StrictStr, ProjectGroupDoc] = Field(default_factory=dict)

    def iter_groups(self) -> Iterator[Tuple[Optional[str], ProjectGroupDoc]]:
        """Ungrouped bucket first, then named groups in document order."""
        yield None, self.items
        for name, group in self.items_in_groups.items():
            yield name, group


class ProjectDoc(_DocModel):
    """Snapshot of one project, as stored in contents.yaml."""

    project_name: StrictStr
    development_environment: Optional[ProjectEnvDoc] = None
    staging_environment: Optional[ProjectEnvDoc] = None
    uat_environment: Optional[ProjectEnvDoc] = None
    prod_environment: Optional[ProjectEnvDoc] = None

    @field_validator("project_name")
    @classmethod
    def validate_project_name(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be empty")
        return v

    def get_environment(self, env: Environment) -> Optional[ProjectEnvDoc]:
        return getattr(self, ENV_DOC_KEYS[env])

    def set_environment(self, env: Environment, env_doc: Optional[ProjectEnvDoc]):
        setattr(self, ENV_DOC_KEYS[env], env_doc)

    def environments(self) -> List[Tuple[Environment, ProjectEnvDoc]]:
        """Present environments, in import order."""
        result = []
        for env in ENVIRONMENT_ORDER:
            env_doc = self.get_environment(env)
            if env_doc is not None:
                result.append((env, env_doc))
        return result


# ---------------------------------------------------------------------------
# YAML codec
# ---------------------------------------------------------------------------


class _DocumentDumper(yaml.SafeDumper):
    """SafeDumper writing enum members as their stored text value."""


_DocumentDumper.add_multi_representer(
    Enum, lambda dumper, value: dumper.represent_str(value.value)
)


def _describe_errors(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        where = ".".join(str(part) for part in item["loc"]) or "document"
        message = f"{where}: {item['msg']}"
        if isinstance(item.get("input"), (str, int, float)):
            message += f" (got {item['input']!r})"
        parts.append(message)
    return "; ".join(parts)


def dump_document(doc: ProjectDoc) -> str:
    """Serialize a project snapshot to YAML text.

    Python-mode dump keeps auth keys as bytes, written as !!binary.
    """
    return yaml.dump(
        doc.model_dump(exclude_none=True),
        Dumper=_DocumentDumper,
        sort_keys=False,
        allow_unicode=True,
        default_flow_style=False,
    )


def load_document(text: str) -> ProjectDoc:
    """Parse contents.yaml text; raises DocumentError if malformed."""
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise DocumentError(f"contents.yaml is not valid YAML: {e}") from e
    try:
        return ProjectDoc.model_validate(data)
    except ValidationError as e:
        raise DocumentError(f"contents.yaml is malformed: {_describe_errors(e)}") from e
