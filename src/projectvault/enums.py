# Project Vault - Stored Enumerations
#
# Values are persisted as text in SQLite and written verbatim into
# contents.yaml, so renaming a value breaks existing archives.

from enum import Enum
from typing import Dict, List


class Environment(str, Enum):
    """Deployment context of a server, server link or note."""

    DEVELOPMENT = "EnvDevelopment"
    STAGE = "EnvStage"
    UAT = "EnvUat"
    PROD = "EnvProd"

    @property
    def flag_column(self) -> str:
        """Presence flag column on project / project_note rows."""
        return ENV_FLAG_COLUMNS[self]

    @property
    def short_name(self) -> str:
        return ENV_SHORT_NAMES[self]


# Import order: shared notes carry their contents in the earliest environment.
ENVIRONMENT_ORDER: List[Environment] = [
    Environment.DEVELOPMENT,
    Environment.STAGE,
    Environment.UAT,
    Environment.PROD,
]

ENV_FLAG_COLUMNS: Dict[Environment, str] = {
    Environment.DEVELOPMENT: "has_dev",
    Environment.STAGE: "has_stage",
    Environment.UAT: "has_uat",
    Environment.PROD: "has_prod",
}

ENV_SHORT_NAMES: Dict[Environment, str] = {
    Environment.DEVELOPMENT: "dev",
    Environment.STAGE: "stg",
    Environment.UAT: "uat",
    Environment.PROD: "prod",
}


class InterestType(str, Enum):
    """What a point of interest points at."""

    APPLICATION = "PoiApplication"
    LOG_FILE = "PoiLogFile"
    CONFIG_FILE = "PoiConfigFile"
    COMMAND_TO_RUN = "PoiCommandToRun"
    COMMAND_TERMINAL = "PoiCommandTerminal"
    BACKUP_ARCHIVE = "PoiBackupArchive"


class ServerType(str, Enum):
    DATABASE = "SrvDatabase"
    APPLICATION = "SrvApplication"
    HTTP_OR_PROXY = "SrvHttpOrProxy"
    MONITORING = "SrvMonitoring"
    REPORTING = "SrvReporting"


class ServerAccessType(str, Enum):
    SSH = "SrvAccessSsh"
    RDP = "SrvAccessRdp"
    WWW = "SrvAccessWww"
    SSH_TUNNEL = "SrvAccessSshTunnel"


class RunOn(str, Enum):
    """Where a server point of interest command runs."""

    SERVER = "RunOnServer"
    CLIENT = "RunOnClient"
