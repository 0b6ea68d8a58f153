"""Constants and enumerations for buildsvc."""

from __future__ import annotations

from enum import Enum

__all__ = [
    "BROKEN_SENTINEL",
    "FLAG_DEFAULTS",
    "PROJECT_META_PACKAGE",
    "CommandScope",
    "EntityType",
    "FlagKind",
    "FlagStatus",
    "HistoryKind",
    "RefState",
    "ReleaseTrigger",
    "RepairMode",
    "RequestState",
    "Role",
    "SagaState",
    "Verb",
]

# Wire value written into both project and repository fields of a broken edge
BROKEN_SENTINEL = "deleted"

# Reserved package name that addresses the project itself
PROJECT_META_PACKAGE = "_project"


class FlagKind(str, Enum):
    """Flag kinds attachable to projects and packages."""

    BUILD = "build"
    PUBLISH = "publish"
    DEBUGINFO = "debuginfo"
    USEFORBUILD = "useforbuild"
    BINARYDOWNLOAD = "binarydownload"
    SOURCEACCESS = "sourceaccess"
    ACCESS = "access"
    LOCK = "lock"


class FlagStatus(str, Enum):
    """Flag rule status."""

    ENABLE = "enable"
    DISABLE = "disable"


FLAG_DEFAULTS: dict[FlagKind, FlagStatus] = {
    FlagKind.BUILD: FlagStatus.ENABLE,
    FlagKind.PUBLISH: FlagStatus.ENABLE,
    FlagKind.DEBUGINFO: FlagStatus.DISABLE,
    FlagKind.USEFORBUILD: FlagStatus.ENABLE,
    FlagKind.BINARYDOWNLOAD: FlagStatus.ENABLE,
    FlagKind.SOURCEACCESS: FlagStatus.ENABLE,
    FlagKind.ACCESS: FlagStatus.ENABLE,
    FlagKind.LOCK: FlagStatus.DISABLE,
}


class ReleaseTrigger(str, Enum):
    """Release target trigger modes."""

    MANUAL = "manual"
    MAINTENANCE = "maintenance"
    ALLSUCCEEDED = "allsucceeded"


class RefState(str, Enum):
    """Resolution state of a path element or release target."""

    LINKED = "linked"
    BROKEN = "broken"
    DANGLING = "dangling"


class RepairMode(str, Enum):
    """How edges pointing at removed repositories are repaired."""

    RETARGET_TO_SENTINEL = "retarget_to_sentinel"
    FULL_REMOVE = "full_remove"


class Role(str, Enum):
    """Roles a user can hold on a project or package."""

    MAINTAINER = "maintainer"
    BUGOWNER = "bugowner"
    REVIEWER = "reviewer"
    READER = "reader"


class EntityType(str, Enum):
    """History entity types."""

    PROJECT = "project"
    PACKAGE = "package"


class HistoryKind(str, Enum):
    """Kinds of recorded state changes."""

    META = "meta"
    DELETE = "delete"
    UNDELETE = "undelete"
    BRANCH = "branch"
    COPY = "copy"
    RELEASE = "release"
    MOVE = "move"
    INSTANTIATE = "instantiate"
    FLAG = "flag"
    LOCK = "lock"
    UNLOCK = "unlock"
    CHANNEL = "channel"
    COMMIT = "commit"
    BUILD = "build"
    KEY = "key"
    PATCHINFO = "patchinfo"


class RequestState(str, Enum):
    """Change request states."""

    NEW = "new"
    REVIEW = "review"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    REVOKED = "revoked"


class CommandScope(str, Enum):
    """Entity scope a command addresses."""

    PROJECT = "project"
    PACKAGE = "package"


class SagaState(str, Enum):
    """Lifecycle of a multi-step command."""

    RECEIVED = "received"
    AUTHORIZED = "authorized"
    PRECONDITION_CHECKED = "precondition_checked"
    BACKEND_INVOKED = "backend_invoked"
    LOCAL_COMMITTED = "local_committed"
    RECORDED = "recorded"
    REJECTED = "rejected"
    PARTIALLY_APPLIED = "partially_applied"


class Verb(str, Enum):
    """Command verbs accepted with ``cmd=<verb>``."""

    BRANCH = "branch"
    COPY = "copy"
    RELEASE = "release"
    UNDELETE = "undelete"
    SET_FLAG = "set_flag"
    REMOVE_FLAG = "remove_flag"
    UNLOCK = "unlock"
    MOVE = "move"
    SHOWLINKED = "showlinked"
    INSTANTIATE = "instantiate"
    CREATEKEY = "createkey"
    EXTENDKEY = "extendkey"
    ADDCHANNELS = "addchannels"
    MODIFYCHANNELS = "modifychannels"
    ENABLECHANNEL = "enablechannel"
    DIFF = "diff"
    LINKDIFF = "linkdiff"
    SERVICEDIFF = "servicediff"
    GETPROJECTSERVICES = "getprojectservices"
    COMMIT = "commit"
    COMMITFILELIST = "commitfilelist"
    RUNSERVICE = "runservice"
    DELETEUPLOADREV = "deleteuploadrev"
    LINKTOBRANCH = "linktobranch"
    REBUILD = "rebuild"
    WIPE = "wipe"
    COLLECTBUILDENV = "collectbuildenv"
    CREATE_SPEC_FILE_TEMPLATE = "createSpecFileTemplate"
    IMPORTCHANNEL = "importchannel"
    CREATEPATCHINFO = "createpatchinfo"
    UPDATEPATCHINFO = "updatepatchinfo"
