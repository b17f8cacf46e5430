# SQLModel definitions, imported here so metadata is populated for create_all.
from .base import UUIDMixin, TimestampMixin  # noqa: F401
from .user import User  # noqa: F401
from .project import Project, ProjectMember  # noqa: F401
from .join_request import JoinRequest  # noqa: F401
from .task import Task, TaskAssignee, TaskComment, TaskAttachment  # noqa: F401
from .activity import Activity  # noqa: F401
