# Imported here so SQLModel.metadata is populated before create_all.
from .base import UUIDMixin, TimestampMixin  # noqa: F401
from .user import User  # noqa: F401
from .project import Project, ProjectComment, ProjectLike  # noqa: F401
from .forum import ForumPost, ForumReply  # noqa: F401
from .learning import Enrollment, LearningTrack, Module, ModuleProgress  # noqa: F401
from .badge import Badge, UserBadge  # noqa: F401
