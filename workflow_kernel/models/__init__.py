"""SQLAlchemy ORM models. Importing this package registers every table."""

from workflow_kernel.models.directory import (
    PermissionModel,
    RoleModel,
    RolePermissionModel,
    UserModel,
    UserRoleModel,
)
from workflow_kernel.models.item import ItemModel
from workflow_kernel.models.review_record import ReviewRecordModel
from workflow_kernel.models.workflow import (
    StageModel,
    TransitionModel,
    WorkflowTemplateModel,
)

__all__ = [
    "ItemModel",
    "PermissionModel",
    "ReviewRecordModel",
    "RoleModel",
    "RolePermissionModel",
    "StageModel",
    "TransitionModel",
    "UserModel",
    "UserRoleModel",
    "WorkflowTemplateModel",
]
