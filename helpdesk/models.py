"""
ORM model registry.

Importing this module registers every table on `Base.metadata`
(used by `create_tables()` and the test fixtures).
"""

from helpdesk.access.infrastructure.models import (  # noqa: F401
    ResourceModel,
    ResourceOverrideModel,
    SectorModel,
    UserModel,
    UserSectorRoleModel,
)
from helpdesk.notifications.infrastructure.models import (  # noqa: F401
    AdminSettingModel,
    AuditLogModel,
    NotificationModel,
    NotificationSettingModel,
)
from helpdesk.sla.infrastructure.models import (  # noqa: F401
    SLAAlertDedupModel,
    SLACycleModel,
    SLAPolicyModel,
)
from helpdesk.tickets.infrastructure.models import (  # noqa: F401
    TicketAssigneeModel,
    TicketAttachmentModel,
    TicketCategoryModel,
    TicketCommentModel,
    TicketEventModel,
    TicketModel,
)
