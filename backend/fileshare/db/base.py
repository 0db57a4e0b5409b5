# Import all the models, so that Base has them before being
# imported by create_all or by tests
from fileshare.db.base_class import Base  # noqa
from fileshare.models.user import User  # noqa
from fileshare.models.file import FileRecord, FilePermission  # noqa
from fileshare.models.share import Share  # noqa
from fileshare.models.audit import AuditLog  # noqa
