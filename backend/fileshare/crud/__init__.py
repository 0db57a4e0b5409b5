from .crud_user import user
from .crud_file import file, permission
from .crud_share import share
from .crud_audit import audit
