"""Single import point that registers every mapped table on the shared metadata."""
from maintdesk.models.user import Base
import maintdesk.models.building  # noqa: F401
import maintdesk.models.request  # noqa: F401
import maintdesk.models.history  # noqa: F401
import maintdesk.models.comment  # noqa: F401
import maintdesk.models.audit  # noqa: F401


def load_all():
    """Return the declarative Base with all tables registered (create_all / alembic target)."""
    return Base
