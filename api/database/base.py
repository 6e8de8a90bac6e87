from api.models.base import Base

# Import all the models, so that Base has them before being
# imported by Alembic.
# This ensures that Alembic's autogenerate can "see" the models.
from api.models.user import *  # noqa
from api.models.creator import *  # noqa
from api.models.enrollment import *  # noqa
from api.models.payments import *  # noqa
from api.models.settings import *  # noqa
