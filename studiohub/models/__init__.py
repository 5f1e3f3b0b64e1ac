from studiohub.models.models import *  # noqa: F401,F403
from studiohub.models.models import __all__  # noqa: F401
