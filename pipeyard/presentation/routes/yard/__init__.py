from flask import Blueprint

yard_bp = Blueprint('yard', __name__)

# Import all route modules
from . import (  # noqa: E402,F401
    requests,
    loads,
    units,
)
