from .auth import load_api_client
from .kube_api_helpers import (
    format_api_error,
    is_already_exists,
    is_not_found,
)
