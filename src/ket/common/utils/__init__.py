from .utils import (
    current_user_ids,
    generate_namespace_name,
    to_kube_safe,
)
