from .kubernetes_cluster import load_api_client, format_api_error
