from .apply import ResourceApplier, is_namespace_scoped

from .manifests import (
    Manifest,
    ManifestKind,
    access_manifests,
    build_all,
    job_manifest,
    namespace_manifest,
    to_yaml,
)

from .observer import ExecutionObserver

from .rbac import default_rules, load_supplemental_rules, merge_rules

from .status import ExecutionResult, WorkloadStatus
