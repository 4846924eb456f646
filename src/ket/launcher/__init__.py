from .launch import (
    LauncherState,
    ResourceTracker,
    TestLauncher,
    launch,
)
