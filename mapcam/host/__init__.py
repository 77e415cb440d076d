from mapcam.host.view_state_host import HostLayout, PointerRegion, ViewStateHost

__all__ = [
    "HostLayout",
    "PointerRegion",
    "ViewStateHost",
]
