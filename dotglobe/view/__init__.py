from .view_widget import (
    GlobeController,
    GlobeViewWidget,
    QtFrameScheduler,
    init_globe,
    paint_items,
    render_frames_to_image,
    surfaces_named,
    visible_ratio,
)

__all__ = [
    "GlobeController",
    "GlobeViewWidget",
    "QtFrameScheduler",
    "init_globe",
    "paint_items",
    "render_frames_to_image",
    "surfaces_named",
    "visible_ratio",
]
