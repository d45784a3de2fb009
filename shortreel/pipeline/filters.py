"""FFmpeg filter graphs for the selectable short filters."""
from dataclasses import dataclass
from typing import Optional

from shortreel.models.processing_settings import VideoFilter


@dataclass(frozen=True)
class FilterGraph:
    """A filter graph and how to hand it to ffmpeg."""
    graph: str
    complex: bool = False  # True: needs -filter_complex and an explicit map
    output_label: Optional[str] = None


FILTER_GRAPHS = {
    VideoFilter.BOOST: FilterGraph("eq=brightness=0.06:contrast=1.2:saturation=1.4"),
    VideoFilter.VINTAGE: FilterGraph("curves=preset=vintage,vignette=PI/5"),
    VideoFilter.GRAYSCALE: FilterGraph(
        "colorchannelmixer=.299:.587:.114:0:.299:.587:.114:0:.299:.587:.114"
    ),
    # Sharp frame at 80% size centered over a blurred copy of itself
    VideoFilter.BLUR: FilterGraph(
        "[0:v]split=2[bg][fg];"
        "[bg]gblur=sigma=20[blurred];"
        "[fg]scale=trunc(iw*0.8/2)*2:-2[sharp];"
        "[blurred][sharp]overlay=(W-w)/2:(H-h)/2[vout]",
        complex=True,
        output_label="vout",
    ),
}


def get_filter_graph(video_filter: Optional[VideoFilter | str]) -> Optional[FilterGraph]:
    """
    Look up the graph for a filter name.

    Returns:
        None for no filter or ``none``

    Raises:
        ValueError: For an unknown filter name
    """
    if video_filter is None:
        return None
    video_filter = VideoFilter(video_filter)
    if video_filter == VideoFilter.NONE:
        return None
    return FILTER_GRAPHS[video_filter]
