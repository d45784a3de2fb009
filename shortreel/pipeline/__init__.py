# Video processing pipeline
"""
Pipeline stages, leaves first:

prober -> segment_selector (-> scene_detection) -> transcoder + thumbnails,
driven per video by orchestrator.VideoPipeline. captions runs on its own.
"""
