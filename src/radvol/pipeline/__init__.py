"""Processing pipeline.

- processor: VolumeProcessor (load, classify, select, mask, project, save)
"""

from radvol.pipeline.processor import VolumeProcessor, output_filename

__all__ = ["VolumeProcessor", "output_filename"]
