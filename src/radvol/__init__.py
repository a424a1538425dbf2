"""`radvol` - polar-volume radar data model, masking and PPI projection.

Subpackages:
- radar: Volume model, loading, masking, projection
- classifier: External classifier interface
- pipeline: Volume processor
- visualization: Plotting
"""

__version__ = "0.1.0"
