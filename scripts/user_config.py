"""radvol User Configuration.

This is the user-facing configuration file. Modify settings here to customize
the PPI run. Advanced settings are in radvol/schemas/param.py

Usage:
    python scripts/run_ppi.py FILE --config scripts/user_config.py
    radvol-ppi FILE --config scripts/user_config.py --elevation 1.5
"""

CONFIG = {
    # ========================================================================
    # INPUT & SWEEP
    # ========================================================================
    "FILE_FORMAT": "auto",      # "auto", "nexrad_archive", "odim_h5", "cfradial"
    "ELEVATION": 0.5,           # Sweep elevation in degrees
    "ELEVATION_TOLERANCE": 0.1, # Accept nearest sweep within this many degrees

    # ========================================================================
    # CLASSIFICATION
    # ========================================================================
    "CLASSIFY": True,
    "CLASSIFIER_METHOD": "threshold",
    "CLASSIFIER_TIMEOUT": 60,   # Seconds before falling back to raw data

    # ========================================================================
    # MASKING
    # ========================================================================
    "MASK_PREDICATE": "CELL",   # Parameter tested by the mask
    "MASK_THRESHOLD": 1,        # Bins with CELL >= 1 become no-data
    "MASK_PARAMETERS": ["DBZH", "RHOHV", "VRADH"],

    # ========================================================================
    # PROJECTION
    # ========================================================================
    "MAX_RANGE": 150000,        # Raster half-width in metres
    "RESOLUTION": 500,          # Raster cell size in metres
    "EARTH_MODEL": "curved",    # "curved" (4/3 earth) or "flat"
    "INTERPOLATION": "nearest", # "nearest" or "bilinear"
    "WORKERS": 4,               # Threads for row blocks
    "PARAMETERS": ["DBZH", "DBZH_clean", "VRADH", "VRADH_clean", "CELL"],

    # ========================================================================
    # OUTPUT
    # ========================================================================
    "OUTPUT_DIR": "./ppi_output",
    "SAVE_NETCDF": True,
    "PLOT": True,
    # Note: Classifier thresholds, plot styling and compression level
    # are configured in radvol/schemas/param.py
}
