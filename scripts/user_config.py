"""stackalign User Configuration.

This is the user-facing configuration file. Modify settings here to customize
a run. Advanced settings are in src/stackalign/schemas/param.py

Usage:
    python scripts/run_stackalign.py scripts/user_config.py
    python scripts/run_stackalign.py scripts/user_config.py --met-file /data/5100.met
    python scripts/run_stackalign.py scripts/user_config.py --mode trakem2_export
"""

CONFIG = {
    # ========================================================================
    # MODE & RENDER WEB SERVICE
    # ========================================================================
    "MODE": "met_import",     # "met_import" or "trakem2_export"
    "BASE_DATA_URL": "http://renderer:8080/render-ws/v1",
    "OWNER": "flyTEM",
    "PROJECT": "FAFB00",

    # ========================================================================
    # MET IMPORT SETTINGS
    # ========================================================================
    "ACQUIRE_STACK": "v12_acquire",  # z values and current tile specs come from here
    "ALIGN_STACK": "v12_align",      # updated tile specs are saved here
    "MET_FILE": None,                # e.g. "/data/alignment/5100.met"
    "FORMAT_VERSION": "v1",          # "v1" (affine) or "v2" (polynomial)
    "REPLACE_ALL": False,            # True: drop existing transforms first

    # ========================================================================
    # TRAKEM2 EXPORT SETTINGS
    # ========================================================================
    "TRAKEM2_PROJECT": None,         # TrakEM2 .xml project
    "BASIS_STACK": "v12_acquire",
    "TARGET_STACK": "v12_montage",
    "MIN_Z": None,                   # first TrakEM2 layer z to export (None = all)
    "MAX_Z": None,
    "Z_MAP": "",                     # "trakZ=targetZ,..." (empty = keep layer z)
    "COMPLETE_STACK": True,          # set target stack COMPLETE after export

    # ========================================================================
    # VALIDATION & LOGGING
    # ========================================================================
    "VALIDATOR": "tem",              # "tem" or "none"
    "LOG_LEVEL": "INFO",
    "LOG_FILE": None,
    # Note: coordinate and tile size limits for the TEM validator are
    # configured in src/stackalign/schemas/param.py
}
