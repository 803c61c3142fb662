"""UIMF writer user configuration.

Modify settings here to customize the writer. Expert defaults live in
uimf.schemas.param.

Usage:
    python scripts/run_uimf_tool.py data.uimf --config scripts/user_config.py
"""

CONFIG = {
    # ========================================================================
    # CONTAINER LAYOUT
    # ========================================================================
    "CREATE_LEGACY_TABLES": False,  # Maintain Global_Parameters / Frame_Parameters
    "SCAN_DATA_TYPE": "int",        # BPI column type: double, float, short, int

    # ========================================================================
    # TRANSACTIONS
    # ========================================================================
    "FLUSH_INTERVAL": 5,            # Seconds between commits
    "SETTLE_DELAY": 0.1,            # Pause after each commit

    # ========================================================================
    # INTENSITY ENCODING
    # ========================================================================
    "RLZE_WIDTH": "int32",          # int32 or int16 run-length entries
    "COMPRESSOR": "lz4",            # lz4 or none

    # ========================================================================
    # VERSION_INFO
    # ========================================================================
    "SOFTWARE_NAME": "uimf-tool",
    "SOFTWARE_VERSION": "0.1.0",

    "LOG_LEVEL": "INFO",
}
