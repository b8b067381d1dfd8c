# ============================================================================
# autrace/base/__init__.py
# ============================================================================
#
# PURPOSE:
# Foundational pieces the engines depend on.
#
# WHAT'S IN THIS MODULE:
# - config.py: engine settings, AUTRACE_* environment overrides, logging setup
#
# ============================================================================
