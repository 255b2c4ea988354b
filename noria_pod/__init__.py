# -----------------------------------------------------------------------------
# NORIA-POD
# -----------------------------------------------------------------------------
# Builds noria-server in an isolated pod and launches it with a fixed
# deployment contract.
# -----------------------------------------------------------------------------

__version__ = "0.1.0"
