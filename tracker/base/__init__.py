#
# PURPOSE:
# Foundational pieces the rest of the tracker depends on.
#
# WHAT'S IN THIS MODULE:
# - config.py: Storage and logging configuration, read from the environment
#
