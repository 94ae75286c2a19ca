"""
Source fetchers and aggregation for the YouTube summary.

Import submodules directly; the clients depend on the label helpers here,
so this package keeps no eager imports.
"""
