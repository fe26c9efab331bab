"""
rk_karaoke - synced lyrics for rekordbox sets.

Listens to rkbx_link OSC, resolves timed lyrics for the master deck's track
(library index, staged files, LRCLIB) and publishes lines and transport
state for karaoke viewers.
"""

__version__ = "0.1.0"
