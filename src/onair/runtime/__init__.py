"""
Broadcast scheduler runtime.

Pure pieces (selection, position, crossfade, time sync) plus the stores and
the advancement loop that commits the shared schedule anchor.
"""
