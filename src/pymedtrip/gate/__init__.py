"""Access/view gate.

Decides per navigation whether the current user may see a page, and tracks
which experience an admin is previewing. Role lookups fail closed; the
base authenticated view fails open.
"""
