"""Event and policy layer.

Trackers translate platform callbacks into :class:`LifecycleEvent`
values; the coordinator turns each one into a fresh snapshot using the
pure derivations in :mod:`pypwa.state.policy`.
"""
