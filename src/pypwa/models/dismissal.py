"""Install-prompt dismissal record."""

from __future__ import annotations

from pypwa.models._base import PwaBaseModel


class DismissalRecord(PwaBaseModel):
    """The two independent dismissal scopes.

    ``permanent`` survives restarts; ``session`` lasts for the current
    browsing session and only gates the floating install button.
    """

    permanent: bool = False
    session: bool = False
