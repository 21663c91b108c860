"""Media status source interface."""

from __future__ import annotations

import abc

from ..core.state import MediaSnapshot


class MediaStatusSource(abc.ABC):
    """Reports what is currently playing."""

    @property
    def configured(self) -> bool:
        return True

    @abc.abstractmethod
    async def poll(self) -> MediaSnapshot | None:
        """Return the current snapshot, or None when the source is unreachable."""

    async def close(self) -> None:
        pass
