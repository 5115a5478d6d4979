"""
Change notifications for observers of tab and group state.

Two notification shapes exist and observers must handle them differently:

- ``TabDataPatch`` carries newly computed classifications keyed by URL and
  is merged incrementally.
- ``FullRefresh`` carries nothing and means "reload everything".

On the wire both are rendered as ``{"type": "data_changed"}``, with a
``patch`` member present only for ``TabDataPatch``.
"""

import inspect
from typing import Annotated, Any, Awaitable, Callable, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter

from tab_organizer.agents.models import TabClassification
from tab_organizer.config import get_logger

logger = get_logger(__name__)

MESSAGE_TYPE = "data_changed"


class TabDataPatch(BaseModel):
    """Incremental update: merge these classifications into local state."""

    kind: Literal["patch"] = "patch"
    patch: dict[str, TabClassification]

    def to_message(self) -> dict[str, Any]:
        return {
            "type": MESSAGE_TYPE,
            "patch": {url: c.model_dump() for url, c in self.patch.items()},
        }


class FullRefresh(BaseModel):
    """Something changed: reload all state."""

    kind: Literal["refresh"] = "refresh"

    def to_message(self) -> dict[str, Any]:
        return {"type": MESSAGE_TYPE}


DataChanged = Annotated[Union[TabDataPatch, FullRefresh], Field(discriminator="kind")]

_data_changed_adapter = TypeAdapter(DataChanged)

Observer = Callable[[Union[TabDataPatch, FullRefresh]], Optional[Awaitable[None]]]


def parse_message(message: dict[str, Any]) -> Union[TabDataPatch, FullRefresh]:
    """
    Decode a wire message into its notification variant.

    Args:
        message: Dict with "type" and an optional "patch"

    Returns:
        TabDataPatch if a patch is present, FullRefresh otherwise

    Raises:
        ValueError: If the message type is not a data-changed notification
    """
    if not isinstance(message, dict) or message.get("type") != MESSAGE_TYPE:
        raise ValueError(f"Not a {MESSAGE_TYPE} message: {message!r}")
    if message.get("patch") is not None:
        return _data_changed_adapter.validate_python({"kind": "patch", "patch": message["patch"]})
    return FullRefresh()


class NotificationBus:
    """
    Fire-and-forget broadcast of change notifications.

    Observers may be plain callables or coroutine functions. An observer
    that raises is logged and skipped; delivery to the others continues.
    """

    def __init__(self):
        self._observers: list[Observer] = []

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """
        Register an observer.

        Returns:
            Callable that unsubscribes the observer
        """
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    async def publish(self, event: Union[TabDataPatch, FullRefresh]) -> None:
        """Deliver an event to every observer in subscription order."""
        for observer in list(self._observers):
            try:
                result = observer(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.warning(f"Notification observer failed on {event.kind}: {e}", exc_info=True)


class TabDataMirror:
    """
    Observer keeping a local copy of all tab classifications.

    Patches are merged into the cache; a full refresh reloads the cache
    from storage through ``loader``.
    """

    def __init__(self, loader: Callable[[], Awaitable[dict[str, TabClassification]]]):
        """
        Args:
            loader: Coroutine function returning every stored classification
        """
        self.loader = loader
        self.tab_data: dict[str, TabClassification] = {}
        self.refresh_count = 0

    async def __call__(self, event: Union[TabDataPatch, FullRefresh]) -> None:
        if isinstance(event, TabDataPatch):
            self.tab_data.update(event.patch)
        else:
            self.tab_data = dict(await self.loader())
            self.refresh_count += 1
