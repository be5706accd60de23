"""
Server actions for the save forms.

Each action takes the caller's owner id and the raw form payload and always
answers with the same envelope:

    {"success": True, "data": {...}}
    {"success": False, "error": "...", "fieldErrors": {...}}

The only exception that escapes is AuthenticationError, raised before the
payload is even validated. Store errors are logged here and replaced by a
generic message; their text never reaches the caller.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from .errors import AuthenticationError, NotFoundOrForbidden, PersistenceError, ValidationError
from .memory import MemoryManager
from .schemas import IdeaInput, LinkInput, validate_payload

logger = logging.getLogger(__name__)

NOT_FOUND_MESSAGE = "Memory not found or you do not have access to it"


@dataclass
class ActionResult:
    success: bool
    data: Optional[Any] = None
    error: Optional[str] = None
    field_errors: Dict[str, str] = field(default_factory=dict)
    # HTTP status hint; not part of the envelope
    status: int = 200

    def to_dict(self) -> Dict[str, Any]:
        if self.success:
            envelope: Dict[str, Any] = {"success": True}
            if self.data is not None:
                envelope["data"] = self.data
            return envelope

        envelope = {"success": False, "error": self.error}
        if self.field_errors:
            envelope["fieldErrors"] = self.field_errors
        return envelope


def _require_owner(owner_id: Optional[str], what: str) -> str:
    if not owner_id:
        raise AuthenticationError(f"You must be signed in to {what}")
    return owner_id


class MemoryActions:
    """
    Envelope-returning wrappers around MemoryManager.

    Usage:
        actions = MemoryActions(MemoryManager(db))
        result = await actions.create_link("user_1", {"title": "T", "url": "https://x.com"})
        if not result.success:
            show(result.error)
    """

    def __init__(self, manager: MemoryManager):
        self.manager = manager

    async def _run(self, what: str, operation, *args) -> ActionResult:
        try:
            data = await operation(*args)
        except ValidationError as e:
            return ActionResult(success=False, error=str(e), field_errors=e.field_errors, status=400)
        except NotFoundOrForbidden:
            return ActionResult(success=False, error=NOT_FOUND_MESSAGE, status=404)
        except PersistenceError:
            # Already logged with traceback by the manager
            return ActionResult(success=False, error=f"Could not {what}. Please try again.", status=500)
        except AuthenticationError:
            raise
        except Exception:
            logger.exception(f"Unexpected failure while trying to {what}")
            return ActionResult(success=False, error=f"Could not {what}. Please try again.", status=500)
        return ActionResult(success=True, data=data)

    @staticmethod
    def _validate(model, payload: Optional[Mapping[str, Any]]):
        try:
            return validate_payload(model, payload), None
        except ValidationError as e:
            logger.info(f"Rejected {model.__name__}: {e.field_errors}")
            return None, ActionResult(success=False, error=str(e), field_errors=e.field_errors, status=400)

    # -- Links -------------------------------------------------------------

    async def create_link(self, owner_id: Optional[str], payload: Optional[Mapping[str, Any]]) -> ActionResult:
        owner_id = _require_owner(owner_id, "save a link")
        data, failure = self._validate(LinkInput, payload)
        if failure:
            return failure
        return await self._run("save the link", self.manager.create_link, owner_id, data)

    async def update_link(self, owner_id: Optional[str], memory_id: str, payload: Optional[Mapping[str, Any]]) -> ActionResult:
        owner_id = _require_owner(owner_id, "update a link")
        data, failure = self._validate(LinkInput, payload)
        if failure:
            return failure
        return await self._run("update the link", self.manager.update_link, owner_id, memory_id, data)

    async def delete_link(self, owner_id: Optional[str], memory_id: str) -> ActionResult:
        owner_id = _require_owner(owner_id, "delete a link")
        return await self._run("delete the link", self.manager.delete_link, owner_id, memory_id)

    # -- Ideas -------------------------------------------------------------

    async def create_idea(self, owner_id: Optional[str], payload: Optional[Mapping[str, Any]]) -> ActionResult:
        owner_id = _require_owner(owner_id, "save an idea")
        data, failure = self._validate(IdeaInput, payload)
        if failure:
            return failure
        return await self._run("save the idea", self.manager.create_idea, owner_id, data)

    async def update_idea(self, owner_id: Optional[str], memory_id: str, payload: Optional[Mapping[str, Any]]) -> ActionResult:
        owner_id = _require_owner(owner_id, "update an idea")
        data, failure = self._validate(IdeaInput, payload)
        if failure:
            return failure
        return await self._run("update the idea", self.manager.update_idea, owner_id, memory_id, data)

    async def delete_idea(self, owner_id: Optional[str], memory_id: str) -> ActionResult:
        owner_id = _require_owner(owner_id, "delete an idea")
        return await self._run("delete the idea", self.manager.delete_idea, owner_id, memory_id)
