"""Per-record access control on search results.

The authorization policy lives outside this package. The filter only calls an
injected ``PermissionChecker`` and fails closed: a check that raises counts
as a deny.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
import logging
from typing import Protocol, runtime_checkable

from component_search.domain.model import ComponentRecord, Principal, RequestedAction
from component_search.observability.metrics import PERMISSION_CHECK_ERRORS, RECORDS_DENIED


logger = logging.getLogger(__name__)


@runtime_checkable
class PermissionChecker(Protocol):
    """Capability check supplied by the permission engine."""

    def is_action_allowed(self, record: ComponentRecord, principal: Principal, action: RequestedAction) -> bool:
        """Return True when ``principal`` may perform ``action`` on ``record``."""
        ...

    def permissions_for(self, record: ComponentRecord, principal: Principal) -> Mapping[RequestedAction, bool]:
        """Return the per-action flags for ``principal`` on ``record``."""
        ...


class CallablePermissionChecker:
    """Adapt a plain ``(record, principal, action) -> bool`` function to ``PermissionChecker``."""

    def __init__(
        self,
        check: Callable[[ComponentRecord, Principal, RequestedAction], bool],
        actions: Iterable[RequestedAction] = tuple(RequestedAction),
    ) -> None:
        self._check = check
        self._actions = tuple(actions)

    def is_action_allowed(self, record: ComponentRecord, principal: Principal, action: RequestedAction) -> bool:
        return bool(self._check(record, principal, action))

    def permissions_for(self, record: ComponentRecord, principal: Principal) -> dict[RequestedAction, bool]:
        return {action: bool(self._check(record, principal, action)) for action in self._actions}


class PermissionFilter:
    """Apply a ``PermissionChecker`` to whole result lists."""

    def __init__(self, checker: PermissionChecker) -> None:
        self._checker = checker

    def can_read(self, record: ComponentRecord, principal: Principal) -> bool:
        try:
            return self._checker.is_action_allowed(record, principal, RequestedAction.READ) is True
        except Exception:
            PERMISSION_CHECK_ERRORS.inc()
            logger.warning("READ check failed for component %s; denying", record.id, exc_info=True)
            return False

    def filter_readable(self, records: Iterable[ComponentRecord], principal: Principal) -> list[ComponentRecord]:
        """Drop every record the principal may not read, preserving order."""
        readable: list[ComponentRecord] = []
        denied = 0
        for record in records:
            if self.can_read(record, principal):
                readable.append(record)
            else:
                denied += 1
        if denied:
            RECORDS_DENIED.inc(denied)
            logger.debug("Dropped %d unreadable components for %s", denied, principal.email)
        return readable

    def annotate(self, records: list[ComponentRecord], principal: Principal) -> list[ComponentRecord]:
        """Attach per-action flags to every record; nothing is dropped.

        Actions the checker does not report are set to False. A check that
        raises, or answers with an action that does not exist, leaves every
        action False for that record.
        """
        for record in records:
            flags = dict.fromkeys(RequestedAction, False)
            try:
                granted = self._checker.permissions_for(record, principal)
                reported = {RequestedAction(action): bool(allowed) for action, allowed in granted.items()}
            except Exception:
                PERMISSION_CHECK_ERRORS.inc()
                logger.warning("Permission annotation failed for component %s", record.id, exc_info=True)
            else:
                flags.update(reported)
            record.permissions = flags
        return records
