"""
BaseService -- abstract base for kernel services.

Responsibility:
    Common constructor and session contract for kernel services.  Kernel
    services persist through ``session.flush()`` and never commit or roll
    back; the module service that called them owns the transaction.

Architecture position:
    Kernel > Services.  Extended by AuditorService and SequenceService.

Failure modes:
    - A subclass that commits breaks the atomicity of the module operation
      that called it (close-then-create, approve-with-adjustments).
"""

from abc import ABC

from sqlalchemy.orm import Session


class BaseService(ABC):
    """
    Abstract base class for kernel services.

    Guarantees:
        - The service flushes within the caller's transaction and never
          calls ``commit()`` or ``rollback()`` itself.
    """

    def __init__(self, session: Session):
        self._session = session

    @property
    def session(self) -> Session:
        return self._session
