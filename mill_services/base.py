"""
BaseService -- abstract base for mill services.

Services receive a SQLAlchemy ``Session`` from the caller and persist with
``session.flush()`` only. The caller owns commit and rollback, so a clearing
and the yield refresh that follows it can share one transaction.
"""

from abc import ABC

from sqlalchemy.orm import Session

from mill_config import MillingRules, get_active_rules
from mill_kernel.selectors.event_selector import StockEventSelector


class BaseService(ABC):
    """
    Abstract base class for mill services.

    Guarantees:
        - Never calls ``session.commit()`` or ``session.rollback()``.
        - Rules are loaded once per service instance and passed by value
          into every engine call.
    """

    def __init__(self, session: Session, rules: MillingRules | None = None):
        self.session = session
        self.rules = rules or get_active_rules()
        self.selector = StockEventSelector(session, store_unit=self.rules.store_weight_unit)
