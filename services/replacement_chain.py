# services/replacement_chain.py
"""
Replacement Chain Resolver - read side of the bounced -> replacement links.

A chain is a simple linked list: each cheque has at most one predecessor
(original_pdc_id) and at most one successor (replacement_pdc_id), and the
links agree in both directions. A successor link is only legal on a
REPLACED cheque.

Walking is bounded by PDC_CHAIN_MAX_HOPS. Exceeding the bound, revisiting a
cheque or finding a one-sided link is data corruption: it is logged at
ERROR and raised as ChainIntegrityError, never repaired here.
"""
import logging
from typing import Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.orm import Session

import config
from exceptions import ChainIntegrityError, NotFoundError
from models import PDC, PDCStatus

logger = logging.getLogger(__name__)


def _corrupt(message: str, pdc_id: Optional[str] = None) -> ChainIntegrityError:
     logger.error("Replacement chain integrity failure: %s", message)
     return ChainIntegrityError(message, pdc_id)


def _load(db: Session, pdc_id: str, cache: Optional[dict[str, PDC]] = None) -> Optional[PDC]:
     if cache is not None:
          return cache.get(pdc_id)
     return db.query(PDC).filter(PDC.id == pdc_id).first()


def find_root(
     db: Session,
     pdc: PDC,
     max_hops: Optional[int] = None,
     cache: Optional[dict[str, PDC]] = None,
) -> PDC:
     """
     Follow predecessor links back to the original cheque.

     Raises:
          ChainIntegrityError: On a cycle, a dangling or one-sided link, or
               more than max_hops predecessors
     """
     max_hops = config.PDC_CHAIN_MAX_HOPS if max_hops is None else max_hops
     seen = {pdc.id}
     current = pdc
     hops = 0
     while current.original_pdc_id is not None:
          hops += 1
          if hops > max_hops:
               raise _corrupt(f"PDC {pdc.id} has more than {max_hops} predecessors", pdc.id)
          predecessor = _load(db, current.original_pdc_id, cache)
          if predecessor is None:
               raise _corrupt(
                    f"PDC {current.id} points to missing predecessor {current.original_pdc_id}",
                    current.id,
               )
          if predecessor.id in seen:
               raise _corrupt(f"Cycle detected in replacement chain at PDC {predecessor.id}", predecessor.id)
          if predecessor.replacement_pdc_id != current.id:
               raise _corrupt(
                    f"PDC {current.id} names {predecessor.id} as predecessor, "
                    f"but {predecessor.id} names {predecessor.replacement_pdc_id} as successor",
                    current.id,
               )
          seen.add(predecessor.id)
          current = predecessor
     return current


def _walk_forward(
     db: Session,
     root: PDC,
     max_hops: int,
     cache: Optional[dict[str, PDC]] = None,
) -> list[PDC]:
     chain = [root]
     seen = {root.id}
     current = root
     while current.replacement_pdc_id is not None:
          if current.status != PDCStatus.REPLACED:
               raise _corrupt(
                    f"PDC {current.id} has successor {current.replacement_pdc_id} "
                    f"but status {current.status.value}",
                    current.id,
               )
          if len(chain) > max_hops:
               raise _corrupt(f"Replacement chain from PDC {root.id} exceeds {max_hops} hops", root.id)
          successor = _load(db, current.replacement_pdc_id, cache)
          if successor is None:
               raise _corrupt(
                    f"PDC {current.id} points to missing successor {current.replacement_pdc_id}",
                    current.id,
               )
          if successor.id in seen:
               raise _corrupt(f"Cycle detected in replacement chain at PDC {successor.id}", successor.id)
          if successor.original_pdc_id != current.id:
               raise _corrupt(
                    f"PDC {current.id} names {successor.id} as successor, "
                    f"but {successor.id} names {successor.original_pdc_id} as predecessor",
                    current.id,
               )
          seen.add(successor.id)
          chain.append(successor)
          current = successor
     return chain


def get_chain(db: Session, pdc_id: str, max_hops: Optional[int] = None) -> list[PDC]:
     """
     Full replacement chain containing the given cheque, oldest first.

     A cheque that was never bounced/replaced is a chain of one.

     Raises:
          NotFoundError: If the cheque doesn't exist
          ChainIntegrityError: If stored links are inconsistent
     """
     pdc = db.query(PDC).filter(PDC.id == pdc_id).first()
     if not pdc:
          raise NotFoundError("PDC", pdc_id)
     max_hops = config.PDC_CHAIN_MAX_HOPS if max_hops is None else max_hops
     root = find_root(db, pdc, max_hops)
     return _walk_forward(db, root, max_hops)


def verify_all_chains(db: Session, max_hops: Optional[int] = None) -> Tuple[bool, str, int]:
     """
     Scan every linked cheque and check the whole chain structure.

     Returns:
          (verified, message, chains_checked)
          - (True, "All replacement chains verified", n) when consistent
          - (False, reason, n) at the first inconsistency; n counts chains
            fully checked before it
     """
     max_hops = config.PDC_CHAIN_MAX_HOPS if max_hops is None else max_hops
     linked = db.query(PDC).filter(
          or_(PDC.original_pdc_id.isnot(None), PDC.replacement_pdc_id.isnot(None))
     ).all()
     cache = {pdc.id: pdc for pdc in linked}

     # Rows referenced by a link but carrying none of their own cannot exist
     # in a consistent store, so a miss in the cache means a dangling link.
     checked = 0
     visited: set[str] = set()
     try:
          for pdc in linked:
               if pdc.id in visited:
                    continue
               root = find_root(db, pdc, max_hops, cache)
               chain = _walk_forward(db, root, max_hops, cache)
               visited.update(member.id for member in chain)
               if pdc.id not in visited:
                    raise _corrupt(f"PDC {pdc.id} is not reachable from its chain root {root.id}", pdc.id)
               checked += 1
     except ChainIntegrityError as exc:
          return False, exc.message, checked

     logger.info("Verified %s replacement chain(s)", checked)
     return True, "All replacement chains verified", checked
