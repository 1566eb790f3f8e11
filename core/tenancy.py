from typing import Optional

from sqlalchemy.orm import Session

from core.errors import ForbiddenError, NotFoundError
from models.store import Store
from models.user import User


def get_owned_store(db: Session, user_id: int, store_id: Optional[int] = None, lock: bool = False) -> Store:
    """
    Resolve the seller's store: the given ``store_id`` when provided (and owned
    by ``user_id``), otherwise the first store the user owns.

    With ``lock=True`` the row is selected FOR UPDATE so a caller's
    count-then-insert is serialized per store until it commits.
    """
    query = db.query(Store).filter(Store.owner_id == user_id)
    if store_id is not None:
        query = query.filter(Store.id == store_id)
    query = query.order_by(Store.id)
    if lock:
        query = query.with_for_update()
    store = query.first()
    if not store:
        raise NotFoundError("Store not found")
    return store


def check_store_access(user: User, store: Store) -> bool:
    """Owners see their own stores; platform admins see every store."""
    return user.is_superadmin or store.owner_id == user.id


def get_store_for_user(db: Session, user: User, store_id: int) -> Store:
    store = db.get(Store, store_id)
    if not store:
        raise NotFoundError("Store not found")
    if not check_store_access(user, store):
        raise ForbiddenError("You do not have access to this store")
    return store
