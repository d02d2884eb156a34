from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .. import crud
from ..database import get_db
from ..errors import NotFound
from ..schemas import DropOut, ListedProduct, UnlockRequest, UnlockResponse

router = APIRouter(prefix="/api/drops", tags=["drops"])


@router.get("/active", response_model=DropOut)
def get_active_drop(db: Session = Depends(get_db)):
    drop = crud.get_active_drop(db)
    if drop is None:
        raise NotFound("No active drop found")
    return DropOut.model_validate(drop).model_copy(update={"is_active": True})


@router.post("/{drop_id}/unlock", response_model=UnlockResponse)
def unlock_drop(drop_id: int, body: UnlockRequest, db: Session = Depends(get_db)):
    """Check a drop key. Unlocking is remembered client-side only."""
    crud.verify_drop_key(db, drop_id, body.key)
    return {"success": True, "message": "Drop unlocked successfully"}


@router.get("/{drop_id}/products", response_model=List[ListedProduct])
def list_drop_products(drop_id: int, db: Session = Depends(get_db)):
    return crud.list_drop_products(db, drop_id)
