from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .. import crud
from ..database import get_db
from ..schemas import ListedProduct, SubscribeRequest

router = APIRouter(prefix="/api", tags=["shop"])


@router.get("/shop", response_model=List[ListedProduct])
def list_shop(db: Session = Depends(get_db)):
    """The permanent collection: every variant that still has stock."""
    return crud.list_shop_products(db)


@router.post("/newsletter")
def subscribe(body: SubscribeRequest, db: Session = Depends(get_db)):
    crud.create_subscriber(db, body.email)
    return {"success": True, "message": "Subscribed successfully"}
