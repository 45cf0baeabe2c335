"""Credit balance routes."""

from pathlib import Path

from fastapi import APIRouter, Depends

from ...services.credits import CreditService
from ..deps import get_db_path
from ..schemas import ClassCountsUpdate, UnlimitedUpdate

router = APIRouter(prefix="/credits", tags=["credits"])


@router.get("/{user_id}")
async def balances(user_id: str, db_path: Path = Depends(get_db_path)):
    accounts = await CreditService(db_path).balances(user_id)
    return {
        "user_id": user_id,
        "accounts": {category.value: a.to_dict() for category, a in accounts.items()},
    }


@router.put("/{user_id}/counts")
async def set_class_counts(
    user_id: str, body: ClassCountsUpdate, db_path: Path = Depends(get_db_path)
):
    changed = await CreditService(db_path).set_class_counts(
        user_id, group=body.group, private=body.private
    )
    return {"success": True, "balances": {c.value: v for c, v in changed.items()}}


@router.put("/{user_id}/unlimited")
async def set_unlimited(
    user_id: str, body: UnlimitedUpdate, db_path: Path = Depends(get_db_path)
):
    account = await CreditService(db_path).set_unlimited(user_id, body.category, body.unlimited)
    return {"success": True, "account": account.to_dict()}
