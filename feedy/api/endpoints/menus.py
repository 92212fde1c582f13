import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status

from ...persistence import BaseDatabase
from ...schemas import DeleteResponse, MenuSaveResponse, MenuSection, utcnow
from ..deps import get_database, require_owner

logger = logging.getLogger(__name__)

router = APIRouter()


async def _owned_menu(db: BaseDatabase, menu_id: str, owner_id: str) -> MenuSection:
    menus = await db.get_all_menu_sections(owner_id=owner_id)
    menu = next((m for m in menus if m.id == menu_id), None)
    if menu is None:
        raise HTTPException(status_code=404, detail="Menu not found")
    return menu


@router.get("", response_model=List[MenuSection])
async def read_menus(
    owner_id: str = Depends(require_owner), db: BaseDatabase = Depends(get_database)
):
    return await db.get_all_menu_sections(owner_id=owner_id)


@router.post("", response_model=MenuSaveResponse, status_code=status.HTTP_201_CREATED)
async def create_menu(
    menu_in: MenuSection,
    owner_id: str = Depends(require_owner),
    db: BaseDatabase = Depends(get_database),
):
    now = utcnow()
    menu = menu_in.model_copy(
        update={"id": "", "owner_id": owner_id, "created_at": now, "updated_at": now}
    )
    await db.save_menu_section(menu)
    logger.info("Menu %s created by %s", menu.id, owner_id)
    return MenuSaveResponse(menu_id=menu.id)


@router.get("/{menu_id}", response_model=MenuSection)
async def read_menu(
    menu_id: str,
    owner_id: str = Depends(require_owner),
    db: BaseDatabase = Depends(get_database),
):
    return await _owned_menu(db, menu_id, owner_id)


@router.put("/{menu_id}", response_model=MenuSaveResponse)
async def update_menu(
    menu_id: str,
    menu_in: MenuSection,
    owner_id: str = Depends(require_owner),
    db: BaseDatabase = Depends(get_database),
):
    existing = await _owned_menu(db, menu_id, owner_id)
    menu = menu_in.model_copy(
        update={"id": menu_id, "owner_id": owner_id, "created_at": existing.created_at}
    )
    await db.save_menu_section(menu)
    return MenuSaveResponse(menu_id=menu_id)


@router.delete("/{menu_id}", response_model=DeleteResponse)
async def delete_menu(
    menu_id: str,
    owner_id: str = Depends(require_owner),
    db: BaseDatabase = Depends(get_database),
):
    await _owned_menu(db, menu_id, owner_id)
    await db.delete_menu_section(menu_id)
    return DeleteResponse(id=menu_id, message="Menu deleted.")


@router.post("/{menu_id}/toggle", response_model=MenuSection)
async def toggle_menu(
    menu_id: str,
    owner_id: str = Depends(require_owner),
    db: BaseDatabase = Depends(get_database),
):
    await _owned_menu(db, menu_id, owner_id)
    return await db.toggle_menu_active(menu_id)
