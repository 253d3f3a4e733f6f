from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from performate.core.router_guard import call_service, require_auth_user
from performate.db import get_db
from performate.schemas import ClassCreate, ClassUpdate
from performate.services.class_service import create_class, delete_class, list_classes, serialize_class, update_class


router = APIRouter(prefix='/api/classes', tags=['Classes'])


@router.get('')
def list_active_classes_api(_: dict = Depends(require_auth_user), db: Session = Depends(get_db)):
    return [serialize_class(row) for row in call_service(db, lambda: list_classes(db), retry=True)]


@router.get('/all')
def list_all_classes_api(_: dict = Depends(require_auth_user), db: Session = Depends(get_db)):
    rows = call_service(db, lambda: list_classes(db, include_inactive=True), retry=True)
    return [serialize_class(row) for row in rows]


@router.post('', status_code=201)
def create_class_api(payload: ClassCreate, _: dict = Depends(require_auth_user), db: Session = Depends(get_db)):
    return serialize_class(call_service(db, lambda: create_class(db, payload.name)))


@router.put('/{class_id}')
def update_class_api(
    class_id: int,
    payload: ClassUpdate,
    _: dict = Depends(require_auth_user),
    db: Session = Depends(get_db),
):
    row = call_service(db, lambda: update_class(db, class_id, name=payload.name, is_active=payload.is_active))
    return serialize_class(row)


@router.delete('/{class_id}')
def delete_class_api(class_id: int, _: dict = Depends(require_auth_user), db: Session = Depends(get_db)):
    return call_service(db, lambda: delete_class(db, class_id))
