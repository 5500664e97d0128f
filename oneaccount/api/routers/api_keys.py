from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from oneaccount.api.deps import get_current_api_key, get_current_user, get_db, get_services, owner_scope
from oneaccount.models import ApiKey, User
from oneaccount.schemas.api_key import ApiKeyActivation, ApiKeyCreate, ApiKeyCreated, ApiKeyOut, ApiKeyUpdate
from oneaccount.services.container import Services

router = APIRouter(prefix="/api-keys", tags=["api-keys"])


@router.get("/introspect", response_model=ApiKeyOut)
def introspect(api_key: ApiKey = Depends(get_current_api_key)):
    return api_key


@router.get("", response_model=List[ApiKeyOut])
def list_keys(
    db: Session = Depends(get_db),
    services: Services = Depends(get_services),
    user: User = Depends(get_current_user),
):
    return services.api_keys.list_keys(db, owner_id=owner_scope(user))


@router.post("", response_model=ApiKeyCreated, status_code=status.HTTP_201_CREATED)
def create_key(
    body: ApiKeyCreate,
    db: Session = Depends(get_db),
    services: Services = Depends(get_services),
    user: User = Depends(get_current_user),
):
    api_key, raw_key = services.api_keys.create(
        db,
        body.name,
        user.id,
        description=body.description,
        expires_at=body.expires_at,
        permissions=body.permissions,
    )
    return ApiKeyCreated(**ApiKeyOut.model_validate(api_key).model_dump(), raw_key=raw_key)


@router.get("/{key_id}", response_model=ApiKeyOut)
def read_key(
    key_id: str,
    db: Session = Depends(get_db),
    services: Services = Depends(get_services),
    user: User = Depends(get_current_user),
):
    return services.api_keys.read(db, key_id, owner_id=owner_scope(user))


@router.put("/{key_id}", response_model=ApiKeyOut)
def update_key(
    key_id: str,
    body: ApiKeyUpdate,
    db: Session = Depends(get_db),
    services: Services = Depends(get_services),
    user: User = Depends(get_current_user),
):
    api_key = services.api_keys.read(db, key_id, owner_id=owner_scope(user))
    return services.api_keys.update(db, api_key, body.name, body.description)


@router.delete("/{key_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_key(
    key_id: str,
    db: Session = Depends(get_db),
    services: Services = Depends(get_services),
    user: User = Depends(get_current_user),
):
    services.api_keys.destroy(db, services.api_keys.read(db, key_id, owner_id=owner_scope(user)))


@router.post("/{key_id}/activation", response_model=ApiKeyOut)
def set_activation(
    key_id: str,
    body: ApiKeyActivation,
    db: Session = Depends(get_db),
    services: Services = Depends(get_services),
    user: User = Depends(get_current_user),
):
    api_key = services.api_keys.read(db, key_id, owner_id=owner_scope(user))
    services.api_keys.set_active_status(db, api_key, body.active)
    return api_key
