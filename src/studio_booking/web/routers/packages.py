"""Package and package template routes."""

from pathlib import Path

from fastapi import APIRouter, Depends

from ...models.classes import ClassCategory
from ...services.notifications import Notifier
from ...services.packages import PackageService
from ..deps import get_db_path, get_notifier
from ..schemas import (
    AssignRequest,
    AutoRenewUpdate,
    BundleAssignRequest,
    BundleCreate,
    DeactivateRequest,
    RenewalUpdate,
    RenewRequest,
    TemplateCreate,
)

router = APIRouter(prefix="/packages", tags=["packages"])


def _service(
    db_path: Path = Depends(get_db_path), notifier: Notifier = Depends(get_notifier)
) -> PackageService:
    return PackageService(db_path, notifier=notifier)


@router.post("/templates", status_code=201)
async def create_template(body: TemplateCreate, service: PackageService = Depends(_service)):
    template = await service.create_template(**body.model_dump())
    return {"success": True, "template": template.to_dict()}


@router.get("/templates")
async def list_templates(service: PackageService = Depends(_service)):
    templates = await service.list_templates()
    return {"templates": [t.to_dict() for t in templates]}


@router.post("/assign", status_code=201)
async def assign(body: AssignRequest, service: PackageService = Depends(_service)):
    package = await service.assign(**body.model_dump())
    return {"success": True, "package": package.to_dict()}


@router.post("/bundles", status_code=201)
async def create_bundle(body: BundleCreate, service: PackageService = Depends(_service)):
    bundle = await service.create_bundle(**body.model_dump())
    return {"success": True, "bundle": bundle.to_dict()}


@router.get("/bundles")
async def list_bundles(
    include_inactive: bool = True, service: PackageService = Depends(_service)
):
    bundles = await service.list_bundles(include_inactive)
    return {"bundles": [b.to_dict() for b in bundles]}


@router.post("/bundles/assign", status_code=201)
async def assign_bundle(body: BundleAssignRequest, service: PackageService = Depends(_service)):
    """Assign every package of a bundle to a user."""
    packages = await service.assign_bundle(**body.model_dump())
    return {"success": True, "packages": [p.to_dict() for p in packages]}


@router.delete("/bundles/{bundle_id}")
async def delete_bundle(bundle_id: str, service: PackageService = Depends(_service)):
    await service.delete_bundle(bundle_id)
    return {"success": True}


@router.get("/user/{user_id}")
async def user_packages(
    user_id: str,
    category: ClassCategory | None = None,
    service: PackageService = Depends(_service),
):
    packages = await service.list_for_user(user_id, category)
    return {"packages": [p.to_dict() for p in packages]}


@router.post("/user/{user_id}/refresh")
async def refresh_lapsed(user_id: str, service: PackageService = Depends(_service)):
    changed = await service.refresh_lapsed(user_id)
    return {"success": True, "changed": [p.to_dict() for p in changed]}


@router.get("/{package_id}")
async def get_package(package_id: str, service: PackageService = Depends(_service)):
    package = await service.get(package_id)
    return package.to_dict()


@router.post("/{package_id}/renew")
async def renew(
    package_id: str, body: RenewRequest, service: PackageService = Depends(_service)
):
    package = await service.renew(package_id, body.months)
    return {"success": True, "package": package.to_dict()}


@router.post("/{package_id}/cancel")
async def cancel(package_id: str, service: PackageService = Depends(_service)):
    package = await service.cancel(package_id)
    return {"success": True, "package": package.to_dict()}


@router.post("/{package_id}/deactivate")
async def deactivate(
    package_id: str, body: DeactivateRequest, service: PackageService = Depends(_service)
):
    package = await service.deactivate(package_id, purge=body.purge)
    return {"success": True, "package": package.to_dict()}


@router.put("/{package_id}/renewal")
async def update_renewal(
    package_id: str, body: RenewalUpdate, service: PackageService = Depends(_service)
):
    package = await service.update_renewal(package_id, body.months)
    return {"success": True, "package": package.to_dict()}


@router.put("/{package_id}/auto-renew")
async def set_auto_renew(
    package_id: str, body: AutoRenewUpdate, service: PackageService = Depends(_service)
):
    package = await service.set_auto_renew(package_id, body.auto_renew)
    return {"success": True, "package": package.to_dict()}


@router.delete("/{package_id}")
async def delete_package(package_id: str, service: PackageService = Depends(_service)):
    await service.delete(package_id)
    return {"success": True}
