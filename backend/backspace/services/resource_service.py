# Overview: Service-layer operations for bookable resources.

from __future__ import annotations

from ..extensions import db
from ..models import Resource
from ..validation import RESOURCE_POLICY, enforce_rules_resource, validate_payload
from .concurrency import run_with_retry
from .errors import ResourceNotFound


def get_resource(resource_id: int) -> Resource:
    resource = db.session.query(Resource).filter_by(id=resource_id).first()
    if resource is None:
        raise ResourceNotFound(f"Resource {resource_id} not found")
    return resource


def list_resources(available: bool | None = None) -> list[Resource]:
    query = db.session.query(Resource)
    if available is not None:
        query = query.filter(Resource.is_available == available)
    return query.order_by(Resource.name.asc(), Resource.id.asc()).all()


def create_resource(payload: dict) -> Resource:
    patch = validate_payload(model=Resource, payload=payload, policy=RESOURCE_POLICY, partial=False)
    enforce_rules_resource(patch)

    resource = Resource(is_available=True, **patch)
    db.session.add(resource)
    db.session.commit()
    return resource


def update_resource(resource_id: int, payload: dict) -> Resource:
    """Rate changes apply to sessions started afterwards; open sessions keep their snapshot."""
    patch = validate_payload(model=Resource, payload=payload, policy=RESOURCE_POLICY, partial=True)
    enforce_rules_resource(patch)

    def _op():
        resource = get_resource(resource_id)
        for key, value in patch.items():
            setattr(resource, key, value)
        db.session.commit()
        return resource

    return run_with_retry(_op)
